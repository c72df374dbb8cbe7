"""001 – Initial schema: staff, departments, attendance, leave, disciplinary, templates, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+03:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["admin", "clerk", "supervisor", "staff"]),
    (
        "attendance_status",
        ["present", "absent", "late", "leave", "off-duty", "sick"],
    ),
    (
        "leave_type",
        ["annual", "sick", "maternity", "paternity", "compassionate", "study"],
    ),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("infraction_type", ["minor", "major", "severe"]),
    ("case_status", ["open", "under-review", "resolved", "appealed"]),
    (
        "sanction_type",
        ["warning", "suspension", "demotion", "termination", "none"],
    ),
    ("appeal_decision", ["upheld", "dismissed"]),
]

TABLES = [
    "audit_trail",
    "email_templates",
    "disciplinary_cases",
    "leave_applications",
    "attendance_records",
    "user_sessions",
    "staff_members",
    "departments",
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. departments (manager FK added after staff_members) ────────────
    op.execute("""
        CREATE TABLE departments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            code        VARCHAR(20)  NOT NULL UNIQUE,
            description TEXT,
            manager_id  UUID,
            color       VARCHAR(20),
            is_active   BOOLEAN NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 2. staff_members ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE staff_members (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     VARCHAR(30)  NOT NULL UNIQUE,
            email           VARCHAR(255) NOT NULL UNIQUE,
            password_hash   VARCHAR(255) NOT NULL,
            role            user_role    NOT NULL DEFAULT 'staff',
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            phone_number    VARCHAR(30),
            address         TEXT,
            department_id   UUID REFERENCES departments(id),
            position        VARCHAR(150) NOT NULL,
            supervisor_id   UUID REFERENCES staff_members(id),
            date_of_joining DATE NOT NULL DEFAULT CURRENT_DATE,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_staff_members_department_id ON staff_members(department_id)")
    op.execute("CREATE INDEX ix_staff_members_supervisor_id ON staff_members(supervisor_id)")
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_department_manager
            FOREIGN KEY (manager_id) REFERENCES staff_members(id)
    """)

    # ── 3. user_sessions ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id    UUID NOT NULL REFERENCES staff_members(id) ON DELETE CASCADE,
            token_hash  VARCHAR(128) NOT NULL,
            ip_address  INET,
            user_agent  TEXT,
            expires_at  TIMESTAMPTZ NOT NULL,
            is_revoked  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash ON user_sessions(token_hash)")

    # ── 4. attendance_records ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE attendance_records (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id        UUID NOT NULL REFERENCES staff_members(id) ON DELETE CASCADE,
            date            DATE NOT NULL,
            status          attendance_status NOT NULL,
            check_in_time   TIMESTAMPTZ,
            check_out_time  TIMESTAMPTZ,
            hours_worked    NUMERIC(5, 2),
            remarks         TEXT,
            marked_by       UUID REFERENCES staff_members(id),
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_attendance_staff_date UNIQUE (staff_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_attendance_records_date ON attendance_records(date)")

    # ── 5. leave_applications ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_applications (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id         UUID NOT NULL REFERENCES staff_members(id) ON DELETE CASCADE,
            leave_type       leave_type NOT NULL,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            number_of_days   INTEGER NOT NULL,
            reason           TEXT NOT NULL,
            status           leave_status NOT NULL DEFAULT 'pending',
            approved_by      UUID REFERENCES staff_members(id),
            decided_at       TIMESTAMPTZ,
            rejection_reason TEXT,
            cancelled_at     TIMESTAMPTZ,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_date_range CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_applications_staff_status
            ON leave_applications(staff_id, status)
    """)

    # ── 6. disciplinary_cases ────────────────────────────────────────────
    op.execute("""
        CREATE TABLE disciplinary_cases (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id                UUID NOT NULL REFERENCES staff_members(id) ON DELETE CASCADE,
            infraction_type         infraction_type NOT NULL,
            description             TEXT NOT NULL,
            date_of_infraction      DATE NOT NULL,
            reported_by             UUID NOT NULL REFERENCES staff_members(id),
            status                  case_status NOT NULL DEFAULT 'open',
            sanction                sanction_type,
            sanction_details        TEXT,
            sanction_date           TIMESTAMPTZ,
            remedial_measures       TEXT,
            staff_response          TEXT,
            response_date           TIMESTAMPTZ,
            action_taken            TEXT,
            action_taken_by         UUID REFERENCES staff_members(id),
            action_date             TIMESTAMPTZ,
            resolved_at             TIMESTAMPTZ,
            has_appealed            BOOLEAN NOT NULL DEFAULT FALSE,
            appeal_details          TEXT,
            appeal_date             TIMESTAMPTZ,
            appeal_decision         appeal_decision,
            appeal_decision_details TEXT,
            appeal_decided_by       UUID REFERENCES staff_members(id),
            appeal_decision_date    TIMESTAMPTZ,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_disciplinary_cases_staff_id ON disciplinary_cases(staff_id)")
    op.execute("CREATE INDEX ix_disciplinary_cases_status ON disciplinary_cases(status)")

    # ── 7. email_templates ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE email_templates (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(100) NOT NULL UNIQUE,
            category    VARCHAR(50)  NOT NULL DEFAULT 'general',
            subject     VARCHAR(255) NOT NULL,
            body        TEXT NOT NULL,
            variables   JSONB NOT NULL DEFAULT '[]'::jsonb,
            description TEXT,
            is_active   BOOLEAN NOT NULL DEFAULT TRUE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # ── 8. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES staff_members(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            ip_address  INET,
            user_agent  TEXT,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action     ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_department_manager")
    for table in TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

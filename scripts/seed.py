#!/usr/bin/env python3
"""Seed a fresh Ward Staff database.

Creates the default email templates, the standard ward departments and a
first admin account so the API can be logged into.

Usage:
    python scripts/seed.py --admin-email admin@ward.local --admin-password 'S3cret!pass'
    python scripts/seed.py --create-tables ...     # create tables first (dev / SQLite)
    python scripts/seed.py --templates-only

Requires DATABASE_URL and JWT_SECRET in the environment or .env
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import func, select  # noqa: E402

from wardstaff.common.constants import UserRole  # noqa: E402
from wardstaff.common.exceptions import AppException  # noqa: E402
from wardstaff.common.log_config import configure_logging  # noqa: E402
from wardstaff.database import Base, async_session_factory, engine  # noqa: E402
from wardstaff.main import app  # noqa: E402,F401  (registers all models)
from wardstaff.notifications.service import NotificationService  # noqa: E402
from wardstaff.staff.models import Department, StaffMember  # noqa: E402
from wardstaff.staff.schemas import DepartmentCreate, StaffCreate  # noqa: E402
from wardstaff.staff.service import DepartmentService, StaffService  # noqa: E402

logger = logging.getLogger("seed")

DEFAULT_DEPARTMENTS: list[tuple[str, str]] = [
    ("Administration", "Ward office administration and records"),
    ("Public Health", "Community health and sanitation"),
    ("Finance", "Revenue collection and accounts"),
    ("Social Services", "Community development and welfare"),
    ("Works", "Roads, drainage and public works"),
]


async def seed_departments(session) -> int:
    created = 0
    for name, description in DEFAULT_DEPARTMENTS:
        exists = await session.execute(
            select(Department.id).where(func.lower(Department.name) == name.lower())
        )
        if exists.scalar() is not None:
            continue
        await DepartmentService.create_department(
            session, DepartmentCreate(name=name, description=description)
        )
        created += 1
    return created


async def seed_admin(session, email: str, password: str) -> bool:
    exists = await session.execute(
        select(StaffMember.id).where(func.lower(StaffMember.email) == email.lower())
    )
    if exists.scalar() is not None:
        logger.info("admin %s already exists", email)
        return False
    await StaffService.create_staff(
        session,
        StaffCreate(
            employee_id="ADM001",
            first_name="Ward",
            last_name="Administrator",
            email=email,
            password=password,
            role=UserRole.admin,
            position="Ward Administrator",
        ),
    )
    return True


async def run(args: argparse.Namespace) -> int:
    if args.create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("tables created")

    async with async_session_factory() as session:
        try:
            templates = await NotificationService.seed_defaults(session)
            logger.info("email templates added: %d", templates)
            if not args.templates_only:
                departments = await seed_departments(session)
                logger.info("departments added: %d", departments)
                if args.admin_email and args.admin_password:
                    if await seed_admin(session, args.admin_email, args.admin_password):
                        logger.info("admin %s created", args.admin_email)
                else:
                    logger.warning("no --admin-email/--admin-password given; admin not created")
            await session.commit()
        except AppException as exc:
            await session.rollback()
            logger.error("seeding failed: %s %s", exc.detail, exc.errors or "")
            return 1

    await engine.dispose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the Ward Staff database")
    parser.add_argument("--admin-email", help="Email for the first admin account")
    parser.add_argument("--admin-password", help="Password for the first admin account")
    parser.add_argument("--create-tables", action="store_true", help="Create tables via metadata first")
    parser.add_argument("--templates-only", action="store_true", help="Only seed email templates")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args()

    configure_logging(args.log_level)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

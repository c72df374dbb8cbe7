"""Notification module test suite — template rendering, stored overrides,
inactive templates, the SMTP skip path and the /notifications/send API.

Uses the shared conftest.py fixtures with in-memory SQLite.
"""

from __future__ import annotations

import logging
import uuid
from unittest.mock import patch

import pytest

from wardstaff.common.constants import LeaveType
from wardstaff.common.exceptions import ConflictError, NotFoundException
from wardstaff.config import settings
from wardstaff.notifications.mailer import send_mail
from wardstaff.notifications.models import EmailTemplate
from wardstaff.notifications.render import placeholders, render
from wardstaff.notifications.schemas import (
    EmailTemplateCreate,
    EmailTemplateUpdate,
    SendEmailRequest,
    TemplatePreviewRequest,
)
from wardstaff.notifications.service import NotificationService, recipient_context
from wardstaff.notifications.templates import DEFAULT_TEMPLATES


# ── Rendering ───────────────────────────────────────────────────────


class TestRender:

    def test_substitutes_placeholders(self):
        assert render("Hello {{name}}!", {"name": "Jane"}) == "Hello Jane!"

    def test_missing_value_renders_empty(self):
        assert render("[{{missing}}]", {}) == "[]"

    def test_if_block_kept_when_truthy(self):
        text = "A{{#if venue}} at {{venue}}{{/if}}."
        assert render(text, {"venue": "Hall 2"}) == "A at Hall 2."
        assert render(text, {"venue": ""}) == "A."

    def test_enum_renders_value(self):
        assert render("{{t}}", {"t": LeaveType.annual}) == "annual"

    def test_escape_applies_to_values_only(self):
        out = render("<b>{{x}}</b>", {"x": "<script>"}, escape=True)
        assert out == "<b>&lt;script&gt;</b>"

    def test_placeholders_first_seen_order(self):
        assert placeholders("{{#if a}}{{b}}{{/if}} {{a}} {{c}}") == ["a", "b", "c"]


# ── Template store ──────────────────────────────────────────────────


class TestTemplates:

    async def test_seed_is_idempotent(self, db):
        added = await NotificationService.seed_defaults(db)
        assert added == len(DEFAULT_TEMPLATES)
        assert await NotificationService.seed_defaults(db) == 0

    async def test_create_derives_variables(self, db, admin):
        tpl = await NotificationService.create_template(
            db,
            EmailTemplateCreate(
                name="shift_change",
                subject="Shift change for {{staffName}}",
                body="<p>New shift starts {{startDate}}.</p>",
            ),
            actor_id=admin.id,
        )
        assert tpl.variables == ["staffName", "startDate"]

    async def test_duplicate_name_conflict(self, db, admin):
        payload = EmailTemplateCreate(name="memo", subject="Memo", body="<p>x</p>")
        await NotificationService.create_template(db, payload, actor_id=admin.id)
        with pytest.raises(ConflictError):
            await NotificationService.create_template(db, payload, actor_id=admin.id)

    async def test_stored_row_overrides_default(self, db):
        db.add(EmailTemplate(
            name="welcome", category="informational",
            subject="Karibu {{staffName}}", body="<p>Hi</p>", variables=["staffName"],
        ))
        await db.flush()

        subject, _ = await NotificationService.render_template(db, "welcome", {"staffName": "Jane"})
        assert subject == "Karibu Jane"

    async def test_falls_back_to_builtin(self, db):
        subject, body = await NotificationService.render_template(
            db, "welcome", {"officeName": "Ward Office", "position": "Driver"},
        )
        assert subject == "Welcome to Ward Office"
        assert "Driver" in body

    async def test_inactive_stored_template_disables(self, db, staff_member, sent_mail):
        db.add(EmailTemplate(
            name="welcome", category="informational",
            subject="Welcome", body="<p>Hi</p>", variables=[], is_active=False,
        ))
        await db.flush()

        result = await NotificationService.send_template(db, "welcome", staff_member)
        assert result.skipped is True
        sent_mail.assert_not_awaited()

    async def test_unknown_template_not_found(self, db):
        with pytest.raises(NotFoundException):
            await NotificationService.resolve_template(db, "no_such_template")

    async def test_update_recomputes_variables(self, db, admin):
        tpl = await NotificationService.create_template(
            db,
            EmailTemplateCreate(name="memo", subject="Memo", body="<p>{{a}}</p>"),
            actor_id=admin.id,
        )
        tpl = await NotificationService.update_template(
            db, tpl.id, EmailTemplateUpdate(body="<p>{{b}}</p>"), actor_id=admin.id,
        )
        assert tpl.variables == ["b"]

    async def test_preview_merges_recipient(self, db, admin, staff_member):
        await NotificationService.seed_defaults(db)
        tpl = next(t for t in await NotificationService.list_templates(db) if t.name == "welcome")

        out = await NotificationService.preview_template(
            db, tpl.id,
            TemplatePreviewRequest(staff_id=staff_member.id, variables={"position": "Nurse"}),
        )
        assert out.subject == f"Welcome to {settings.OFFICE_NAME}"
        assert staff_member.full_name in out.body
        assert "Nurse" in out.body

    async def test_preview_unknown_staff(self, db):
        await NotificationService.seed_defaults(db)
        tpl = (await NotificationService.list_templates(db))[0]
        with pytest.raises(NotFoundException):
            await NotificationService.preview_template(
                db, tpl.id, TemplatePreviewRequest(staff_id=uuid.uuid4()),
            )


# ── Delivery ────────────────────────────────────────────────────────


class TestMailer:

    async def test_skips_without_smtp_host(self, caplog):
        caplog.set_level(logging.INFO, logger="wardstaff.notifications.mailer")
        with patch.object(settings, "SMTP_HOST", ""):
            result = await send_mail("jane@ward.local", "Hi", "<p>Hi</p>")
        assert result.success is False
        assert result.skipped is True
        assert "skipping" in caplog.text

    async def test_smtp_failure_is_reported(self):
        with patch.object(settings, "SMTP_HOST", "smtp.invalid"), patch(
            "wardstaff.notifications.mailer._deliver",
            side_effect=OSError("connection refused"),
        ):
            result = await send_mail("jane@ward.local", "Hi", "<p>Hi</p>")
        assert result.success is False
        assert result.skipped is False
        assert "connection refused" in result.error

    async def test_recipient_context(self, staff_member):
        ctx = recipient_context(staff_member)
        assert ctx["staffName"] == staff_member.full_name
        assert ctx["employeeId"] == staff_member.employee_id
        assert ctx["officeName"] == settings.OFFICE_NAME


class TestSendToStaff:

    async def test_template_to_each_recipient(self, db, clerk, staff_member, outsider, sent_mail):
        outcomes = await NotificationService.send_to_staff(
            db,
            SendEmailRequest(
                staff_ids=[staff_member.id, outsider.id],
                template_name="general_announcement",
                variables={"announcementTitle": "Clean-up Day", "announcementText": "Saturday"},
            ),
            actor_id=clerk.id,
        )
        assert [o.recipient for o in outcomes] == [staff_member.email, outsider.email]
        assert sent_mail.await_count == 2
        _, subject, _ = sent_mail.await_args.args
        assert subject == "Announcement: Clean-up Day"

    async def test_free_form_message(self, db, clerk, staff_member, sent_mail):
        await NotificationService.send_to_staff(
            db,
            SendEmailRequest(
                staff_ids=[staff_member.id],
                subject="Note for {{staffName}}",
                message="<p>See the notice board.</p>",
            ),
            actor_id=clerk.id,
        )
        _, subject, _ = sent_mail.await_args.args
        assert subject == f"Note for {staff_member.full_name}"

    async def test_unknown_recipient_not_found(self, db, clerk, sent_mail):
        with pytest.raises(NotFoundException):
            await NotificationService.send_to_staff(
                db,
                SendEmailRequest(staff_ids=[uuid.uuid4()], subject="S", message="M"),
                actor_id=clerk.id,
            )
        sent_mail.assert_not_awaited()

    def test_request_needs_template_or_message(self):
        with pytest.raises(ValueError):
            SendEmailRequest(staff_ids=[uuid.uuid4()], subject="only subject")


class TestSendAPI:

    async def test_supervisor_sends(self, client, supervisor_headers, staff_member, sent_mail):
        resp = await client.post(
            "/api/v1/notifications/send",
            headers=supervisor_headers,
            json={
                "staff_ids": [str(staff_member.id)],
                "subject": "Roster",
                "message": "<p>Updated roster attached.</p>",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["sent"] == 1
        assert resp.json()["failed"] == 0

    async def test_skipped_counts_as_failed(self, client, clerk_headers, staff_member):
        resp = await client.post(
            "/api/v1/notifications/send",
            headers=clerk_headers,
            json={"staff_ids": [str(staff_member.id)], "subject": "S", "message": "M"},
        )
        body = resp.json()
        assert body["failed"] == 1
        assert body["results"][0]["skipped"] is True

    async def test_staff_cannot_send(self, client, staff_headers, outsider):
        resp = await client.post(
            "/api/v1/notifications/send",
            headers=staff_headers,
            json={"staff_ids": [str(outsider.id)], "subject": "S", "message": "M"},
        )
        assert resp.status_code == 403

    async def test_missing_body_fields_is_422(self, client, clerk_headers, staff_member):
        resp = await client.post(
            "/api/v1/notifications/send",
            headers=clerk_headers,
            json={"staff_ids": [str(staff_member.id)]},
        )
        assert resp.status_code == 422

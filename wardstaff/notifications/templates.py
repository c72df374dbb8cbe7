"""Built-in email templates, seeded into ``email_templates`` on demand."""

from __future__ import annotations

from typing import Any

_FOOTER = (
    '<hr style="border:none;border-top:1px solid #e0e0e0;margin:20px 0;">'
    '<p style="font-size:12px;color:#666;">{{officeName}}<br>'
    "Employee ID: {{employeeId}}</p>"
)


def _wrap(heading: str, colour: str, inner: str) -> str:
    return (
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;">'
        f'<h2 style="color:{colour};">{heading}</h2>'
        "<p>Dear {{staffName}},</p>"
        f"{inner}{_FOOTER}</div>"
    )


DEFAULT_TEMPLATES: list[dict[str, Any]] = [
    {
        "name": "leave_application",
        "category": "leave",
        "subject": "Leave Application - {{applicantName}} ({{leaveType}})",
        "body": _wrap(
            "LEAVE APPLICATION FOR REVIEW", "#1976d2",
            "<p>{{applicantName}} has applied for leave and is awaiting your decision.</p>"
            "<p><strong>Leave Type:</strong> {{leaveType}}</p>"
            "<p><strong>Period:</strong> {{startDate}} to {{endDate}}</p>"
            "<p><strong>Number of Days:</strong> {{numberOfDays}}</p>"
            "<p><strong>Reason:</strong> {{reason}}</p>",
        ),
        "variables": ["applicantName", "leaveType", "startDate", "endDate", "numberOfDays", "reason"],
        "description": "Sent to the applicant's supervisor when leave is requested.",
    },
    {
        "name": "leave_approval",
        "category": "leave",
        "subject": "Leave Application Approved - {{leaveType}}",
        "body": _wrap(
            "LEAVE APPLICATION APPROVED", "#388e3c",
            "<p>Your leave application has been <strong>APPROVED</strong>.</p>"
            "<p><strong>Leave Type:</strong> {{leaveType}}</p>"
            "<p><strong>Period:</strong> {{startDate}} to {{endDate}}</p>"
            "<p><strong>Number of Days:</strong> {{numberOfDays}}</p>"
            "<p><strong>Approval Date:</strong> {{approvalDate}}</p>"
            "<p>Please hand over pending work before proceeding on leave.</p>",
        ),
        "variables": ["leaveType", "startDate", "endDate", "numberOfDays", "approvalDate"],
        "description": "Sent to the applicant when leave is approved.",
    },
    {
        "name": "leave_rejection",
        "category": "leave",
        "subject": "Leave Application Rejected - {{leaveType}}",
        "body": _wrap(
            "LEAVE APPLICATION REJECTED", "#d32f2f",
            "<p>Your leave application has been <strong>REJECTED</strong>.</p>"
            "<p><strong>Leave Type:</strong> {{leaveType}}</p>"
            "<p><strong>Period:</strong> {{startDate}} to {{endDate}}</p>"
            "{{#if rejectionReason}}<p><strong>Reason:</strong> {{rejectionReason}}</p>{{/if}}"
            "<p>Contact your supervisor if you need clarification.</p>",
        ),
        "variables": ["leaveType", "startDate", "endDate", "rejectionReason"],
        "description": "Sent to the applicant when leave is rejected.",
    },
    {
        "name": "disciplinary_warning",
        "category": "disciplinary",
        "subject": "Disciplinary Notice - {{infractionType}}",
        "body": _wrap(
            "DISCIPLINARY NOTICE", "#d32f2f",
            "<p>A disciplinary case has been opened regarding the following infraction:</p>"
            "<p><strong>Infraction Type:</strong> {{infractionType}}</p>"
            "<p><strong>Date of Infraction:</strong> {{dateOfInfraction}}</p>"
            "<p><strong>Description:</strong> {{description}}</p>"
            "<p>You may submit a written response through the staff portal.</p>",
        ),
        "variables": ["infractionType", "dateOfInfraction", "description"],
        "description": "Sent to the staff member when a case is opened.",
    },
    {
        "name": "sanction_notice",
        "category": "disciplinary",
        "subject": "Sanction Notice - {{sanction}}",
        "body": _wrap(
            "SANCTION NOTICE", "#f57c00",
            "<p>The following sanction has been recorded against your disciplinary case.</p>"
            "<p><strong>Sanction:</strong> {{sanction}}</p>"
            "{{#if sanctionDetails}}<p><strong>Details:</strong> {{sanctionDetails}}</p>{{/if}}"
            "{{#if remedialMeasures}}<p><strong>Remedial Measures:</strong> {{remedialMeasures}}</p>{{/if}}",
        ),
        "variables": ["sanction", "sanctionDetails", "remedialMeasures"],
        "description": "Sent to the staff member when a sanction is set.",
    },
    {
        "name": "disciplinary_resolved",
        "category": "disciplinary",
        "subject": "Disciplinary Case Resolved",
        "body": _wrap(
            "DISCIPLINARY CASE RESOLVED", "#388e3c",
            "<p>Your disciplinary case dated {{dateOfInfraction}} has been resolved.</p>"
            "{{#if actionTaken}}<p><strong>Action Taken:</strong> {{actionTaken}}</p>{{/if}}"
            "{{#if sanction}}<p><strong>Sanction:</strong> {{sanction}}</p>{{/if}}"
            "<p>You may lodge an appeal once through the staff portal.</p>",
        ),
        "variables": ["dateOfInfraction", "actionTaken", "sanction"],
        "description": "Sent to the staff member when a case is resolved.",
    },
    {
        "name": "welcome",
        "category": "informational",
        "subject": "Welcome to {{officeName}}",
        "body": _wrap(
            "WELCOME", "#1976d2",
            "<p>Your staff account has been created.</p>"
            "<p><strong>Position:</strong> {{position}}</p>"
            "{{#if department}}<p><strong>Department:</strong> {{department}}</p>{{/if}}"
            "<p><strong>Login email:</strong> {{email}}</p>",
        ),
        "variables": ["position", "department", "email"],
        "description": "Sent to a new staff member when their account is created.",
    },
    {
        "name": "general_announcement",
        "category": "informational",
        "subject": "Announcement: {{announcementTitle}}",
        "body": _wrap(
            "OFFICIAL ANNOUNCEMENT", "#1976d2",
            "<p>{{announcementText}}</p>"
            "{{#if date}}<p><strong>Date:</strong> {{date}}</p>{{/if}}"
            "{{#if time}}<p><strong>Time:</strong> {{time}}</p>{{/if}}"
            "{{#if venue}}<p><strong>Venue:</strong> {{venue}}</p>{{/if}}",
        ),
        "variables": ["announcementTitle", "announcementText", "date", "time", "venue"],
        "description": "Free-form announcement sent by supervisors or clerks.",
    },
]

DEFAULT_TEMPLATES_BY_NAME: dict[str, dict[str, Any]] = {
    t["name"]: t for t in DEFAULT_TEMPLATES
}

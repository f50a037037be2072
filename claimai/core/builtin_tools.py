"""
Built-in draft tools.

These tools never deliver anything. They return a structured preview of a
mail or calendar draft plus an embeddable HTML resource, so the host can let
the user review and send it through its own, explicitly confirmed path.
"""

from __future__ import annotations

import html
import time
from datetime import UTC, datetime
from typing import Any

from claimai.core.providers import LocalToolProvider

BODY_PREVIEW_CHARS = 320

MAIL_DRAFT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "to": {"type": "array", "items": {"type": "string"}, "description": "Recipient addresses (optional)"},
        "cc": {"type": "array", "items": {"type": "string"}},
        "bcc": {"type": "array", "items": {"type": "string"}},
        "subject": {"type": "string", "minLength": 1, "description": "Subject line"},
        "body": {"type": "string", "minLength": 1, "description": "Full message text (plain text or HTML)"},
        "content_type": {"type": "string", "enum": ["Text", "HTML"], "default": "Text"},
    },
    "required": ["subject", "body"],
    "additionalProperties": False,
}

CALENDAR_DRAFT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "subject": {"type": "string", "minLength": 1},
        "start": {"type": "string", "description": "ISO 8601 start, e.g. 2025-03-01T09:00"},
        "end": {"type": "string", "description": "ISO 8601 end"},
        "timezone": {"type": "string", "default": "Europe/Zurich"},
        "attendees": {"type": "array", "items": {"type": "string"}},
        "location": {"type": "string"},
        "body": {"type": "string"},
        "online_meeting": {"type": "boolean", "default": False},
    },
    "required": ["subject", "start", "end"],
    "additionalProperties": False,
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _render_rows(rows: list[tuple[str, str]]) -> str:
    cells = "".join(
        f"<tr><th>{html.escape(label)}</th><td>{html.escape(value)}</td></tr>" for label, value in rows
    )
    return f'<table class="claimai-draft">{cells}</table>'


def _ui_resource(channel: str, title: str, body_html: str) -> dict[str, Any]:
    return {
        "uri": f"ui://draft/{channel}/{_now_ms()}",
        "mimeType": "text/html",
        "text": body_html,
        "_meta": {"title": title},
    }


def compose_mail_draft(
    subject: str,
    body: str,
    to: list[str] | None = None,
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    content_type: str = "Text",
) -> dict[str, Any]:
    """Prepare an e-mail draft (never sends) and return a structured preview."""
    draft = {
        "to": to or [],
        "cc": cc or [],
        "bcc": bcc or [],
        "subject": subject,
        "contentType": content_type,
        "bodyPreview": body[:BODY_PREVIEW_CHARS],
        "body": body,
        "createdAt": datetime.now(UTC).isoformat(),
    }
    rows = [("An", ", ".join(draft["to"]) or "-"), ("Betreff", subject), ("Text", body)]
    if draft["cc"]:
        rows.insert(1, ("Cc", ", ".join(draft["cc"])))
    return {
        "status": "draft-prepared",
        "channel": "mail",
        "draft": draft,
        "uiResource": _ui_resource("mail", "E-Mail-Entwurf", _render_rows(rows)),
    }


def compose_calendar_draft(
    subject: str,
    start: str,
    end: str,
    timezone: str = "Europe/Zurich",
    attendees: list[str] | None = None,
    location: str = "",
    body: str = "",
    online_meeting: bool = False,
) -> dict[str, Any]:
    """Prepare a calendar invitation draft (never sends) and return a preview."""
    draft = {
        "subject": subject,
        "startDateTime": start,
        "endDateTime": end,
        "timezone": timezone,
        "attendees": attendees or [],
        "location": location,
        "body": body,
        "teams": online_meeting,
        "createdAt": datetime.now(UTC).isoformat(),
    }
    rows = [
        ("Betreff", subject),
        ("Zeitraum", f"{start} - {end} ({timezone})"),
        ("Teilnehmer", ", ".join(draft["attendees"]) or "-"),
        ("Ort", location or "-"),
    ]
    return {
        "status": "draft-prepared",
        "channel": "calendar",
        "draft": draft,
        "uiResource": _ui_resource("calendar", "Termin-Entwurf", _render_rows(rows)),
    }


def create_builtin_provider(name: str = "builtin") -> LocalToolProvider:
    """Provider exposing the built-in draft tools."""
    provider = LocalToolProvider(name)
    provider.add(
        "draft.mail.compose",
        compose_mail_draft,
        "Erstellt ausschließlich einen E-Mail-Entwurf (ohne Versand) und gibt eine strukturierte Vorschau zurück.",
        MAIL_DRAFT_SCHEMA,
    )
    provider.add(
        "draft.calendar.compose",
        compose_calendar_draft,
        "Erstellt ausschließlich einen Termin-Entwurf (ohne Versand) und gibt eine strukturierte Vorschau zurück.",
        CALENDAR_DRAFT_SCHEMA,
    )
    return provider

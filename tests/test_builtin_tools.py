"""
Tests for the built-in draft tools and bundled worker templates.
"""

import pytest

from claimai.core.aggregator import aggregate
from claimai.core.builtin_tools import compose_calendar_draft, compose_mail_draft, create_builtin_provider
from claimai.core.registry import ToolRegistry
from claimai.default_workers import WORKER_ROLES, get_worker_template, load_default_workers
from claimai.models.chunks import ToolOutputChunk


class TestMailDraft:
    def test_structure(self):
        out = compose_mail_draft(subject="Ihr Schadenfall", body="Guten Tag", to=["kunde@example.com"])
        assert out["status"] == "draft-prepared"
        assert out["channel"] == "mail"
        assert out["draft"]["to"] == ["kunde@example.com"]
        assert out["uiResource"]["uri"].startswith("ui://draft/mail/")
        assert out["uiResource"]["mimeType"] == "text/html"

    def test_html_is_escaped(self):
        out = compose_mail_draft(subject="<script>", body="a & b")
        html = out["uiResource"]["text"]
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "a &amp; b" in html

    def test_body_preview_limited(self):
        out = compose_mail_draft(subject="s", body="x" * 1000)
        assert len(out["draft"]["bodyPreview"]) == 320


class TestCalendarDraft:
    def test_structure(self):
        out = compose_calendar_draft(
            subject="Besichtigung",
            start="2025-03-01T09:00",
            end="2025-03-01T10:00",
            attendees=["gutachter@example.com"],
        )
        assert out["channel"] == "calendar"
        assert out["draft"]["timezone"] == "Europe/Zurich"
        assert out["draft"]["teams"] is False
        assert out["uiResource"]["uri"].startswith("ui://draft/calendar/")


class TestBuiltinProvider:
    def test_tools_listed(self):
        names = [s.name for s in create_builtin_provider().list_tools()]
        assert names == ["draft.mail.compose", "draft.calendar.compose"]

    def test_schema_enforced_by_registry(self):
        registry = ToolRegistry.load([create_builtin_provider()])
        try:
            result = registry.call("draft.mail.compose", {"subject": "s"})
            assert result.error_type == "invalid_args"

            result = registry.call("draft.mail.compose", {"subject": "s", "body": "b", "send": True})
            assert result.error_type == "invalid_args"
        finally:
            registry.close()

    def test_resource_reaches_aggregator(self):
        registry = ToolRegistry.load([create_builtin_provider()])
        try:
            result = registry.call("draft.mail.compose", {"subject": "Rückfrage", "body": "Bitte Fotos senden."})
        finally:
            registry.close()

        chunk = ToolOutputChunk(
            call_id="c", tool_name="draft.mail.compose", text=result.to_llm_content(), payload=result.payload
        )
        aggregated = aggregate([chunk])
        assert aggregated.resource is not None
        assert aggregated.resource.uri.startswith("ui://draft/mail/")
        assert "<table" in aggregated.resource.payload["text"]


class TestDefaultWorkers:
    def test_all_roles_load(self):
        workers = load_default_workers()
        assert [w.name for w in workers] == list(WORKER_ROLES)
        assert all(w.system_prompt.strip() for w in workers)

    def test_triage_allows_drafts(self):
        triage = next(w for w in load_default_workers() if w.name == "triage_worker")
        assert "draft.*" in triage.tools.allow

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown worker role"):
            get_worker_template("nope")

"""
Tests for the Conversation and Message models.
"""

import pytest

from claimai.models.conversation import Conversation, Message


def _turn(conv: Conversation, prompt: str, *workers: str) -> None:
    conv.append(Message(role="user", content=prompt))
    for worker in workers:
        idx = conv.append(Message(role="assistant", content=f"from {worker}"))
        conv.tag(idx, worker)


class TestMessage:
    """Tests for Message."""

    def test_defaults(self):
        msg = Message(role="user", content="Hallo")
        assert msg.authored_by is None
        assert msg.ts is not None

    def test_to_llm(self):
        msg = Message(role="assistant", content="Hi", authored_by="general")
        assert msg.to_llm() == {"role": "assistant", "content": "Hi"}

    def test_invalid_role(self):
        with pytest.raises(ValueError):
            Message(role="tool", content="x")


class TestConversation:
    """Tests for derived routing state."""

    def test_append_returns_index(self):
        conv = Conversation(id="t")
        assert conv.append(Message(role="user", content="a")) == 0
        assert conv.append(Message(role="assistant", content="b")) == 1

    def test_tag_assistant(self):
        conv = Conversation(id="t")
        idx = conv.append(Message(role="assistant", content="b"))
        conv.tag(idx, "triage_worker")
        assert conv.messages[idx].authored_by == "triage_worker"

    def test_tag_rejects_user_message(self):
        conv = Conversation(id="t")
        idx = conv.append(Message(role="user", content="a"))
        with pytest.raises(ValueError, match="assistant"):
            conv.tag(idx, "general")

    def test_latest_user_text(self):
        conv = Conversation(id="t")
        assert conv.latest_user_text == ""
        _turn(conv, "erste Frage", "general")
        _turn(conv, "zweite Frage")
        assert conv.latest_user_text == "zweite Frage"

    def test_seen_workers_in_order(self):
        conv = Conversation(id="t")
        _turn(conv, "frage", "triage_worker", "claims_data_worker", "general")
        assert conv.seen_workers == ["triage_worker", "claims_data_worker", "general"]

    def test_seen_workers_only_current_turn(self):
        conv = Conversation(id="t")
        _turn(conv, "frage 1", "triage_worker", "general")
        _turn(conv, "frage 2", "claims_data_worker")
        assert conv.seen_workers == ["claims_data_worker"]

    def test_untagged_assistant_not_seen(self):
        conv = Conversation(id="t")
        conv.append(Message(role="user", content="frage"))
        conv.append(Message(role="assistant", content="no author"))
        assert conv.seen_workers == []

    def test_hop_count_ignores_general(self):
        conv = Conversation(id="t")
        _turn(conv, "frage", "triage_worker", "general", "claims_data_worker")
        assert conv.hop_count == 2

    def test_last_worker_message(self):
        conv = Conversation(id="t")
        conv.append(Message(role="user", content="frage"))
        assert conv.last_worker_message() is None
        _turn(conv, "frage", "triage_worker", "general")
        assert conv.last_worker_message().authored_by == "general"

    def test_serializable(self):
        conv = Conversation(id="t")
        _turn(conv, "frage", "general")
        restored = Conversation.model_validate_json(conv.model_dump_json())
        assert restored.seen_workers == ["general"]
        assert restored.messages[0].content == "frage"

"""
Conversation models for supervisor-routed threads.

A conversation is an ordered, append-only list of messages. Routing state
(which workers already answered in the current turn, how many hops were
taken) is always derived from the messages and never stored separately.
"""

from __future__ import annotations

import fnmatch
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

# Worker names counted as hops. The general-purpose worker does not match.
HOP_PATTERN = "*_worker"


def _utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Message(BaseModel):
    """A single message in a conversation."""

    role: Literal["system", "user", "assistant"]
    content: str = ""
    authored_by: str | None = None  # Worker name, set by the supervisor
    ts: datetime = Field(default_factory=_utcnow)

    def to_llm(self) -> dict[str, str]:
        """Serialize for the chat-completion message list."""
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    """A thread of messages keyed by thread id."""

    id: str
    messages: list[Message] = Field(default_factory=list)

    def append(self, message: Message) -> int:
        """Append a message and return its index."""
        self.messages.append(message)
        return len(self.messages) - 1

    def tag(self, index: int, worker: str) -> None:
        """Record which worker authored the assistant message at ``index``."""
        message = self.messages[index]
        if message.role != "assistant":
            raise ValueError(f"Only assistant messages can be tagged (index {index} is '{message.role}')")
        message.authored_by = worker

    def _turn_start(self) -> int:
        for i in range(len(self.messages) - 1, -1, -1):
            if self.messages[i].role == "user":
                return i
        return 0

    @property
    def latest_user_text(self) -> str:
        """Text of the most recent user message, or empty string."""
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return ""

    @property
    def current_turn(self) -> list[Message]:
        """Messages from the latest user message to the end."""
        return self.messages[self._turn_start():]

    @property
    def seen_workers(self) -> list[str]:
        """Distinct worker names that answered in the current turn, in order."""
        seen: list[str] = []
        for message in self.current_turn:
            if message.role == "assistant" and message.authored_by and message.authored_by not in seen:
                seen.append(message.authored_by)
        return seen

    @property
    def hop_count(self) -> int:
        """Number of distinct specialized workers seen in the current turn."""
        return sum(1 for name in self.seen_workers if fnmatch.fnmatch(name, HOP_PATTERN))

    def last_worker_message(self) -> Message | None:
        """The last worker-tagged assistant message of the current turn."""
        for message in reversed(self.current_turn):
            if message.role == "assistant" and message.authored_by:
                return message
        return None

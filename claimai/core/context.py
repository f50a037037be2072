"""
Request-scoped caller context.

The entry point binds the caller's identity (and any extra attributes the
host passes along) for the duration of one turn. Tool providers read it
when they invoke a tool, so no tool needs process-global user state.
"""

from __future__ import annotations

import contextvars
import json
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator


@dataclass(frozen=True)
class CallerContext:
    """
    Identity and attributes of whoever issued the current request.

    Attributes:
        user_id: Stable user identifier (used for the default thread id)
        attributes: Opaque host-provided values forwarded to tools
    """

    user_id: str = "anonymous"
    attributes: dict[str, Any] = field(default_factory=dict)

    def default_thread_id(self) -> str:
        return f"session_{self.user_id}"

    def to_headers(self) -> dict[str, str]:
        """Headers forwarded to HTTP tool providers."""
        headers = {"X-Claimai-User": self.user_id}
        if self.attributes:
            headers["X-Claimai-Context"] = json.dumps(self.attributes, default=str)
        return headers


_current: contextvars.ContextVar[CallerContext | None] = contextvars.ContextVar(
    "claimai_caller_context", default=None
)


def get_caller_context() -> CallerContext:
    """The context bound for the current request, or an anonymous one."""
    return _current.get() or CallerContext()


@contextmanager
def caller_context(ctx: CallerContext | None) -> Iterator[CallerContext]:
    """Bind ``ctx`` for the enclosed block."""
    bound = ctx or CallerContext()
    token = _current.set(bound)
    try:
        yield bound
    finally:
        _current.reset(token)

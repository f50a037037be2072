"""
Structured result model for tool invocation.

Every tool call, whether it succeeded, failed validation, raised, or timed
out, produces a ToolResult. Workers feed the serialized form back to the
model as an observation.
"""

import json
import time
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel, Field


class InteractiveResource(BaseModel):
    """Opaque embeddable UI payload returned by a tool."""

    uri: str = Field(..., description="Resource identifier, e.g. ui://draft/mail/123")
    mime_type: str | None = Field(None, alias="mimeType")
    payload: dict[str, Any] = Field(default_factory=dict, description="Remaining resource fields")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "InteractiveResource":
        """Build from a tool's ``uiResource``/``resource`` object."""
        rest = {k: v for k, v in obj.items() if k not in ("uri", "mimeType", "mime_type")}
        return cls(
            uri=obj["uri"],
            mime_type=obj.get("mimeType") or obj.get("mime_type"),
            payload=rest,
        )

    def to_wire(self) -> dict[str, Any]:
        """The shape returned to callers (mirrors what the tool emitted)."""
        out: dict[str, Any] = {"uri": self.uri}
        if self.mime_type:
            out["mimeType"] = self.mime_type
        out.update(self.payload)
        return out


class ToolResult(BaseModel):
    """Structured result from any tool invocation."""

    ok: bool = Field(..., description="Whether the tool invocation succeeded")
    text: str = Field("", description="Human-readable output")
    payload: Any = Field(None, description="Structured output, if the tool returned JSON")
    error: str | None = Field(None, description="Error message (if ok=False)")
    error_type: str | None = Field(None, description="Error classification")

    tool_name: str | None = Field(None, description="Registered tool name")
    duration_ms: int | None = Field(None, description="Execution time in milliseconds")

    def to_llm_content(self) -> str:
        """Serialize for passing back to the model as an observation."""
        if self.ok:
            if self.text:
                return self.text
            return json.dumps(self.payload) if self.payload is not None else ""
        return json.dumps({"error": self.error, "error_type": self.error_type})

    def to_dict(self) -> dict[str, Any]:
        """Full dict including metadata."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_output(cls, output: Any, **kwargs: Any) -> "ToolResult":
        """
        Wrap a raw tool return value.

        Strings are kept as text (and parsed best-effort when they hold a JSON
        object); dicts and lists are kept as payload with a JSON text form.
        """
        if isinstance(output, ToolResult):
            return output.model_copy(update=kwargs)
        if output is None:
            return cls(ok=True, **kwargs)
        if isinstance(output, str):
            payload = None
            stripped = output.strip()
            if stripped.startswith("{"):
                try:
                    payload = json.loads(stripped)
                except json.JSONDecodeError:
                    payload = None
            return cls(ok=True, text=output, payload=payload, **kwargs)
        try:
            text = json.dumps(output, ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(output)
        return cls(ok=True, text=text, payload=output, **kwargs)

    @classmethod
    def success(cls, text: str = "", payload: Any = None, **kwargs: Any) -> "ToolResult":
        """Create a success result."""
        return cls(ok=True, text=text, payload=payload, **kwargs)

    @classmethod
    def fail(
        cls,
        error: str,
        error_type: str | None = None,
        **kwargs: Any,
    ) -> "ToolResult":
        """Create a failure result."""
        return cls(ok=False, error=error, error_type=error_type, **kwargs)


@contextmanager
def timed_execution():
    """Context manager that yields a dict where 'duration_ms' will be set on exit."""
    timing: dict[str, int] = {}
    start = time.monotonic()
    try:
        yield timing
    finally:
        elapsed = time.monotonic() - start
        timing["duration_ms"] = int(elapsed * 1000)

"""
Reduce a worker's execution trace to its final answer.

``aggregate`` is a pure fold over the chunks. The answer is the model's
text; when the model produced none, it falls back to the last tool output
(a photo description if one is present, else the truncated raw output),
and finally to a fixed placeholder. The result is never empty.

Tool outputs that contain an interactive resource (an object under
``uiResource`` or ``resource`` with a ``uri``) are detected along the way;
the last one wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from claimai.models.chunks import AgentTextChunk, Chunk, ToolOutputChunk
from claimai.models.tool_result import InteractiveResource

logger = logging.getLogger(__name__)

TOOL_OUTPUT_LIMIT = 1600
DESCRIPTION_TEMPLATE = "Kurzbeschreibung zum Foto: {description}"
TOOL_OUTPUT_TEMPLATE = "Werkzeug-Ergebnis:\n{output}"
NO_ANSWER_PLACEHOLDER = "Die Aktion wurde ausgeführt, es wurde jedoch keine Antwort generiert."

_RESOURCE_KEYS = ("uiResource", "resource")


@dataclass(frozen=True)
class AggregateResult:
    final_text: str
    last_tool_output: str | None = None
    resource: InteractiveResource | None = None


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """Parse ``text`` as a JSON object, best-effort. Anything else gives None."""
    if not text:
        return None
    stripped = text.strip()
    if not (stripped.startswith("{") and stripped.endswith("}")):
        return None
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def detect_resource(output: Any) -> InteractiveResource | None:
    """
    Find an interactive resource in a tool output.

    Accepts the raw output text or an already-parsed object.
    """
    obj = output if isinstance(output, dict) else parse_json_object(output)
    if obj is None:
        return None
    for key in _RESOURCE_KEYS:
        candidate = obj.get(key)
        if isinstance(candidate, dict) and isinstance(candidate.get("uri"), str) and candidate["uri"]:
            return InteractiveResource.from_object(candidate)
    return None


def truncate(text: str, limit: int = TOOL_OUTPUT_LIMIT) -> str:
    """Cut ``text`` to at most ``limit`` characters, ending in an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def fallback_text(last_tool_output: str | None) -> str:
    """Answer used when the model produced no text."""
    if last_tool_output and last_tool_output.strip():
        parsed = parse_json_object(last_tool_output)
        description = parsed.get("description") if parsed else None
        if isinstance(description, str) and description.strip():
            return DESCRIPTION_TEMPLATE.format(description=description.strip())
        return TOOL_OUTPUT_TEMPLATE.format(output=truncate(last_tool_output.strip()))
    return NO_ANSWER_PLACEHOLDER


def aggregate(chunks: Iterable[Chunk]) -> AggregateResult:
    """Fold a worker trace into an AggregateResult."""
    text_parts: list[str] = []
    last_output: str | None = None
    resource: InteractiveResource | None = None

    for chunk in chunks:
        if isinstance(chunk, AgentTextChunk):
            text_parts.append(chunk.text)
        elif isinstance(chunk, ToolOutputChunk):
            if chunk.text:
                last_output = chunk.text
            found = detect_resource(chunk.payload) if isinstance(chunk.payload, dict) else None
            found = found or detect_resource(chunk.text)
            if found is not None:
                logger.debug("Detected interactive resource %s from %s", found.uri, chunk.tool_name)
                resource = found

    final_text = "".join(text_parts).strip()
    if not final_text:
        final_text = fallback_text(last_output)

    return AggregateResult(final_text=final_text, last_tool_output=last_output, resource=resource)

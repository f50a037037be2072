"""
Execution chunks emitted by a worker while it runs.

A worker's trace is a sequence of these three kinds; the aggregator folds
them into the final answer.
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class AgentTextChunk:
    """Natural-language text produced by the model."""

    text: str


@dataclass(frozen=True)
class ToolCallChunk:
    """A tool call announced by the model, before it is executed."""

    call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolOutputChunk:
    """Output of an executed tool call (successful or not)."""

    call_id: str
    tool_name: str
    text: str
    ok: bool = True
    payload: Any = None


Chunk = Union[AgentTextChunk, ToolCallChunk, ToolOutputChunk]

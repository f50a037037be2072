"""
Worker agent: the think/act/observe loop run by every worker role.

Each step asks the model for the next move. Plain text ends the run; tool
calls are executed one after another and their results are fed back as
observations. Tool problems never escape the loop, and a model failure ends
it with a fixed apology, so a worker always produces a usable trace.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Generator, Iterable

from claimai.core.aggregator import AggregateResult, aggregate
from claimai.core.llm import LLMClient
from claimai.core.registry import ToolDescriptor, ToolRegistry
from claimai.models.chunks import AgentTextChunk, Chunk, ToolCallChunk, ToolOutputChunk
from claimai.models.config import WorkerConfig
from claimai.models.conversation import Message
from claimai.models.tool_result import ToolResult

logger = logging.getLogger(__name__)

LLM_FAILURE_MESSAGE = (
    "Entschuldigung, der Sprachdienst ist gerade nicht erreichbar. "
    "Bitte versuche es in einem Moment noch einmal."
)


@dataclass
class WorkerResult:
    """Outcome of one worker run."""

    worker: str
    final_text: str
    trace: list[Chunk] = field(default_factory=list)
    aggregate: AggregateResult | None = None
    tool_calls: int = 0


class WorkerAgent:
    """
    A tool-using worker bound to one role.

    The agent keeps no state between runs: history and tools are passed
    in, so one instance can serve many threads at once.
    """

    def __init__(
        self,
        config: WorkerConfig,
        llm: LLMClient,
        registry: ToolRegistry,
        step_cap: int = 8,
        tool_timeout: float | None = None,
        repetition_threshold: int = 2,
    ):
        self.config = config
        self.llm = llm
        self.registry = registry
        self.step_cap = config.step_cap or step_cap
        self.tool_timeout = tool_timeout
        self.repetition_threshold = repetition_threshold

    @property
    def name(self) -> str:
        return self.config.name

    def _build_messages(self, history: Iterable[Message]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.config.system_prompt}]
        for message in history:
            if message.role == "system":
                continue
            if message.role == "assistant" and message.authored_by and message.authored_by != self.name:
                messages.append({"role": "assistant", "content": f"[{message.authored_by}] {message.content}"})
            else:
                messages.append(message.to_llm())
        return messages

    def run(
        self,
        history: Iterable[Message],
        tools: list[ToolDescriptor],
        step_cap: int | None = None,
    ) -> Generator[Chunk, None, None]:
        """
        Run the loop, yielding chunks as they happen.

        Args:
            history: Conversation messages visible to the worker
            tools: Tools the worker may call (already permission-filtered)
            step_cap: Max model calls for this run (default: the worker's cap)
        """
        cap = step_cap or self.step_cap
        messages = self._build_messages(history)
        allowed = {t.name for t in tools}
        openai_tools = [t.to_openai_tool() for t in tools] or None
        recent_calls: list[tuple[str, str]] = []
        emitted_text = False

        for step in range(1, cap + 1):
            try:
                response = self.llm.chat(messages=messages, tools=openai_tools)
                msg = response.choices[0].message
                content = msg.content or ""
                raw_calls = list(msg.tool_calls or [])
            except Exception as e:
                logger.warning("Worker '%s' model call failed at step %d: %s", self.name, step, e)
                yield AgentTextChunk(("\n\n" if emitted_text else "") + LLM_FAILURE_MESSAGE)
                return

            if content:
                emitted_text = True
                yield AgentTextChunk(content)

            if not raw_calls:
                return

            tool_calls = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.function.name, "arguments": tc.function.arguments or "{}"},
                }
                for tc in raw_calls
            ]
            messages.append({"role": "assistant", "content": content, "tool_calls": tool_calls})

            for tc in tool_calls:
                call_id = tc["id"]
                name = tc["function"]["name"]
                raw_args = tc["function"]["arguments"]

                yield ToolCallChunk(call_id=call_id, tool_name=name, arguments=_safe_args(raw_args))

                result = self._dispatch_tool_call(name, raw_args, allowed, recent_calls)
                observation = result.to_llm_content()

                yield ToolOutputChunk(
                    call_id=call_id,
                    tool_name=name,
                    text=observation,
                    ok=result.ok,
                    payload=result.payload,
                )
                messages.append({"role": "tool", "tool_call_id": call_id, "content": observation})

        logger.info("Worker '%s' reached its step cap (%d)", self.name, cap)

    def _dispatch_tool_call(
        self,
        name: str,
        raw_args: str,
        allowed: set[str],
        recent_calls: list[tuple[str, str]],
    ) -> ToolResult:
        """Execute one tool call, turning every problem into a failed result."""
        if name not in allowed:
            return ToolResult.fail(
                f"Tool '{name}' is not available to this assistant.",
                error_type="not_permitted",
                tool_name=name,
            )

        call_sig = (name, hashlib.md5(raw_args.encode()).hexdigest())
        repeat_count = recent_calls.count(call_sig)
        recent_calls.append(call_sig)
        if repeat_count >= self.repetition_threshold:
            return ToolResult.fail(
                f"Repetitive tool call detected: '{name}' called with identical "
                f"arguments {repeat_count + 1} times. Try a different approach.",
                error_type="repetition_detected",
                tool_name=name,
            )

        logger.debug("Worker '%s' calling tool %s(%s)", self.name, name, raw_args)
        return self.registry.call(name, raw_args, timeout=self.tool_timeout)

    def invoke(
        self,
        history: Iterable[Message],
        tools: list[ToolDescriptor],
        step_cap: int | None = None,
    ) -> WorkerResult:
        """Run to completion and reduce the trace to a final text."""
        trace = list(self.run(history, tools, step_cap))
        result = aggregate(trace)
        return WorkerResult(
            worker=self.name,
            final_text=result.final_text,
            trace=trace,
            aggregate=result,
            tool_calls=sum(1 for c in trace if isinstance(c, ToolCallChunk)),
        )


def _safe_args(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {"_raw": raw}
    return parsed if isinstance(parsed, dict) else {"_value": parsed}

"""
Tool registry: the read-only catalog of every tool available to workers.

Built once at startup from the configured providers and never mutated
afterwards, so concurrent turns can share it without locking.
"""

from __future__ import annotations

import contextvars
import copy
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from claimai.core.providers import ProviderError, ToolProvider, ToolSpec
from claimai.core.schema import ArgsValidator, build_validator, normalize_schema
from claimai.models.tool_result import ToolResult, timed_execution

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 60.0


@dataclass(frozen=True)
class ToolDescriptor:
    """
    A registered tool.

    Attributes:
        name: Unique tool name (e.g. 'mail.latestMessage.get')
        description: Text shown to the model
        input_schema: JSON schema of the arguments object (read-only)
        provider: Name of the provider that supplied the tool
    """

    name: str
    description: str
    input_schema: Mapping[str, Any]
    provider: str = ""
    _validator: ArgsValidator = field(default=lambda args: [], repr=False, compare=False)
    _invoke: Callable[[dict[str, Any]], Any] = field(default=lambda args: None, repr=False, compare=False)

    @classmethod
    def from_spec(cls, spec: ToolSpec, provider: str) -> "ToolDescriptor":
        schema = normalize_schema(copy.deepcopy(spec.input_schema))
        return cls(
            name=spec.name,
            description=spec.description,
            input_schema=MappingProxyType(schema),
            provider=provider,
            _validator=build_validator(schema, spec.name),
            _invoke=spec.call,
        )

    def validate(self, args: dict[str, Any]) -> list[str]:
        """Return schema violations for ``args`` (empty = valid)."""
        return self._validator(args)

    def invoke(self, args: dict[str, Any]) -> ToolResult:
        """Run the tool without validation or timeout. May raise."""
        return ToolResult.from_output(self._invoke(args), tool_name=self.name)

    def to_openai_tool(self) -> dict[str, Any]:
        """OpenAI function-calling format, as passed to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": copy.deepcopy(dict(self.input_schema)),
            },
        }


class ToolRegistry:
    """
    Catalog of tools plus a safe way to call them.

    ``call`` never raises: unknown tools, invalid arguments, provider
    exceptions and timeouts all come back as failed ToolResults.
    """

    def __init__(
        self,
        tools: Iterable[ToolDescriptor] = (),
        timeout: float = DEFAULT_TOOL_TIMEOUT,
    ):
        self._tools: dict[str, ToolDescriptor] = {}
        for tool in tools:
            self._add(tool)
        self.timeout = timeout
        self._providers: list[ToolProvider] = []

    def _add(self, tool: ToolDescriptor) -> bool:
        if tool.name in self._tools:
            logger.warning(
                "Duplicate tool '%s' from provider '%s' ignored (already provided by '%s')",
                tool.name,
                tool.provider,
                self._tools[tool.name].provider,
            )
            return False
        self._tools[tool.name] = tool
        return True

    @classmethod
    def load(
        cls,
        providers: Iterable[ToolProvider],
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        only: Mapping[str, list[str]] | None = None,
    ) -> "ToolRegistry":
        """
        Build a registry from providers.

        A provider that fails to list its tools is skipped with a warning.

        Args:
            providers: Providers in priority order (first wins on duplicates)
            timeout: Default per-call timeout in seconds
            only: Optional per-provider list of tool names to keep
        """
        registry = cls(timeout=timeout)
        only = only or {}
        for provider in providers:
            try:
                specs = provider.list_tools()
            except ProviderError as e:
                logger.warning("Skipping tool provider '%s': %s", provider.name, e)
                continue

            wanted = set(only.get(provider.name) or [])
            loaded = 0
            for spec in specs:
                if wanted and spec.name not in wanted:
                    continue
                if registry._add(ToolDescriptor.from_spec(spec, provider.name)):
                    loaded += 1
            registry._providers.append(provider)
            logger.info("Loaded %d tools from provider '%s'", loaded, provider.name)
        return registry

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def tools(self) -> list[ToolDescriptor]:
        """All tools in registration order."""
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def call(
        self,
        name: str,
        args: dict[str, Any] | str | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """
        Validate and invoke a tool, bounded by a timeout.

        The call runs on a worker thread inside a copy of the caller's
        context, so the request-scoped caller context reaches the provider.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.fail(f"Unknown tool: {name}", error_type="tool_not_found", tool_name=name)

        if isinstance(args, str):
            try:
                args = json.loads(args) if args.strip() else {}
            except json.JSONDecodeError as e:
                return ToolResult.fail(f"Invalid JSON arguments: {e}", error_type="invalid_args", tool_name=name)
        args = args or {}
        if not isinstance(args, dict):
            return ToolResult.fail("Arguments must be a JSON object", error_type="invalid_args", tool_name=name)

        issues = tool.validate(args)
        if issues:
            return ToolResult.fail(
                "Invalid arguments: " + "; ".join(issues),
                error_type="invalid_args",
                tool_name=name,
            )

        limit = self.timeout if timeout is None else timeout
        ctx = contextvars.copy_context()
        with timed_execution() as timing:
            # Per-call executor: a timed-out call keeps only its own thread
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"claimai-tool-{name}")
            future = executor.submit(ctx.run, tool.invoke, args)
            try:
                result = future.result(timeout=limit)
            except TimeoutError:
                future.cancel()
                logger.warning("Tool '%s' timed out after %.1fs", name, limit)
                result = ToolResult.fail(
                    f"Tool '{name}' timed out after {limit:g}s",
                    error_type="timeout",
                    tool_name=name,
                )
            except Exception as e:
                logger.warning("Tool '%s' raised %s: %s", name, type(e).__name__, e)
                result = ToolResult.fail(
                    f"{type(e).__name__}: {e}",
                    error_type="execution_error",
                    tool_name=name,
                )
            finally:
                executor.shutdown(wait=False)
        return result.model_copy(update={"duration_ms": timing["duration_ms"], "tool_name": name})

    def close(self) -> None:
        """Shut down providers."""
        for provider in self._providers:
            try:
                provider.close()
            except Exception as e:
                logger.warning("Error closing provider '%s': %s", provider.name, e)

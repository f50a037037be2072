"""
Tool providers: the places tools come from.

A provider lists its tools once at startup and invokes them on demand.
Three kinds ship with claimai:

- LocalToolProvider: in-process Python callables
- HttpToolProvider: a REST tool service (GET /tools, POST /tools/{name})
- McpToolProvider: an MCP server spoken to over stdio

Providers raise ProviderError when they cannot start or list tools; the
registry logs that and carries on without them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from claimai.core.context import get_caller_context
from claimai.models.config import ProviderConfig
from claimai.models.tool_result import ToolResult

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 120.0


class ProviderError(Exception):
    """Raised when a provider cannot start, list, or reach its tools."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"Provider '{provider}': {message}")


@dataclass
class ToolSpec:
    """A tool as offered by a provider, before the registry freezes it."""

    name: str
    description: str
    input_schema: dict[str, Any]
    call: Callable[[dict[str, Any]], Any] = field(repr=False)


class ToolProvider(ABC):
    """A source of tools."""

    name: str

    @abstractmethod
    def list_tools(self) -> list[ToolSpec]:
        """Return every tool this provider offers. Raises ProviderError."""

    def close(self) -> None:
        """Release provider resources."""


# =============================================================================
# Local callables
# =============================================================================


class LocalToolProvider(ToolProvider):
    """
    Tools implemented as Python callables in this process.

    A callable receives the validated arguments as keyword arguments. If it
    declares a ``context`` parameter, the current CallerContext is passed too.
    """

    def __init__(self, name: str = "local"):
        self.name = name
        self._tools: dict[str, ToolSpec] = {}

    def add(
        self,
        name: str,
        func: Callable[..., Any],
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ) -> None:
        wants_context = "context" in inspect.signature(func).parameters

        def call(args: dict[str, Any]) -> Any:
            if wants_context:
                return func(context=get_caller_context(), **args)
            return func(**args)

        self._tools[name] = ToolSpec(
            name=name,
            description=description or (inspect.getdoc(func) or "").split("\n")[0],
            input_schema=input_schema or {"type": "object", "properties": {}},
            call=call,
        )

    def tool(
        self,
        name: str,
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`add`."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add(name, func, description, input_schema)
            return func

        return decorator

    def list_tools(self) -> list[ToolSpec]:
        return list(self._tools.values())


# =============================================================================
# HTTP tool service
# =============================================================================


class HttpToolProvider(ToolProvider):
    """
    Client for a REST tool service.

    Discovery: ``GET /tools`` returning ``{"tools": [...]}`` (optionally wrapped
    in ``{"data": ...}``). Each entry is either ``{name, description,
    input_schema}`` or OpenAI function format.

    Invocation: ``POST /tools/{name}`` with the arguments as JSON body. A
    ``{"ok": false, "error": ...}`` response becomes a failed ToolResult.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        read_timeout = timeout if timeout is not None else DEFAULT_READ_TIMEOUT
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=httpx.Timeout(30.0, read=read_timeout),
            transport=transport,
        )

    @staticmethod
    def _parse_tool_entry(entry: dict[str, Any]) -> tuple[str, str, dict[str, Any]]:
        if entry.get("type") == "function" and "function" in entry:
            fn = entry["function"]
            return fn["name"], fn.get("description", ""), fn.get("parameters") or {}
        schema = entry.get("input_schema") or entry.get("inputSchema") or entry.get("parameters") or {}
        return entry["name"], entry.get("description", ""), schema

    def list_tools(self) -> list[ToolSpec]:
        try:
            response = self._client.get("/tools")
            response.raise_for_status()
            data = response.json()
            inner = data.get("data", data)
            entries = inner.get("tools", [])
            specs = []
            for entry in entries:
                tool_name, description, schema = self._parse_tool_entry(entry)
                specs.append(
                    ToolSpec(
                        name=tool_name,
                        description=description,
                        input_schema=schema,
                        call=self._make_call(tool_name),
                    )
                )
            return specs
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.name, f"tool discovery failed ({e.response.status_code})") from e
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"could not reach {self.base_url}: {e}") from e
        except (ValueError, KeyError, AttributeError, TypeError) as e:
            raise ProviderError(self.name, f"invalid tool listing: {e}") from e

    def _make_call(self, tool_name: str) -> Callable[[dict[str, Any]], Any]:
        def call(args: dict[str, Any]) -> Any:
            return self.execute_tool(tool_name, args)

        return call

    def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """Invoke one tool. Transport errors propagate to the registry."""
        response = self._client.post(
            f"/tools/{tool_name}",
            json=arguments,
            headers=get_caller_context().to_headers(),
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError:
            return response.text

        if isinstance(data, dict) and data.get("ok") is False:
            return ToolResult.fail(
                str(data.get("error") or "Tool service reported a failure"),
                error_type=data.get("error_type") or "service_error",
            )
        if isinstance(data, dict) and "ok" in data and "data" in data:
            return data["data"]
        return data

    def close(self) -> None:
        self._client.close()


# =============================================================================
# MCP over stdio
# =============================================================================

_provider_loop: asyncio.AbstractEventLoop | None = None
_provider_thread: threading.Thread | None = None
_loop_lock = threading.Lock()


def _get_provider_loop() -> asyncio.AbstractEventLoop:
    """Get or create the persistent event loop used for async providers."""
    global _provider_loop, _provider_thread

    with _loop_lock:
        if _provider_loop is not None and not _provider_loop.is_closed():
            return _provider_loop

        _provider_loop = asyncio.new_event_loop()

        def _run_loop():
            asyncio.set_event_loop(_provider_loop)
            _provider_loop.run_forever()

        _provider_thread = threading.Thread(
            target=_run_loop, daemon=True, name="claimai-provider-loop"
        )
        _provider_thread.start()
        return _provider_loop


def run_provider_coroutine(coro, timeout: float | None = None) -> Any:
    """
    Run ``coro`` on the persistent provider loop and wait for the result.

    Raises TimeoutError (after cancelling the coroutine) when ``timeout`` elapses.
    """
    loop = _get_provider_loop()
    future = asyncio.run_coroutine_threadsafe(coro, loop)
    try:
        return future.result(timeout=timeout)
    except TimeoutError:
        future.cancel()
        raise


def reset_provider_loop() -> None:
    """Stop the provider loop (mainly for testing)."""
    global _provider_loop, _provider_thread

    with _loop_lock:
        if _provider_loop is not None and not _provider_loop.is_closed():
            _provider_loop.call_soon_threadsafe(_provider_loop.stop)
            if _provider_thread is not None:
                _provider_thread.join(timeout=2)
            _provider_loop.close()
        _provider_loop = None
        _provider_thread = None


class McpToolProvider(ToolProvider):
    """
    Tools served by an MCP server over stdio.

    Each operation opens a short-lived client session: the server process is
    spawned, initialized, asked, and shut down again. That keeps no
    cross-thread session state and survives server crashes between calls.
    """

    def __init__(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float = 60.0,
    ):
        self.name = name
        self.command = command
        self.args = args or []
        self.env = env or {}
        self.timeout = timeout

    def _server_params(self):
        from mcp import StdioServerParameters

        return StdioServerParameters(
            command=self.command,
            args=self.args,
            env={**os.environ, **self.env},
        )

    async def _with_session(self, operation: Callable[[Any], Any]) -> Any:
        from mcp import ClientSession
        from mcp.client.stdio import stdio_client

        async with AsyncExitStack() as stack:
            read, write = await stack.enter_async_context(stdio_client(self._server_params()))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
            return await operation(session)

    def list_tools(self) -> list[ToolSpec]:
        async def _list(session):
            response = await session.list_tools()
            return response.tools

        try:
            tools = run_provider_coroutine(self._with_session(_list), timeout=self.timeout)
        except Exception as e:
            raise ProviderError(self.name, f"could not list MCP tools via '{self.command}': {e}") from e

        return [
            ToolSpec(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {}),
                call=self._make_call(tool.name),
            )
            for tool in tools
        ]

    def _make_call(self, tool_name: str) -> Callable[[dict[str, Any]], Any]:
        def call(args: dict[str, Any]) -> Any:
            return self.call_tool(tool_name, args)

        return call

    def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        async def _call(session):
            return await session.call_tool(tool_name, arguments)

        result = run_provider_coroutine(self._with_session(_call), timeout=self.timeout)

        parts = []
        for content in result.content:
            if getattr(content, "text", None) is not None:
                parts.append(content.text)
            elif getattr(content, "data", None) is not None:
                parts.append(f"[{getattr(content, 'mimeType', 'binary')} content]")
        text = "\n".join(parts)

        if result.isError:
            return ToolResult.fail(text or f"MCP tool '{tool_name}' failed", error_type="execution_error")
        structured = getattr(result, "structuredContent", None)
        if structured:
            return ToolResult.success(text=text, payload=structured)
        return ToolResult.from_output(text)


# =============================================================================
# Factory
# =============================================================================


def create_provider(config: ProviderConfig, tool_timeout: float = 60.0) -> ToolProvider:
    """
    Instantiate a provider from configuration.

    Raises ProviderError for incomplete configuration.
    """
    if config.type == "builtin":
        from claimai.core.builtin_tools import create_builtin_provider

        return create_builtin_provider(config.name)

    if config.type == "http":
        if not config.url:
            raise ProviderError(config.name, "http provider requires 'url'")
        return HttpToolProvider(config.name, config.url, headers=config.headers, timeout=tool_timeout)

    if config.type == "mcp":
        if not config.command:
            raise ProviderError(config.name, "mcp provider requires 'command'")
        return McpToolProvider(
            config.name,
            config.command,
            args=config.args,
            env=config.env,
            timeout=tool_timeout,
        )

    raise ProviderError(config.name, f"unknown provider type '{config.type}'")

"""
Pytest fixtures for claimai tests.
"""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from claimai.core.providers import LocalToolProvider
from claimai.core.registry import ToolRegistry
from claimai.default_workers import load_default_workers
from claimai.models.config import ClaimaiConfig, OrchestratorSettings


@pytest.fixture(autouse=True)
def _clean_env():
    """Prevent environment variable pollution between tests.

    CLAIMAI_* variables set by a developer's shell would otherwise change
    routing, blocking and backend selection in every test.
    """
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith("CLAIMAI_"):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _tool_call(call_id: str, name: str, args) -> MagicMock:
    tool_call = MagicMock()
    tool_call.id = call_id
    tool_call.function.name = name
    tool_call.function.arguments = args if isinstance(args, str) else json.dumps(args)
    return tool_call


@pytest.fixture
def text_response():
    """Build a mock LLM response carrying plain text."""

    def build(content: str) -> MagicMock:
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.choices[0].message.tool_calls = None
        return response

    return build


@pytest.fixture
def tool_call_response():
    """Build a mock LLM response with tool calls: build(("call_1", "name", {...}), ...)."""

    def build(*calls, content: str | None = None) -> MagicMock:
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.choices[0].message.tool_calls = [_tool_call(*c) for c in calls]
        return response

    return build


@pytest.fixture
def local_provider():
    """A local provider with mail, claims, vision and failing tools."""
    provider = LocalToolProvider("test")

    @provider.tool(
        "mail.latestMessage.get",
        "Get the latest message in the inbox",
        {"type": "object", "properties": {}},
    )
    def latest_message():
        return {"subject": "Schadenmeldung", "from": "kunde@example.com", "body": "Stoßstange verbeult"}

    @provider.tool(
        "mail.message.reply",
        "Reply to a message",
        {"type": "object", "properties": {"id": {"type": "string"}, "body": {"type": "string"}}},
    )
    def reply(id: str = "", body: str = ""):
        return {"sent": True}

    @provider.tool(
        "cap.cqn.read",
        "Read claims",
        {
            "type": "object",
            "properties": {"entity": {"type": "string"}},
            "required": ["entity"],
        },
    )
    def cqn_read(entity: str):
        return [{"ID": "C-1", "status": "open"}, {"ID": "C-2", "status": "open"}]

    @provider.tool("vision.photo.describe", "Describe a photo")
    def describe_photo():
        return {"description": "dented bumper"}

    @provider.tool("broken.tool", "Always fails")
    def broken():
        raise RuntimeError("backend exploded")

    return provider


@pytest.fixture
def registry(local_provider):
    """A registry loaded from the local test provider."""
    reg = ToolRegistry.load([local_provider], timeout=5)
    yield reg
    reg.close()


@pytest.fixture
def sample_config():
    """Configuration with the bundled workers and default settings."""
    return ClaimaiConfig(settings=OrchestratorSettings(), workers=load_default_workers(), providers=[])

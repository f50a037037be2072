"""Data models for claimai."""

from claimai.models.chunks import AgentTextChunk, Chunk, ToolCallChunk, ToolOutputChunk
from claimai.models.config import (
    ClaimaiConfig,
    ConfigError,
    ModelConfig,
    OrchestratorSettings,
    ProviderConfig,
    ToolPermissions,
    WorkerConfig,
    load_config,
)
from claimai.models.conversation import Conversation, Message
from claimai.models.tool_result import InteractiveResource, ToolResult

__all__ = [
    "AgentTextChunk",
    "Chunk",
    "ClaimaiConfig",
    "ConfigError",
    "Conversation",
    "InteractiveResource",
    "Message",
    "ModelConfig",
    "OrchestratorSettings",
    "ProviderConfig",
    "ToolCallChunk",
    "ToolOutputChunk",
    "ToolPermissions",
    "ToolResult",
    "WorkerConfig",
    "load_config",
]

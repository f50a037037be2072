"""
Orchestrator configuration models.

Configuration is layered: built-in defaults, then ``claimai.yaml``, then
``CLAIMAI_*`` environment variables. Worker definitions default to the
templates bundled in ``claimai.default_workers``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_CONFIG_FILE = "claimai.yaml"

_TRUTHY = {"1", "true", "yes", "on"}

# Tools that deliver something to a third party. Blocked unless sending is enabled.
DEFAULT_SEND_TOOLS = [
    "mail.message.reply",
    "mail.message.send",
    "calendar.event.create",
    "*.send",
    "*.reply",
    "*.invite*",
]


def is_truthy(value: str | None) -> bool:
    """Interpret an environment flag value."""
    return (value or "").strip().lower() in _TRUTHY


class ModelConfig(BaseModel):
    """LLM model configuration."""

    provider: str = Field(default=DEFAULT_MODEL, description="LiteLLM model identifier (e.g., 'openai/gpt-4o')")
    temperature: float = Field(default=0.2, ge=0, le=2)
    max_tokens: int = Field(default=2048, gt=0)
    max_retries: int = Field(default=2, ge=0, description="Max retries on transient LLM errors")
    retry_delay: float = Field(default=1.0, gt=0, description="Initial retry delay in seconds")
    retry_backoff: float = Field(default=2.0, gt=1, description="Exponential backoff multiplier")
    timeout: float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")
    fallback_models: list[str] = Field(default_factory=list)


class ToolPermissions(BaseModel):
    """Tool permission settings for a worker role."""

    allow: list[str] = Field(default_factory=list, description="Allowed tool patterns (e.g., 'mail.*')")
    deny: list[str] = Field(default_factory=list, description="Denied tool patterns")


class WorkerConfig(BaseModel):
    """A worker role: prompt, model and tool permissions."""

    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="")
    system_prompt: str = Field(..., min_length=1)
    model: ModelConfig | None = None  # Falls back to settings.model
    tools: ToolPermissions = Field(default_factory=ToolPermissions)
    step_cap: int | None = Field(default=None, gt=0)


class ProviderConfig(BaseModel):
    """A source of tools loaded at startup."""

    name: str = Field(..., min_length=1)
    type: Literal["builtin", "http", "mcp"]
    enabled: bool = True

    # http
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    # mcp (stdio)
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)

    only: list[str] = Field(default_factory=list, description="Load only these tool names (empty = all)")


class OrchestratorSettings(BaseModel):
    """Process-wide routing and execution settings."""

    backend: Literal["supervisor", "single"] = "supervisor"
    disable_supervisor: bool = False
    max_hops: int = Field(default=6, ge=0)
    step_cap: int = Field(default=8, gt=0, description="Default max model calls per worker run")
    tool_timeout: float = Field(default=60.0, gt=0, description="Seconds before a tool call is abandoned")
    enable_send: bool = False
    send_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_SEND_TOOLS))
    blocked_tools: list[str] = Field(default_factory=list, description="Always-blocked tool patterns")
    max_threads: int = Field(default=500, ge=0, description="Max conversations kept in memory (0 = unbounded)")
    model: ModelConfig = Field(default_factory=ModelConfig)

    @property
    def use_supervisor(self) -> bool:
        return self.backend == "supervisor" and not self.disable_supervisor

    def blocked_patterns(self) -> list[str]:
        """Effective process-wide block-list."""
        patterns = list(self.blocked_tools)
        if not self.enable_send:
            patterns.extend(self.send_tools)
        return patterns


class ClaimaiConfig(BaseModel):
    """Top-level configuration file."""

    settings: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    workers: list[WorkerConfig] = Field(default_factory=list)
    providers: list[ProviderConfig] = Field(
        default_factory=lambda: [ProviderConfig(name="builtin", type="builtin")]
    )

    def worker(self, name: str) -> WorkerConfig | None:
        for w in self.workers:
            if w.name == name:
                return w
        return None

    def model_for(self, worker: WorkerConfig) -> ModelConfig:
        return worker.model or self.settings.model


class ConfigError(Exception):
    """Raised when a configuration file is invalid, with a user-friendly message."""

    def __init__(self, source: str, issues: list[str]):
        self.source = source
        self.issues = issues
        msg = f"Invalid configuration in '{source}':\n" + "\n".join(
            f"  - {issue}" for issue in issues
        )
        super().__init__(msg)


def _friendly_validation_errors(source: str, exc: ValidationError) -> ConfigError:
    """Convert Pydantic ValidationError to a user-friendly ConfigError."""
    issues: list[str] = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error["loc"])
        msg = error["msg"]
        err_type = error["type"]

        if err_type == "missing":
            hint = ""
            if loc.endswith("system_prompt"):
                hint = " (multi-line string starting with '|' in YAML)"
            elif loc.endswith("name"):
                hint = " (1-50 characters)"
            issues.append(f"{loc} is required{hint}")
        elif err_type == "string_too_short":
            issues.append(f"{loc} cannot be empty")
        elif err_type == "literal_error":
            allowed = error.get("ctx", {}).get("expected", "")
            issues.append(f"{loc}: must be one of {allowed}")
        else:
            issues.append(f"{loc}: {msg}")

    return ConfigError(source, issues)


def apply_env_overrides(
    settings: OrchestratorSettings,
    env: Mapping[str, str] | None = None,
) -> OrchestratorSettings:
    """
    Return a copy of ``settings`` with ``CLAIMAI_*`` environment values applied.

    Malformed numeric values are logged and ignored.
    """
    env = os.environ if env is None else env
    updates: dict[str, Any] = {}

    if "CLAIMAI_MAX_HOPS" in env:
        try:
            updates["max_hops"] = max(0, int(env["CLAIMAI_MAX_HOPS"]))
        except ValueError:
            logger.warning("Ignoring invalid CLAIMAI_MAX_HOPS=%r", env["CLAIMAI_MAX_HOPS"])
    if "CLAIMAI_STEP_CAP" in env:
        try:
            updates["step_cap"] = max(1, int(env["CLAIMAI_STEP_CAP"]))
        except ValueError:
            logger.warning("Ignoring invalid CLAIMAI_STEP_CAP=%r", env["CLAIMAI_STEP_CAP"])
    if "CLAIMAI_TOOL_TIMEOUT" in env:
        try:
            updates["tool_timeout"] = float(env["CLAIMAI_TOOL_TIMEOUT"])
        except ValueError:
            logger.warning("Ignoring invalid CLAIMAI_TOOL_TIMEOUT=%r", env["CLAIMAI_TOOL_TIMEOUT"])
    if "CLAIMAI_DISABLE_SUPERVISOR" in env:
        updates["disable_supervisor"] = is_truthy(env["CLAIMAI_DISABLE_SUPERVISOR"])
    if "CLAIMAI_ENABLE_SEND" in env:
        updates["enable_send"] = is_truthy(env["CLAIMAI_ENABLE_SEND"])
    if env.get("CLAIMAI_BLOCKED_TOOLS"):
        extra = [p.strip() for p in env["CLAIMAI_BLOCKED_TOOLS"].split(",") if p.strip()]
        updates["blocked_tools"] = list(settings.blocked_tools) + extra
    if env.get("CLAIMAI_AGENT_BACKEND"):
        backend = env["CLAIMAI_AGENT_BACKEND"].strip().lower()
        if backend in ("supervisor", "single"):
            updates["backend"] = backend
        else:
            logger.warning("Unknown CLAIMAI_AGENT_BACKEND=%r, keeping '%s'", backend, settings.backend)
    if env.get("CLAIMAI_MODEL"):
        updates["model"] = settings.model.model_copy(update={"provider": env["CLAIMAI_MODEL"]})

    return settings.model_copy(update=updates)


def _default_workers() -> list[WorkerConfig]:
    from claimai.default_workers import load_default_workers

    return load_default_workers()


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ClaimaiConfig:
    """
    Load and validate configuration.

    Args:
        path: YAML file to read. Defaults to ``$CLAIMAI_CONFIG`` or
            ``./claimai.yaml``; a missing default file is not an error.
        env: Environment mapping (default: ``os.environ``)

    Returns:
        Validated ClaimaiConfig with environment overrides applied

    Raises:
        ConfigError: If the file is missing (when given explicitly) or invalid
    """
    env = os.environ if env is None else env
    explicit = path is not None or bool(env.get("CLAIMAI_CONFIG"))
    if path is None:
        path = Path(env.get("CLAIMAI_CONFIG") or DEFAULT_CONFIG_FILE)

    data: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            loaded = yaml.safe_load(f)
        if loaded is None:
            raise ConfigError(str(path), ["YAML file is empty"])
        if not isinstance(loaded, dict):
            raise ConfigError(str(path), ["top level must be a mapping"])
        data = loaded
    elif explicit:
        raise ConfigError(str(path), ["file not found"])

    try:
        config = ClaimaiConfig(**data)
    except ValidationError as e:
        raise _friendly_validation_errors(str(path), e) from e

    if not config.workers:
        config.workers = _default_workers()
    config.settings = apply_env_overrides(config.settings, env)
    return config

"""
Per-worker tool permission filtering.

Resolution for a worker role:

1. Remove every tool matching the process-wide block-list (always-blocked
   patterns, plus send-type tools unless sending is enabled).
2. Apply the role's deny patterns, then its allow patterns.
3. If that leaves nothing, fall back to the full unblocked set and warn.

A blocked tool is never returned, whatever the role's allow-list says.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Iterable, Mapping

from claimai.core.registry import ToolDescriptor, ToolRegistry
from claimai.models.config import OrchestratorSettings, ToolPermissions

logger = logging.getLogger(__name__)


def _matches_pattern(name: str, pattern: str) -> bool:
    """
    Check if a tool name matches a permission pattern.

    Patterns are shell-style globs over the dotted tool name:
    - "*" matches everything
    - "mail.*" matches mail.messages.list, mail.message.reply, ...
    - "*.send" matches any tool ending in .send
    """
    if pattern == "*":
        return True
    return fnmatch.fnmatchcase(name, pattern)


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(_matches_pattern(name, p) for p in patterns)


def filter_tools(
    tools: list[ToolDescriptor],
    permissions: ToolPermissions,
) -> list[ToolDescriptor]:
    """
    Filter tools by a role's allow/deny patterns (deny wins).

    An empty allow-list allows everything that is not denied.
    """
    if not permissions.allow and not permissions.deny:
        return list(tools)

    filtered = []
    for tool in tools:
        if matches_any(tool.name, permissions.deny):
            continue
        if permissions.allow and not matches_any(tool.name, permissions.allow):
            continue
        filtered.append(tool)
    return filtered


class PermissionFilter:
    """Resolves the tool set a worker role may use. Stateless after construction."""

    def __init__(
        self,
        registry: ToolRegistry,
        role_permissions: Mapping[str, ToolPermissions],
        blocked: Iterable[str] = (),
    ):
        self.registry = registry
        self.role_permissions = dict(role_permissions)
        self.blocked = list(blocked)

    @classmethod
    def from_settings(
        cls,
        registry: ToolRegistry,
        role_permissions: Mapping[str, ToolPermissions],
        settings: OrchestratorSettings,
    ) -> "PermissionFilter":
        return cls(registry, role_permissions, settings.blocked_patterns())

    def is_blocked(self, tool_name: str) -> bool:
        return matches_any(tool_name, self.blocked)

    def unblocked(self) -> list[ToolDescriptor]:
        """Every registered tool not on the block-list, in registry order."""
        return [t for t in self.registry.tools() if not self.is_blocked(t.name)]

    def resolve_tools(self, worker_role: str) -> list[ToolDescriptor]:
        """
        Tools the given worker role may use.

        Unknown roles get the full unblocked set.
        """
        available = self.unblocked()
        permissions = self.role_permissions.get(worker_role)
        if permissions is None:
            return available

        allowed = filter_tools(available, permissions)
        if not allowed and available:
            logger.warning(
                "No tools match the permissions of worker '%s'; falling back to all %d unblocked tools",
                worker_role,
                len(available),
            )
            return available
        return allowed

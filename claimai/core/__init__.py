"""Core module for claimai."""

from claimai.core.aggregator import AggregateResult, aggregate
from claimai.core.context import CallerContext, caller_context, get_caller_context
from claimai.core.engine import WorkerAgent, WorkerResult
from claimai.core.llm import LLMClient, LLMError
from claimai.core.orchestrator import (
    Orchestrator,
    SingleWorkerOrchestrator,
    SupervisorOrchestrator,
    TurnResult,
    create_orchestrator,
)
from claimai.core.permissions import PermissionFilter
from claimai.core.registry import ToolDescriptor, ToolRegistry
from claimai.core.router import RouteRule, Router, RoutingDecision
from claimai.core.session_store import SessionStore

__all__ = [
    "AggregateResult",
    "CallerContext",
    "LLMClient",
    "LLMError",
    "Orchestrator",
    "PermissionFilter",
    "RouteRule",
    "Router",
    "RoutingDecision",
    "SessionStore",
    "SingleWorkerOrchestrator",
    "SupervisorOrchestrator",
    "ToolDescriptor",
    "ToolRegistry",
    "TurnResult",
    "WorkerAgent",
    "WorkerResult",
    "aggregate",
    "caller_context",
    "create_orchestrator",
    "get_caller_context",
]

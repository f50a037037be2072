"""
Orchestration entry point.

``Orchestrator.handle`` runs one turn: it records the user's prompt, lets
workers answer until the turn is over, and returns the consolidated answer
plus the last interactive resource any tool produced.

Two strategies exist and one is picked at startup:

- SupervisorOrchestrator routes through specialized workers (see router.py)
- SingleWorkerOrchestrator sends every turn straight to the general worker
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from claimai.core.context import CallerContext, caller_context
from claimai.core.engine import WorkerAgent, WorkerResult
from claimai.core.llm import LLMClient
from claimai.core.permissions import PermissionFilter
from claimai.core.providers import ProviderError, ToolProvider, create_provider
from claimai.core.registry import ToolRegistry
from claimai.core.router import DEFAULT_RULES, GENERAL_WORKER, RouteRule, Router
from claimai.core.session_store import SessionStore
from claimai.models.config import ClaimaiConfig, ConfigError, ModelConfig
from claimai.models.conversation import Conversation, Message
from claimai.models.tool_result import InteractiveResource

logger = logging.getLogger(__name__)

TURN_FAILURE_MESSAGE = (
    "Entschuldigung, bei der Bearbeitung deiner Anfrage ist ein Fehler aufgetreten. "
    "Bitte versuche es erneut."
)


@dataclass
class TurnResult:
    """What a caller gets back from one turn."""

    response: str
    ui_resource: InteractiveResource | None = None
    thread_id: str = ""
    workers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"response": self.response}
        if self.ui_resource is not None:
            out["uiResource"] = self.ui_resource.to_wire()
        return out


class Orchestrator(ABC):
    """Base strategy: turn bookkeeping shared by every backend."""

    backend = ""

    def __init__(
        self,
        workers: Mapping[str, WorkerAgent],
        permissions: PermissionFilter,
        store: SessionStore,
        general_worker: str = GENERAL_WORKER,
    ):
        if general_worker not in workers:
            raise ConfigError("workers", [f"a worker named '{general_worker}' is required"])
        self.workers = dict(workers)
        self.permissions = permissions
        self.store = store
        self.general_worker = general_worker

    @property
    def registry(self) -> ToolRegistry:
        return self.permissions.registry

    def handle(
        self,
        prompt: str,
        thread_id: str | None = None,
        caller: CallerContext | None = None,
    ) -> TurnResult:
        """
        Run one turn.

        Args:
            prompt: The user's request (must not be blank)
            thread_id: Conversation id (default: ``session_<user_id>``)
            caller: Identity/attributes forwarded to tools for this turn

        Raises:
            ValueError: If the prompt is blank
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt must not be empty")

        caller = caller or CallerContext()
        thread_id = thread_id or caller.default_thread_id()

        with caller_context(caller), self.store.get_lock(thread_id):
            conversation = self.store.get(thread_id)
            conversation.append(Message(role="user", content=prompt.strip()))
            try:
                resource, visited = self._run_turn(conversation)
            except Exception:
                logger.exception("Turn failed on thread '%s'", thread_id)
                return TurnResult(response=TURN_FAILURE_MESSAGE, thread_id=thread_id)

            last = conversation.last_worker_message()
            response = last.content if last is not None else TURN_FAILURE_MESSAGE
            return TurnResult(response=response, ui_resource=resource, thread_id=thread_id, workers=visited)

    @abstractmethod
    def _run_turn(self, conversation: Conversation) -> tuple[InteractiveResource | None, list[str]]:
        """Let workers answer; return the last detected resource and the workers run."""

    def run_worker(self, name: str, conversation: Conversation) -> WorkerResult:
        """Run one worker on the conversation and append its tagged answer."""
        worker = self.workers[name]
        tools = self.permissions.resolve_tools(name)
        logger.info(
            "Thread '%s': running worker '%s' with %d tools", conversation.id, name, len(tools)
        )
        result = worker.invoke(conversation.messages, tools)
        index = conversation.append(Message(role="assistant", content=result.final_text))
        conversation.tag(index, name)
        return result

    def describe_workers(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "description": worker.config.description,
                "tools": [t.name for t in self.permissions.resolve_tools(name)],
            }
            for name, worker in self.workers.items()
        ]

    def close(self) -> None:
        self.registry.close()


class SupervisorOrchestrator(Orchestrator):
    """Routes each turn through the workers the router selects."""

    backend = "supervisor"

    def __init__(
        self,
        workers: Mapping[str, WorkerAgent],
        permissions: PermissionFilter,
        store: SessionStore,
        router: Router,
    ):
        super().__init__(workers, permissions, store, router.general_worker)
        self.router = router

    def _run_turn(self, conversation: Conversation) -> tuple[InteractiveResource | None, list[str]]:
        resource: InteractiveResource | None = None
        visited: list[str] = []

        for _ in range(self.router.max_transitions + 1):
            decision = self.router.decide(conversation)
            if decision.terminate:
                break
            logger.debug("Thread '%s': routing to '%s' (%s)", conversation.id, decision.next_worker, decision.reason)
            result = self.run_worker(decision.next_worker, conversation)
            visited.append(result.worker)
            if result.aggregate is not None and result.aggregate.resource is not None:
                resource = result.aggregate.resource
        else:
            logger.warning("Thread '%s': routing stopped at the transition ceiling", conversation.id)

        return resource, visited


class SingleWorkerOrchestrator(Orchestrator):
    """Sends every turn to the general worker only."""

    backend = "single"

    def _run_turn(self, conversation: Conversation) -> tuple[InteractiveResource | None, list[str]]:
        result = self.run_worker(self.general_worker, conversation)
        resource = result.aggregate.resource if result.aggregate is not None else None
        return resource, [result.worker]


def _load_providers(config: ClaimaiConfig) -> list[ToolProvider]:
    providers: list[ToolProvider] = []
    for provider_config in config.providers:
        if not provider_config.enabled:
            continue
        try:
            providers.append(create_provider(provider_config, config.settings.tool_timeout))
        except ProviderError as e:
            logger.warning("Skipping tool provider '%s': %s", provider_config.name, e)
    return providers


def create_orchestrator(
    config: ClaimaiConfig,
    registry: ToolRegistry | None = None,
    llm_factory: Callable[[ModelConfig], LLMClient] = LLMClient.from_config,
    rules: tuple[RouteRule, ...] = DEFAULT_RULES,
) -> Orchestrator:
    """
    Build the orchestrator selected by the configuration.

    Args:
        config: Loaded configuration (environment overrides already applied)
        registry: Pre-built registry (default: load the configured providers)
        llm_factory: Creates the model client for each worker
        rules: Routing rules for the supervisor backend
    """
    settings = config.settings
    if registry is None:
        registry = ToolRegistry.load(
            _load_providers(config),
            timeout=settings.tool_timeout,
            only={p.name: p.only for p in config.providers if p.only},
        )

    permissions = PermissionFilter.from_settings(
        registry,
        {w.name: w.tools for w in config.workers},
        settings,
    )
    workers = {
        w.name: WorkerAgent(
            w,
            llm_factory(config.model_for(w)),
            registry,
            step_cap=settings.step_cap,
            tool_timeout=settings.tool_timeout,
        )
        for w in config.workers
    }
    store = SessionStore(max_threads=settings.max_threads)

    if settings.use_supervisor:
        router = Router(rules, max_hops=settings.max_hops, workers=workers)
        orchestrator: Orchestrator = SupervisorOrchestrator(workers, permissions, store, router)
    else:
        orchestrator = SingleWorkerOrchestrator(workers, permissions, store)

    logger.info(
        "Orchestrator ready: backend=%s, workers=%s, tools=%d, send %s",
        orchestrator.backend,
        ", ".join(workers),
        len(registry),
        "enabled" if settings.enable_send else "blocked",
    )
    return orchestrator

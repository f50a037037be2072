"""
Tests for the orchestration entry point.
"""

import threading
from unittest.mock import MagicMock

import pytest

from claimai.core.builtin_tools import create_builtin_provider
from claimai.core.context import CallerContext
from claimai.core.orchestrator import (
    TURN_FAILURE_MESSAGE,
    SingleWorkerOrchestrator,
    SupervisorOrchestrator,
    create_orchestrator,
)
from claimai.core.registry import ToolRegistry
from claimai.core.router import CLAIMS_DATA_WORKER, GENERAL_WORKER, TRIAGE_WORKER, RouteRule
from claimai.models.config import ConfigError, ProviderConfig, WorkerConfig


@pytest.fixture
def full_registry(local_provider):
    reg = ToolRegistry.load([local_provider, create_builtin_provider()], timeout=5)
    yield reg
    reg.close()


@pytest.fixture
def build(sample_config, full_registry, text_response):
    """Build an orchestrator whose workers answer with scripted responses."""

    def _build(scripts=None, rules=None, **settings):
        config = sample_config.model_copy(deep=True)
        config.settings = config.settings.model_copy(update=settings)
        kwargs = {"rules": tuple(rules)} if rules is not None else {}
        orch = create_orchestrator(config, registry=full_registry, llm_factory=lambda cfg: MagicMock(), **kwargs)
        scripts = scripts or {}
        for name, worker in orch.workers.items():
            responses = scripts.get(name) or [text_response(f"Antwort von {name}")]
            worker.llm.chat.side_effect = list(responses)
        return orch

    return _build


class TestSupervisorTurns:
    """End-to-end turns through the supervisor."""

    def test_mail_scenario(self, build):
        orch = build()
        assert isinstance(orch, SupervisorOrchestrator)

        result = orch.handle("Was steht in der neuesten E-Mail?", thread_id="t1")

        assert result.workers == [TRIAGE_WORKER, GENERAL_WORKER]
        assert result.response == "Antwort von general"
        assert result.ui_resource is None

        conv = orch.store.get("t1")
        assert [(m.role, m.authored_by) for m in conv.messages] == [
            ("user", None),
            ("assistant", TRIAGE_WORKER),
            ("assistant", GENERAL_WORKER),
        ]

    def test_claims_scenario(self, build):
        result = build().handle("liste alle schadenfälle", thread_id="t1")
        assert result.workers == [CLAIMS_DATA_WORKER, GENERAL_WORKER]

    def test_general_only(self, build):
        assert build().handle("Guten Morgen", thread_id="t1").workers == [GENERAL_WORKER]

    def test_general_sees_specialist_answer(self, build):
        orch = build()
        orch.handle("Was steht in der neuesten E-Mail?", thread_id="t1")
        messages = orch.workers[GENERAL_WORKER].llm.chat.call_args[1]["messages"]
        assert messages[-1] == {"role": "assistant", "content": "[triage_worker] Antwort von triage_worker"}

    def test_ui_resource_from_specialist(self, build, tool_call_response, text_response):
        orch = build(
            scripts={
                TRIAGE_WORKER: [
                    tool_call_response(
                        ("call_1", "draft.mail.compose", {"subject": "Rückfrage", "body": "Bitte Fotos senden."})
                    ),
                    text_response("Entwurf liegt bereit."),
                ]
            }
        )
        result = orch.handle("Antworte auf die neueste E-Mail", thread_id="t1")

        assert result.ui_resource is not None
        assert result.ui_resource.uri.startswith("ui://draft/mail/")
        wire = result.to_dict()
        assert wire["response"] == "Antwort von general"
        assert wire["uiResource"]["mimeType"] == "text/html"

    def test_send_tool_hidden_from_workers(self, build, tool_call_response, text_response):
        orch = build(
            scripts={
                TRIAGE_WORKER: [
                    tool_call_response(("call_1", "mail.message.reply", {"id": "1", "body": "x"})),
                    text_response("Versand ist nicht erlaubt."),
                ]
            }
        )
        orch.handle("Antworte auf die neueste E-Mail", thread_id="t1")

        triage_llm = orch.workers[TRIAGE_WORKER].llm
        offered = [t["function"]["name"] for t in triage_llm.chat.call_args_list[0][1]["tools"]]
        assert "mail.message.reply" not in offered
        tool_msg = triage_llm.chat.call_args_list[1][1]["messages"][-1]
        assert "not_permitted" in tool_msg["content"]

    def test_caller_context_reaches_tools(self, build, local_provider, tool_call_response, text_response):
        seen = []

        @local_provider.tool("mail.whoami", "Current mailbox owner")
        def whoami(context):
            seen.append(context.user_id)
            return context.user_id

        reg = ToolRegistry.load([local_provider], timeout=5)
        try:
            orch = build(
                scripts={
                    TRIAGE_WORKER: [
                        tool_call_response(("call_1", "mail.whoami", {})),
                        text_response("Postfach von carol."),
                    ]
                }
            )
            orch.permissions.registry = reg
            for worker in orch.workers.values():
                worker.registry = reg
            orch.handle("Wem gehört dieses Postfach?", caller=CallerContext(user_id="carol"))
        finally:
            reg.close()

        assert seen == ["carol"]

    def test_hop_limit(self, build):
        result = build(max_hops=1).handle("Neueste E-Mail und liste alle Schadenfälle", thread_id="t1")
        assert result.workers == [TRIAGE_WORKER, GENERAL_WORKER]

    def test_termination_bound(self, build):
        always = lambda text: True  # noqa: E731
        rules = [RouteRule(TRIAGE_WORKER, always), RouteRule(CLAIMS_DATA_WORKER, always)]
        result = build(rules=rules).handle("egal", thread_id="t1")
        assert result.workers == [TRIAGE_WORKER, CLAIMS_DATA_WORKER, GENERAL_WORKER]
        assert len(result.workers) <= len(build().workers) + 1

    def test_multi_turn_continuity(self, build, text_response):
        orch = build(scripts={GENERAL_WORKER: [text_response("eins"), text_response("zwei")]})
        orch.handle("Hallo", thread_id="t1")
        second = orch.handle("Und weiter?", thread_id="t1")

        assert second.response == "zwei"
        assert second.workers == [GENERAL_WORKER]
        messages = orch.workers[GENERAL_WORKER].llm.chat.call_args[1]["messages"]
        assert [m["content"] for m in messages[1:]] == ["Hallo", "eins", "Und weiter?"]

    def test_default_thread_id(self, build):
        orch = build()
        result = orch.handle("Hallo", caller=CallerContext(user_id="dave"))
        assert result.thread_id == "session_dave"
        assert orch.store.peek("session_dave") is not None

    def test_prompt_is_stripped(self, build):
        orch = build()
        orch.handle("  Hallo  ", thread_id="t1")
        assert orch.store.get("t1").messages[0].content == "Hallo"

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_blank_prompt_rejected(self, build, prompt):
        with pytest.raises(ValueError):
            build().handle(prompt, thread_id="t1")

    def test_unexpected_error_becomes_message(self, build):
        orch = build()
        orch.workers[GENERAL_WORKER].invoke = MagicMock(side_effect=RuntimeError("kaputt"))
        result = orch.handle("Hallo", thread_id="t1")
        assert result.response == TURN_FAILURE_MESSAGE

    def test_model_failure_is_natural_language(self, build):
        orch = build(scripts={GENERAL_WORKER: [RuntimeError("model down")]})
        result = orch.handle("Hallo", thread_id="t1")
        assert result.response
        assert "Traceback" not in result.response

    def test_concurrent_threads_are_isolated(self, build, text_response):
        orch = build()
        for worker in orch.workers.values():
            worker.llm.chat.side_effect = lambda messages, tools=None: text_response(messages[1]["content"])

        results = {}

        def run(thread_id: str):
            results[thread_id] = orch.handle(f"Frage {thread_id}", thread_id=thread_id)

        threads = [threading.Thread(target=run, args=(f"t{i}",)) for i in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(6):
            assert results[f"t{i}"].response == f"Frage t{i}"
            assert len(orch.store.get(f"t{i}").messages) == 2


class TestBackends:
    """Tests for backend selection."""

    def test_disable_supervisor(self, build):
        orch = build(disable_supervisor=True)
        assert isinstance(orch, SingleWorkerOrchestrator)
        result = orch.handle("Was steht in der neuesten E-Mail?", thread_id="t1")
        assert result.workers == [GENERAL_WORKER]

    def test_single_backend(self, build):
        assert build(backend="single").backend == "single"

    def test_general_worker_required(self, sample_config, full_registry):
        config = sample_config.model_copy(deep=True)
        config.workers = [WorkerConfig(name="triage_worker", system_prompt="x")]
        with pytest.raises(ConfigError, match="general"):
            create_orchestrator(config, registry=full_registry, llm_factory=lambda cfg: MagicMock())

    def test_describe_workers(self, build):
        info = {w["name"]: w for w in build().describe_workers()}
        assert "draft.mail.compose" in info[TRIAGE_WORKER]["tools"]
        assert "mail.message.reply" not in info[TRIAGE_WORKER]["tools"]
        assert info[CLAIMS_DATA_WORKER]["tools"] == ["cap.cqn.read"]

    def test_providers_loaded_from_config(self, sample_config):
        config = sample_config.model_copy(deep=True)
        config.providers = [
            ProviderConfig(name="builtin", type="builtin"),
            ProviderConfig(name="broken", type="http"),
            ProviderConfig(name="off", type="mcp", command="never-started", enabled=False),
        ]
        orch = create_orchestrator(config, llm_factory=lambda cfg: MagicMock())
        try:
            assert orch.registry.names() == ["draft.mail.compose", "draft.calendar.compose"]
        finally:
            orch.close()

"""Tests for taskpilot.orchestrator.orchestrator

Tests cover:
- end-to-end happy path (France / square root ordering scenario)
- malformed analyzer output → single-task fallback plan
- zero registered models → NoCapableModelError response, no model calls
- step failure → ABORTED response with partial execution path
- cyclic plan → InvalidPlanError response, still recorded in history
- tool failure tolerance and synthesizer fallback
- request deadline → AgentTimeoutError response
- prior context rendering, per-user reference resolution, provider failures
- history sink persistence and failure isolation
- in-memory execution history
"""

import asyncio
import json
from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest

from taskpilot.context import ContextManager
from taskpilot.errors import AgentTimeoutError, ModelCallError
from taskpilot.history import InMemoryHistorySink
from taskpilot.orchestrator import (
    AgentOrchestrator,
    CapabilityDescriptor,
    CapabilityRegistry,
    ExecutionState,
    OrchestratorConfig,
)
from taskpilot.orchestrator.models import ExecutionPlan, PlanStep, Task, TaskType
from taskpilot.orchestrator.plan_builder import PlanBuilder
from taskpilot.tools import tool


@dataclass
class MockLLMResponse:
    content: str


CLAUDE = CapabilityDescriptor.model("claude", "claude-3-5-sonnet-20241022")
OPENAI = CapabilityDescriptor.model("openai", "gpt-4o")

FRANCE_ANALYSIS = json.dumps({
    "tasks": [
        {"description": "Look up the capital of France", "type": "data", "priority": 4},
        {"description": "Compute the square root of 144", "type": "code", "priority": 5},
    ],
    "suggestedTools": ["calculator"],
    "modelTypes": ["reasoning"],
})


@tool(tags=["code", "data"])
def calculator(text: str) -> str:
    """Evaluate arithmetic"""
    return "sqrt(144) = 12"


class PipelineModelCaller:
    """Routes each call by prompt kind: analysis, step, or synthesis."""

    def __init__(self, analysis=FRANCE_ANALYSIS, step_replies=None, synthesis="Final answer",
                 delay=0.0):
        self.analysis = analysis
        self.step_replies = step_replies or {}
        self.synthesis = synthesis
        self.delay = delay
        self.calls = []

    async def call(self, provider_id, messages, settings=None):
        prompt = messages[-1]["content"]
        if "determines which tools" in prompt:
            kind, reply = "analysis", self.analysis
        elif "working on the following task" in prompt:
            task = prompt.splitlines()[0].split("task: ", 1)[1]
            kind, reply = "step", self.step_replies.get(task, f"done: {task}")
        else:
            kind, reply = "synthesis", self.synthesis
        self.calls.append((kind, provider_id, prompt))

        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(reply, BaseException):
            raise reply
        return MockLLMResponse(content=reply)

    def kinds(self):
        return [kind for kind, _, _ in self.calls]


def _orchestrator(caller, models=(CLAUDE, OPENAI), tools=(calculator,), **kwargs):
    registry = CapabilityRegistry(models=list(models), tools=list(tools))
    return AgentOrchestrator(registry=registry, model_caller=caller, **kwargs)


# ── Tests: happy path ──


class TestProcessRequest:

    @pytest.mark.asyncio
    async def test_france_square_root_scenario(self):
        caller = PipelineModelCaller()
        orchestrator = _orchestrator(caller)

        response = await orchestrator.process_request(
            "What is the capital of France, and what is the square root of 144?"
        )

        assert response.status == ExecutionState.COMPLETED
        assert response.response == "Final answer"
        assert response.error is None
        assert response.model_used == "claude/claude-3-5-sonnet-20241022"

        steps = response.execution_path["steps"]
        assert [s["type"] for s in steps] == ["code", "data"]
        assert [s["priority"] for s in steps] == [5, 4]
        assert steps[1]["depends_on"] == [0]
        assert [s["status"] for s in steps] == ["completed", "completed"]
        assert steps[0]["tools"] == ["calculator"]
        assert steps[0]["tool_outputs"][0]["output"] == "sqrt(144) = 12"
        assert response.execution_path["dependencies"] == {"0": [], "1": [0]}

        assert caller.kinds() == ["analysis", "step", "step", "synthesis"]
        step_tasks = [p.splitlines()[0] for k, _, p in caller.calls if k == "step"]
        assert step_tasks[0].endswith("Compute the square root of 144")
        assert step_tasks[1].endswith("Look up the capital of France")

    @pytest.mark.asyncio
    async def test_step_models_follow_task_type(self):
        caller = PipelineModelCaller()
        await _orchestrator(caller).process_request("q")

        step_providers = [p for k, p, _ in caller.calls if k == "step"]
        # code and data both prefer openai over claude
        assert step_providers == ["openai", "openai"]
        assert caller.calls[0][1] == "claude"  # analysis
        assert caller.calls[-1][1] == "claude"  # synthesis

    @pytest.mark.asyncio
    async def test_reasoning_trace_in_response(self):
        response = await _orchestrator(PipelineModelCaller()).process_request("q")

        assert len(response.reasoning) == 2
        assert response.execution_path["reasoning"] == list(response.reasoning)
        assert response.execution_path["state"] == "completed"

    @pytest.mark.asyncio
    async def test_malformed_analysis_uses_single_task(self):
        caller = PipelineModelCaller(analysis="Sure! I'd use a calculator.")
        response = await _orchestrator(caller).process_request("What is 2+2?")

        steps = response.execution_path["steps"]
        assert len(steps) == 1
        assert steps[0]["task"] == "What is 2+2?"
        assert steps[0]["type"] == "reasoning"
        assert steps[0]["priority"] == 3
        assert steps[0]["tools"] == []
        assert response.status == ExecutionState.COMPLETED

    @pytest.mark.asyncio
    async def test_tool_failure_partially_completes(self):
        @tool(name="calculator", tags=["code"])
        def broken(text: str) -> str:
            raise ArithmeticError("overflow")

        caller = PipelineModelCaller()
        response = await _orchestrator(caller, tools=[broken]).process_request("q")

        assert response.status == ExecutionState.PARTIALLY_COMPLETED
        assert response.error is None
        assert response.execution_path["steps"][0]["tool_outputs"][0]["failed"] is True
        assert caller.kinds()[-1] == "synthesis"

    @pytest.mark.asyncio
    async def test_synthesis_failure_concatenates(self):
        caller = PipelineModelCaller(
            step_replies={
                "Compute the square root of 144": "12",
                "Look up the capital of France": "Paris",
            },
            synthesis=ModelCallError("claude", "timeout"),
        )
        response = await _orchestrator(caller).process_request("q")

        assert response.response == "12\n\nParis"
        assert response.status == ExecutionState.COMPLETED


# ── Tests: fatal errors ──


class TestFatalErrors:

    @pytest.mark.asyncio
    async def test_no_models_makes_no_calls(self):
        caller = AsyncMock()
        orchestrator = _orchestrator(caller, models=())

        response = await orchestrator.process_request("anything")

        assert caller.call.await_count == 0
        assert response.status == ExecutionState.ABORTED
        assert response.error_type == "NoCapableModelError"
        assert response.model_used is None
        assert response.execution_path["steps"] == []

    @pytest.mark.asyncio
    async def test_step_failure_returns_partial_path(self):
        caller = PipelineModelCaller(
            step_replies={"Look up the capital of France": ModelCallError("openai", "503")}
        )
        response = await _orchestrator(caller).process_request("q")

        assert response.status == ExecutionState.ABORTED
        assert response.error_type == "StepExecutionError"
        assert response.error.step_index == 1
        assert response.response == ""
        steps = response.execution_path["steps"]
        assert [s["status"] for s in steps] == ["completed", "failed"]
        assert "synthesis" not in caller.kinds()

    @pytest.mark.asyncio
    async def test_pending_steps_marked(self):
        analysis = json.dumps({
            "tasks": [
                {"description": "one", "type": "reasoning", "priority": 5},
                {"description": "two", "type": "reasoning", "priority": 4},
                {"description": "three", "type": "reasoning", "priority": 3},
            ],
            "suggestedTools": [],
            "modelTypes": [],
        })
        caller = PipelineModelCaller(analysis=analysis, step_replies={"one": RuntimeError("down")})
        response = await _orchestrator(caller).process_request("q")

        assert [s["status"] for s in response.execution_path["steps"]] == [
            "failed", "pending", "pending",
        ]

    @pytest.mark.asyncio
    async def test_deadline_returns_timeout_response(self):
        caller = PipelineModelCaller(delay=0.2)
        response = await _orchestrator(caller).process_request("q", timeout=0.05)

        assert response.status == ExecutionState.ABORTED
        assert response.error_type == "AgentTimeoutError"
        assert isinstance(response.error, AgentTimeoutError)
        assert response.error.timeout == 0.05

    @pytest.mark.asyncio
    async def test_default_timeout_from_config(self):
        caller = PipelineModelCaller(delay=0.2)
        orchestrator = _orchestrator(caller, config=OrchestratorConfig(default_timeout=0.05))

        response = await orchestrator.process_request("q")

        assert response.error_type == "AgentTimeoutError"

    @pytest.mark.asyncio
    async def test_timeout_keeps_completed_steps(self):
        class SlowSecondStep(PipelineModelCaller):
            async def call(self, provider_id, messages, settings=None):
                if "capital of France" in messages[-1]["content"].splitlines()[0]:
                    await asyncio.sleep(1)
                return await super().call(provider_id, messages, settings)

        response = await _orchestrator(SlowSecondStep()).process_request("q", timeout=0.2)

        assert response.error_type == "AgentTimeoutError"
        statuses = [s["status"] for s in response.execution_path["steps"]]
        assert statuses == ["completed", "pending"]

    @pytest.mark.asyncio
    async def test_cyclic_plan_returns_invalid_plan_response(self, monkeypatch):
        def cyclic_plan(self, request, analysis):
            steps = [
                PlanStep(
                    i, Task(f"task {i}", TaskType.REASONING, 3), CLAUDE,
                    depends_on=frozenset({1 - i}),
                )
                for i in range(2)
            ]
            return ExecutionPlan(request, steps, {0: [1], 1: [0]}, CLAUDE)

        monkeypatch.setattr(PlanBuilder, "build_plan", cyclic_plan)
        sink = InMemoryHistorySink()
        caller = PipelineModelCaller()
        orchestrator = _orchestrator(caller, history_sink=sink)

        response = await orchestrator.process_request("q", user_id="u1")

        assert response.status == ExecutionState.ABORTED
        assert response.error_type == "InvalidPlanError"
        assert [s["status"] for s in response.execution_path["steps"]] == ["pending", "pending"]
        assert caller.kinds() == ["analysis"]
        assert orchestrator.get_execution_history(user_id="u1")[0]["error_type"] == "InvalidPlanError"
        assert len(sink.records()) == 1

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        caller = PipelineModelCaller(delay=5)
        task = asyncio.ensure_future(_orchestrator(caller).process_request("q"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


# ── Tests: context ──


class TestPriorContext:

    @pytest.mark.asyncio
    async def test_literal_context_text(self):
        caller = PipelineModelCaller()
        await _orchestrator(caller).process_request("q", prior_context="User lives in Lyon")

        assert all("User lives in Lyon" in prompt for kind, _, prompt in caller.calls if kind != "synthesis")

    @pytest.mark.asyncio
    async def test_references_resolved_through_provider(self):
        contexts = ContextManager()
        item = contexts.add("Budget is 4.2M", type="file", label="budget.xlsx")
        caller = PipelineModelCaller()
        orchestrator = _orchestrator(caller, context_provider=contexts)

        await orchestrator.process_request("q", prior_context=[item.reference, "ctx_deadbeef"])

        analysis_prompt = caller.calls[0][2]
        assert "Budget is 4.2M" in analysis_prompt
        assert "ctx_deadbeef" not in analysis_prompt

    @pytest.mark.asyncio
    async def test_provider_failure_skips_reference(self, caplog):
        class FlakyProvider:
            def resolve(self, reference, user_id="default"):
                if reference == "ctx_broken":
                    raise ConnectionError("context store down")
                return "Budget is 4.2M"

        caller = PipelineModelCaller()
        orchestrator = _orchestrator(caller, context_provider=FlakyProvider())

        response = await orchestrator.process_request("q", prior_context=["ctx_broken", "ctx_ok"])

        assert response.status == ExecutionState.COMPLETED
        assert "Budget is 4.2M" in caller.calls[0][2]
        assert "Context provider failed on ctx_broken" in caplog.text
        assert len(orchestrator.execution_history) == 1

    @pytest.mark.asyncio
    async def test_references_scoped_to_requesting_user(self):
        contexts = ContextManager()
        item = contexts.add("u1 private notes", user_id="u1")
        caller = PipelineModelCaller()
        orchestrator = _orchestrator(caller, context_provider=contexts)

        await orchestrator.process_request("q", prior_context=[item.reference], user_id="u2")
        await orchestrator.process_request("q", prior_context=[item.reference], user_id="u1")

        analysis_prompts = [prompt for kind, _, prompt in caller.calls if kind == "analysis"]
        assert "u1 private notes" not in analysis_prompts[0]
        assert "u1 private notes" in analysis_prompts[1]

    @pytest.mark.asyncio
    async def test_context_items_rendered(self):
        contexts = ContextManager()
        item = contexts.add("Q3 notes", type="text", label="notes")
        caller = PipelineModelCaller()

        await _orchestrator(caller).process_request("q", prior_context=[item])

        assert "[text: notes]\nQ3 notes" in caller.calls[0][2]

    @pytest.mark.asyncio
    async def test_only_most_recent_items_used(self):
        contexts = ContextManager()
        refs = [contexts.add(f"note-{i}-end").reference for i in range(5)]
        caller = PipelineModelCaller()
        orchestrator = _orchestrator(
            caller, context_provider=contexts, config=OrchestratorConfig(max_context_items=2)
        )

        await orchestrator.process_request("q", prior_context=refs)

        prompt = caller.calls[0][2]
        assert "note-4-end" in prompt and "note-3-end" in prompt
        assert "note-2-end" not in prompt


# ── Tests: history ──


class TestHistory:

    @pytest.mark.asyncio
    async def test_sink_receives_request(self):
        sink = InMemoryHistorySink()
        orchestrator = _orchestrator(PipelineModelCaller(), history_sink=sink)

        response = await orchestrator.process_request("q", "conv-1", user_id="alice")

        records = sink.records(user_id="alice")
        assert len(records) == 1
        assert records[0]["conversation_id"] == "conv-1"
        assert records[0]["request"] == "q"
        assert records[0]["response"] == response.response
        assert records[0]["execution_path"] == response.execution_path

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_response(self):
        sink = AsyncMock()
        sink.save.side_effect = OSError("disk full")
        orchestrator = _orchestrator(PipelineModelCaller(), history_sink=sink)

        response = await orchestrator.process_request("q")

        assert response.status == ExecutionState.COMPLETED
        assert sink.save.await_count == 1

    @pytest.mark.asyncio
    async def test_aborted_requests_recorded(self):
        sink = InMemoryHistorySink()
        orchestrator = _orchestrator(AsyncMock(), models=(), history_sink=sink)

        await orchestrator.process_request("q")

        assert len(sink.records()) == 1
        assert orchestrator.execution_history[-1]["status"] == "aborted"
        assert orchestrator.execution_history[-1]["error_type"] == "NoCapableModelError"

    @pytest.mark.asyncio
    async def test_execution_history_bounded(self):
        orchestrator = _orchestrator(
            PipelineModelCaller(), config=OrchestratorConfig(history_limit=2)
        )
        for i in range(3):
            await orchestrator.process_request(f"q{i}", user_id="bob" if i else "amy")

        assert [e["request"] for e in orchestrator.execution_history] == ["q1", "q2"]
        assert [e["request"] for e in orchestrator.get_execution_history(user_id="bob", limit=1)] == ["q2"]


# ── Tests: catalog ──


class TestCatalog:

    @pytest.mark.asyncio
    async def test_model_registered_between_requests_is_used(self):
        caller = AsyncMock()
        caller.call.side_effect = PipelineModelCaller().call
        orchestrator = _orchestrator(caller, models=())

        first = await orchestrator.process_request("q")
        orchestrator.register_model(CLAUDE)
        second = await orchestrator.process_request("q")

        assert first.status == ExecutionState.ABORTED
        assert second.status == ExecutionState.COMPLETED

    def test_tools_argument_registers_tools(self):
        @tool(tags=["data"])
        def lookup(text: str) -> str:
            return text

        orchestrator = AgentOrchestrator(
            registry=CapabilityRegistry(models=[CLAUDE]),
            model_caller=AsyncMock(),
            tools=[lookup],
        )
        assert orchestrator.registry.get_tool("lookup") is lookup

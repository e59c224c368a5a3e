"""
TaskPilot Orchestrator - Central coordinator for agent requests

Flow of ``process_request``:
    1. Snapshot the CapabilityRegistry for the whole request
    2. Resolve prior context (references go through the context provider)
    3. RequestAnalyzer: decompose the request into typed tasks
    4. PlanBuilder: bind tasks to models and tools, order them, chain them
    5. ExecutionEngine: run the plan level by level
    6. ResultSynthesizer: merge outputs into one answer
    7. Persist to the history sink and the in-memory execution history

Fatal failures (no models, an invalid plan graph, a failed step, the
deadline expiring) come back as an AgentResponse with ``status=ABORTED`` and the partial execution path;
they are not raised.

Example:
    orchestrator = AgentOrchestrator(
        registry=CapabilityRegistry(models=[...], tools=BUILTIN_TOOLS),
        model_caller=ModelCaller({"claude": claude_client}),
        history_sink=JsonlHistorySink("history.jsonl"),
    )
    response = await orchestrator.process_request("What is the square root of 144?")
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..errors import AgentExecutionError, AgentTimeoutError, NoCapableModelError, StepExecutionError
from .audit_logger import AuditLogger
from .config import OrchestratorConfig
from .execution_engine import ExecutionEngine
from .models import (
    AgentResponse,
    CapabilityDescriptor,
    ExecutionPlan,
    ExecutionResult,
    ExecutionState,
    build_execution_path,
)
from .plan_builder import PlanBuilder
from .prompts import join_blocks
from .registry import CapabilityRegistry
from .request_analyzer import RequestAnalyzer
from .synthesizer import ResultSynthesizer

logger = logging.getLogger(__name__)

PriorContext = Union[str, Sequence[Any], None]


@dataclass
class _RequestState:
    """Per-request progress, kept outside the deadline so a timeout can report it."""
    plan: Optional[ExecutionPlan] = None
    result: ExecutionResult = field(default_factory=ExecutionResult)


def _model_label(model: Optional[CapabilityDescriptor]) -> Optional[str]:
    if model is None:
        return None
    return f"{model.provider_id}/{model.identifier}"


class AgentOrchestrator:
    """
    Runs requests through analyze -> plan -> execute -> synthesize.

    Args:
        registry: CapabilityRegistry; mutate it only between requests
        model_caller: ModelCallerProtocol implementation
        tools: extra tools registered into the registry at construction
        config: OrchestratorConfig
        history_sink: optional HistorySinkProtocol implementation
        context_provider: optional ContextProviderProtocol for references
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        model_caller: Any,
        tools: Optional[Iterable[Any]] = None,
        config: Optional[OrchestratorConfig] = None,
        history_sink: Optional[Any] = None,
        context_provider: Optional[Any] = None,
    ):
        self.registry = registry
        self.model_caller = model_caller
        self.config = config or OrchestratorConfig()
        self.history_sink = history_sink
        self.context_provider = context_provider
        self.execution_history: deque = deque(maxlen=self.config.history_limit)

        for tool in tools or ():
            self.registry.register_tool(tool)

    # ===== Catalog passthroughs =====

    def register_model(self, model: CapabilityDescriptor) -> None:
        self.registry.register_model(model)

    def register_tool(self, tool: Any) -> None:
        self.registry.register_tool(tool)

    def get_execution_history(
        self, user_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Most recent entries last, optionally filtered by user."""
        entries = [e for e in self.execution_history if user_id is None or e["user_id"] == user_id]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    # ===== Main entry point =====

    async def process_request(
        self,
        request: str,
        conversation_id: Optional[str] = None,
        prior_context: PriorContext = None,
        *,
        user_id: str = "default",
        timeout: Optional[float] = None,
    ) -> AgentResponse:
        """
        Handle one user request end to end.

        Args:
            request: Free-form user request
            conversation_id: Conversation the request belongs to
            prior_context: Literal context text, or a sequence of context
                references / ContextItems resolved through the provider
            user_id: Owner of the request (history and audit)
            timeout: Deadline for the whole pipeline in seconds; defaults to
                ``config.default_timeout``

        Returns:
            AgentResponse. Fatal errors are reported via ``status``,
            ``error`` and ``error_type``.
        """
        request_id = uuid.uuid4().hex
        audit = AuditLogger(request_id=request_id, user_id=user_id)
        state = _RequestState()
        deadline = timeout if timeout is not None else self.config.default_timeout
        start_time = time.monotonic()

        logger.info(f"[Orchestrator] request={request_id} user={user_id} deadline={deadline}")

        try:
            if deadline is None:
                response = await self._run(
                    request, prior_context, state, audit, request_id, user_id
                )
            else:
                try:
                    response = await asyncio.wait_for(
                        self._run(request, prior_context, state, audit, request_id, user_id),
                        timeout=deadline,
                    )
                except asyncio.TimeoutError as e:
                    state.result.state = ExecutionState.ABORTED
                    raise AgentTimeoutError(deadline, state.result) from e
        except AgentExecutionError as e:
            response = self._error_response(e, state, request_id)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        audit.log_request_finished(response.status.value, duration_ms, response.error_type)
        if response.is_error():
            logger.warning(
                f"[Orchestrator] request={request_id} aborted ({response.error_type}): {response.error}"
            )
        else:
            logger.info(f"[Orchestrator] request={request_id} {response.status.value} in {duration_ms}ms")

        await self._record(response, request, conversation_id, user_id)
        return response

    async def _run(
        self,
        request: str,
        prior_context: PriorContext,
        state: _RequestState,
        audit: AuditLogger,
        request_id: str,
        user_id: str,
    ) -> AgentResponse:
        registry = self.registry.snapshot()
        models = registry.list_models()
        if not models:
            raise NoCapableModelError()

        tools = registry.list_tools()
        context_text = self._render_context(prior_context, user_id)

        # Step 1: Analyze
        analyzer = RequestAnalyzer(
            self.model_caller,
            max_tokens=self.config.analysis_max_tokens,
            max_retries=self.config.llm_max_retries,
            retry_base_delay=self.config.llm_retry_base_delay,
        )
        analysis_model = registry.find_best_for_tag("analysis") or models[0]
        analysis = await analyzer.analyze(
            request, context_text, analysis_model, [t.name for t in tools]
        )
        audit.log_analysis(len(analysis.tasks), analysis.suggested_tools, analysis.used_fallback)

        # Step 2: Plan
        plan = PlanBuilder(registry).build_plan(request, analysis)
        state.plan = plan
        audit.log_plan_built(plan)

        # Step 3: Execute
        engine = ExecutionEngine(self.model_caller, tools=tools, config=self.config, audit=audit)
        result = await engine.execute(plan, context_text, state.result)

        # Step 4: Synthesize
        synthesizer = ResultSynthesizer(
            self.model_caller,
            registry,
            max_retries=self.config.llm_max_retries,
            retry_base_delay=self.config.llm_retry_base_delay,
            max_chars=self.config.max_synthesis_chars,
        )
        text = await synthesizer.synthesize(request, result, plan)
        audit.log_synthesis(_model_label(synthesizer.last_model), synthesizer.last_used_fallback)

        return AgentResponse(
            response=text,
            execution_path=build_execution_path(plan, result),
            model_used=_model_label(plan.primary_model),
            status=result.state,
            reasoning=tuple(result.reasoning_trace),
            request_id=request_id,
        )

    def _error_response(
        self, error: AgentExecutionError, state: _RequestState, request_id: str
    ) -> AgentResponse:
        result = error.partial_result if isinstance(error.partial_result, ExecutionResult) else state.result
        failed_step = error.step_index if isinstance(error, StepExecutionError) else None
        plan = state.plan
        return AgentResponse(
            response="",
            execution_path=build_execution_path(plan, result, failed_step=failed_step),
            model_used=_model_label(plan.primary_model) if plan else None,
            status=ExecutionState.ABORTED,
            reasoning=tuple(result.reasoning_trace),
            error=error,
            error_type=type(error).__name__,
            request_id=request_id,
        )

    # ===== Context & history =====

    def _render_context(self, prior_context: PriorContext, user_id: str = "default") -> str:
        """Flatten prior context into prompt text.

        Only the most recent ``max_context_items`` entries are used. String
        entries are references into *user_id*'s context store; ones the
        provider cannot resolve, or fails on, are skipped.
        """
        if not prior_context:
            return ""
        if isinstance(prior_context, str):
            return join_blocks([prior_context], self.config.max_context_chars)

        blocks: List[str] = []
        for item in list(prior_context)[-self.config.max_context_items:]:
            if isinstance(item, str):
                content = self._resolve_reference(item, user_id)
                if content is None:
                    logger.debug(f"[Orchestrator] Unresolved context reference {item}, skipped")
                    continue
                blocks.append(content)
            elif hasattr(item, "render"):
                blocks.append(item.render())
            else:
                blocks.append(str(getattr(item, "content", item)))
        return join_blocks(blocks, self.config.max_context_chars)

    def _resolve_reference(self, reference: str, user_id: str) -> Optional[str]:
        if self.context_provider is None:
            return None
        try:
            return self.context_provider.resolve(reference, user_id=user_id)
        except Exception as e:
            logger.warning(f"[Orchestrator] Context provider failed on {reference}: {e}")
            return None

    async def _record(
        self,
        response: AgentResponse,
        request: str,
        conversation_id: Optional[str],
        user_id: str,
    ) -> None:
        self.execution_history.append({
            "request_id": response.request_id,
            "user_id": user_id,
            "conversation_id": conversation_id,
            "request": request,
            "status": response.status.value,
            "model_used": response.model_used,
            "error_type": response.error_type,
            "created_at": response.created_at.isoformat(),
        })

        if self.history_sink is None:
            return
        try:
            await self.history_sink.save(
                user_id, conversation_id, request, response.execution_path, response.response
            )
        except Exception as e:
            logger.error(f"[Orchestrator] History sink failed for request={response.request_id}: {e}")

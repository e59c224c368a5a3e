"""Execution Engine - Walks a plan's dependency graph and runs each step.

For every step the engine calls the assigned model with a prompt built from
the task, the original request and the outputs of the step's declared
dependencies, then feeds the step output to each assigned tool.

Steps in the same topological level run concurrently; a semaphore bounds the
number of in-flight external calls. Results are recorded in step order
regardless of completion order.

Failure semantics:
- a tool failure is recorded as a failed ToolOutput and execution continues
- dependencies naming unknown steps, or forming a cycle, abort before any
  call with InvalidPlanError
- a model call failure aborts the plan with StepExecutionError carrying the
  partial ExecutionResult
"""

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import (
    InvalidPlanError,
    ModelCallError,
    StepExecutionError,
    ToolExecutionError,
)
from ..llm.caller import CallSettings
from .audit_logger import AuditLogger
from .config import OrchestratorConfig
from .dag_executor import topological_sort
from .models import (
    ExecutionPlan,
    ExecutionResult,
    ExecutionState,
    PlanStep,
    StepResult,
    ToolOutput,
)
from .prompts import join_blocks, render_step_prompt, truncate

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """
    Executes ExecutionPlans.

    Args:
        model_caller: object with ``async call(provider_id, messages, settings)``
        tools: optional tool set; when given, steps may only invoke tools
            from it (looked up by name)
        config: OrchestratorConfig (workers, timeouts, prompt size limits)
        audit: AuditLogger for structured step/tool events

    Example:
        engine = ExecutionEngine(model_caller, tools=registry.list_tools())
        result = await engine.execute(plan)
    """

    def __init__(
        self,
        model_caller: Any,
        tools: Optional[Iterable[Any]] = None,
        config: Optional[OrchestratorConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.model_caller = model_caller
        self._tools: Optional[Dict[str, Any]] = (
            {t.name: t for t in tools} if tools is not None else None
        )
        self.config = config or OrchestratorConfig()
        self.audit = audit or AuditLogger()

    async def execute(
        self,
        plan: ExecutionPlan,
        prior_context: str = "",
        result: Optional[ExecutionResult] = None,
    ) -> ExecutionResult:
        """Run *plan* to completion.

        Every step in ``plan.steps`` runs exactly once. A step's dependencies
        are the union of its ``depends_on`` set and its entry in
        ``plan.dependency_graph``; the same edges order execution and select
        the outputs folded into the step's prompt.

        Args:
            plan: The plan to execute
            prior_context: Resolved conversation context text
            result: Optional ExecutionResult to append into, so callers keep
                the partial state if the request is cancelled

        Raises:
            StepExecutionError: a step's model call failed
            InvalidPlanError: a dependency names an unknown step, a step
                index repeats, or the edges form a cycle
        """
        result = result if result is not None else ExecutionResult()
        edges = self._plan_edges(plan, result)
        try:
            levels = topological_sort(edges)
        except ValueError as e:
            raise self._invalid_plan(str(e), result) from e
        steps = {step.index: step for step in plan.steps}
        semaphore = asyncio.Semaphore(max(1, self.config.max_workers))
        context = truncate(prior_context or "", self.config.max_context_chars)

        result.state = ExecutionState.EXECUTING
        logger.info(f"[ExecutionEngine] Executing {len(steps)} steps in {len(levels)} levels")

        for level in levels:
            level_steps = [steps[i] for i in level]
            outcomes = await asyncio.gather(
                *(
                    self._run_step(step, edges[step.index], plan, context, result, semaphore)
                    for step in level_steps
                ),
                return_exceptions=True,
            )

            failure: Optional[Tuple[PlanStep, BaseException]] = None
            for step, outcome in zip(level_steps, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException) and failure is None:
                    failure = (step, outcome)

            if failure is not None:
                step, error = failure
                result.state = ExecutionState.ABORTED
                result.reasoning_trace.append(f"Step {step.index} failed: {error}")
                logger.error(f"[ExecutionEngine] Step {step.index} failed, aborting plan: {error}")
                raise StepExecutionError(step.index, error, result)

        result.state = (
            ExecutionState.PARTIALLY_COMPLETED if result.has_tool_failures
            else ExecutionState.COMPLETED
        )
        return result

    def _plan_edges(self, plan: ExecutionPlan, result: ExecutionResult) -> Dict[int, List[int]]:
        """Merge step-declared and graph-declared dependencies per step index."""
        edges: Dict[int, List[int]] = {}
        for step in plan.steps:
            if step.index in edges:
                raise self._invalid_plan(f"Duplicate step index {step.index}", result)
            edges[step.index] = sorted(step.depends_on)

        for node, deps in plan.dependency_graph.items():
            if node not in edges:
                raise self._invalid_plan(f"Dependency graph names unknown step {node}", result)
            edges[node] = sorted(set(edges[node]).union(deps))

        for node, deps in edges.items():
            for dep in deps:
                if dep not in edges:
                    raise self._invalid_plan(
                        f"Step {node} depends on unknown step {dep}", result
                    )
        return edges

    def _invalid_plan(self, message: str, result: ExecutionResult) -> InvalidPlanError:
        result.state = ExecutionState.ABORTED
        result.reasoning_trace.append(f"Invalid plan: {message}")
        logger.error(f"[ExecutionEngine] Invalid plan: {message}")
        return InvalidPlanError(message, result)

    async def _run_step(
        self,
        step: PlanStep,
        dependencies: List[int],
        plan: ExecutionPlan,
        context: str,
        result: ExecutionResult,
        semaphore: asyncio.Semaphore,
    ) -> None:
        prompt = render_step_prompt(
            step.task.description,
            plan.request_text,
            self._dependency_outputs(dependencies, plan, result),
            context,
        )
        model = step.assigned_model
        started = time.monotonic()
        try:
            async with semaphore:
                response = await asyncio.wait_for(
                    self.model_caller.call(
                        model.provider_id,
                        [{"role": "user", "content": prompt}],
                        CallSettings(model=model.identifier),
                    ),
                    timeout=self.config.step_timeout,
                )
            output = getattr(response, "content", None)
            if not isinstance(output, str) or not output.strip():
                raise ModelCallError(model.provider_id, "empty content")
        except Exception as e:
            self.audit.log_step(step.index, False, _elapsed_ms(started), error=str(e))
            raise

        self.audit.log_step(step.index, True, _elapsed_ms(started))
        result.add_step_result(StepResult(step.index, output, step.task.type))

        tool_outputs = await self._run_tools(step, output, semaphore)
        result.add_tool_outputs(tool_outputs)

        tools_note = ""
        if tool_outputs:
            failed = sum(1 for t in tool_outputs if t.failed)
            tools_note = f" with tools {', '.join(t.tool_name for t in tool_outputs)}"
            if failed:
                tools_note += f" ({failed} failed)"
        result.reasoning_trace.append(
            f"Executed task: {step.task.description} [{step.task.type.value}] "
            f"using {model.provider_id}/{model.identifier}{tools_note}"
        )
        for tool_output in tool_outputs:
            if tool_output.failed:
                result.reasoning_trace.append(
                    f"Tool {tool_output.tool_name} failed on step {step.index}: {tool_output.error}"
                )

    async def _run_tools(
        self, step: PlanStep, step_output: str, semaphore: asyncio.Semaphore
    ) -> List[ToolOutput]:
        if not step.assigned_tools:
            return []
        return list(await asyncio.gather(
            *(self._run_tool(tool, step, step_output, semaphore) for tool in step.assigned_tools)
        ))

    async def _run_tool(
        self, tool: Any, step: PlanStep, step_output: str, semaphore: asyncio.Semaphore
    ) -> ToolOutput:
        started = time.monotonic()
        try:
            executor = self._resolve_tool(tool)
            async with semaphore:
                output = await asyncio.wait_for(
                    executor.execute(step_output), timeout=self.config.tool_timeout
                )
        except Exception as e:
            error = ToolExecutionError(tool.name, step.index, e)
            logger.warning(f"[ExecutionEngine] {error}")
            self.audit.log_tool_execution(
                tool.name, step.index, False, _elapsed_ms(started), error=str(e)
            )
            return ToolOutput(
                tool_name=tool.name,
                step_index=step.index,
                output="",
                failed=True,
                error=f"{type(e).__name__}: {e}",
            )

        self.audit.log_tool_execution(tool.name, step.index, True, _elapsed_ms(started))
        return ToolOutput(
            tool_name=tool.name,
            step_index=step.index,
            output="" if output is None else str(output),
        )

    def _resolve_tool(self, tool: Any) -> Any:
        if self._tools is None:
            return tool
        resolved = self._tools.get(tool.name)
        if resolved is None:
            raise LookupError(f"tool '{tool.name}' is not available to this engine")
        return resolved

    def _dependency_outputs(
        self, dependencies: List[int], plan: ExecutionPlan, result: ExecutionResult
    ) -> str:
        descriptions = {s.index: s.task.description for s in plan.steps}
        blocks: List[str] = []
        for dep in dependencies:
            for output in result.step_results:
                if output.step_index == dep:
                    blocks.append(f"Previous task ({descriptions.get(dep, dep)}) output: {output.output}")
            for tool_output in result.tool_outputs:
                if tool_output.step_index == dep and not tool_output.failed:
                    blocks.append(f"Tool {tool_output.tool_name} output: {tool_output.output}")
        return join_blocks(blocks, self.config.max_dependency_chars)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)

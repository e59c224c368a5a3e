"""Result Synthesizer - Turns step and tool outputs into one answer.

Makes a single model call with the request, the reasoning trace and every
output. If that call fails the step outputs are concatenated instead, so
synthesis never fails a request.
"""

import logging
from typing import Any, Optional

from ..errors import ModelCallError, SynthesisError
from ..llm.caller import CallSettings, call_with_retry
from .models import CapabilityDescriptor, ExecutionPlan, ExecutionResult
from .prompts import render_synthesis_prompt

logger = logging.getLogger(__name__)

SYNTHESIS_TEMPERATURE = 0.7


def concatenate_outputs(execution_result: ExecutionResult) -> str:
    """Fallback answer: step outputs joined in step order."""
    return "\n\n".join(r.output for r in execution_result.step_results)


class ResultSynthesizer:
    """
    Synthesizes the final response.

    ``last_used_fallback`` and ``last_model`` describe the most recent
    ``synthesize`` call.
    """

    def __init__(
        self,
        model_caller: Any,
        registry: Any,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
        max_chars: Optional[int] = 24000,
    ):
        self.model_caller = model_caller
        self.registry = registry
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.max_chars = max_chars
        self.last_used_fallback = False
        self.last_model: Optional[CapabilityDescriptor] = None

    def select_model(self, plan: ExecutionPlan) -> CapabilityDescriptor:
        return self.registry.find_best_for_tag("synthesis") or plan.primary_model

    async def synthesize(
        self,
        request: str,
        execution_result: ExecutionResult,
        plan: ExecutionPlan,
    ) -> str:
        """Return the final answer text. Never raises (except on cancellation)."""
        model = self.select_model(plan)
        self.last_model = model
        try:
            text = await self._call_model(request, execution_result, plan, model)
        except SynthesisError as e:
            logger.warning(f"[ResultSynthesizer] {e}; concatenating step outputs")
            self.last_used_fallback = True
            return concatenate_outputs(execution_result)

        self.last_used_fallback = False
        return text

    async def _call_model(
        self,
        request: str,
        execution_result: ExecutionResult,
        plan: ExecutionPlan,
        model: CapabilityDescriptor,
    ) -> str:
        descriptions = {s.index: s.task.description for s in plan.steps}
        prompt = render_synthesis_prompt(
            request,
            execution_result.reasoning_trace,
            [(descriptions.get(r.step_index, f"Step {r.step_index}"), r.output)
             for r in execution_result.step_results],
            [(t.tool_name, t.output) for t in execution_result.tool_outputs if not t.failed],
            limit=self.max_chars,
        )

        try:
            response = await call_with_retry(
                self.model_caller,
                model.provider_id,
                [{"role": "user", "content": prompt}],
                CallSettings(model=model.identifier, temperature=SYNTHESIS_TEMPERATURE),
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
            )
        except ModelCallError as e:
            raise SynthesisError(str(e), execution_result) from e
        except Exception as e:
            raise SynthesisError(
                f"Synthesis call failed: {type(e).__name__}: {e}", execution_result
            ) from e

        content = getattr(response, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise SynthesisError("Synthesis returned no content", execution_result)
        return content

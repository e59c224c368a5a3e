"""Request Analyzer - Decomposes a user request into typed, prioritized tasks.

The analyzer runs one model call before planning, asking for:
1. The tasks needed to answer the request (type + priority)
2. Tools that would help
3. The kinds of models best suited

A reply that is not valid JSON in the expected shape is replaced by a
single reasoning task covering the whole request.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from ..errors import AnalysisParseError, ModelCallError
from ..llm.caller import CallSettings, call_with_retry
from .models import AnalysisResult, CapabilityDescriptor, Task, TaskType
from .prompts import render_analysis_prompt

logger = logging.getLogger(__name__)

FALLBACK_PRIORITY = 3
FALLBACK_MODEL_TYPES = ("general",)


class _TaskSchema(BaseModel):
    description: str = Field(min_length=1)
    type: TaskType
    priority: int = Field(ge=1, le=5)


class _AnalysisSchema(BaseModel):
    tasks: List[_TaskSchema] = Field(min_length=1)
    suggestedTools: List[str]
    modelTypes: List[str]


def fallback_analysis(request: Any) -> AnalysisResult:
    """Single reasoning task for the whole request. Never raises."""
    description = request if isinstance(request, str) else str(request)
    return AnalysisResult(
        tasks=[Task(description=description, type=TaskType.REASONING, priority=FALLBACK_PRIORITY)],
        suggested_tools=[],
        model_types=list(FALLBACK_MODEL_TYPES),
        used_fallback=True,
    )


class RequestAnalyzer:
    """LLM-based request decomposition.

    Falls back to a single reasoning task on parse failure or when the model
    call fails.
    """

    def __init__(
        self,
        model_caller: Any,
        max_tokens: int = 1000,
        max_retries: int = 0,
        retry_base_delay: float = 1.0,
    ):
        self.model_caller = model_caller
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    async def analyze(
        self,
        request: str,
        prior_context: str,
        model: CapabilityDescriptor,
        tool_names: Sequence[str] = (),
    ) -> AnalysisResult:
        """Analyze *request* with *model*.

        Makes exactly one model call (plus configured retries).
        """
        messages = [
            {"role": "user", "content": render_analysis_prompt(request, prior_context, tool_names)},
        ]
        settings = CallSettings(model=model.identifier, temperature=0.2, max_tokens=self.max_tokens)
        try:
            response = await call_with_retry(
                self.model_caller,
                model.provider_id,
                messages,
                settings,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
            )
        except ModelCallError as e:
            logger.warning(f"[RequestAnalyzer] Model call failed, using fallback: {e}")
            return fallback_analysis(request)
        except Exception as e:
            logger.warning(
                f"[RequestAnalyzer] Model call raised {type(e).__name__}, using fallback: {e}"
            )
            return fallback_analysis(request)

        try:
            return self.parse(getattr(response, "content", None))
        except AnalysisParseError as e:
            logger.warning(f"[RequestAnalyzer] {e}; using single-task fallback")
            return fallback_analysis(request)

    @classmethod
    def parse(cls, text: Optional[str]) -> AnalysisResult:
        """Parse a model reply into an AnalysisResult.

        Raises:
            AnalysisParseError: if no JSON object is found or it does not
                match the expected shape.
        """
        data = cls._extract_json(text)
        if data is None:
            raise AnalysisParseError("No JSON object in analyzer response")
        try:
            parsed = _AnalysisSchema.model_validate(data)
        except ValidationError as e:
            raise AnalysisParseError(
                f"Analyzer response does not match schema ({e.error_count()} errors)"
            ) from e

        return AnalysisResult(
            tasks=[
                Task(description=t.description, type=t.type, priority=t.priority)
                for t in parsed.tasks
            ],
            suggested_tools=list(parsed.suggestedTools),
            model_types=list(parsed.modelTypes),
        )

    @staticmethod
    def _extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
        """Extract first JSON object from model output."""
        raw = (text or "").strip()
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass
        m = re.search(r"\{.*\}", raw, flags=re.DOTALL)
        if not m:
            return None
        try:
            parsed = json.loads(m.group(0))
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

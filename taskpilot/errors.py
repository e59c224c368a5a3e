"""
TaskPilot Errors - Typed failures raised across the orchestration pipeline

Fatal errors (abort the request):
- NoCapableModelError: the registry has no models
- StepExecutionError: a step's model call failed
- AgentTimeoutError: the request deadline expired
- InvalidPlanError: plan dependencies are unknown steps or cyclic

Recovered errors (never reach the caller):
- AnalysisParseError: handled by the RequestAnalyzer single-task fallback
- ToolExecutionError: recorded as a failed ToolOutput
- SynthesisError: handled by the ResultSynthesizer concatenation fallback
"""

from typing import Any, Optional


class AgentExecutionError(Exception):
    """Base class for orchestration failures.

    Attributes:
        partial_result: ExecutionResult accumulated before the failure, if any
    """

    def __init__(self, message: str, partial_result: Optional[Any] = None):
        super().__init__(message)
        self.partial_result = partial_result


class NoCapableModelError(AgentExecutionError):
    """No model is registered, so no plan can be built."""

    def __init__(self, message: str = "No capable model is registered"):
        super().__init__(message)


class StepExecutionError(AgentExecutionError):
    """A plan step's model call failed; downstream steps cannot run."""

    def __init__(
        self,
        step_index: int,
        cause: BaseException,
        partial_result: Optional[Any] = None,
    ):
        self.step_index = step_index
        self.cause = cause
        super().__init__(f"Step {step_index} failed: {cause}", partial_result)


class AgentTimeoutError(AgentExecutionError):
    """The caller-supplied deadline expired before the request finished."""

    def __init__(self, timeout: float, partial_result: Optional[Any] = None):
        self.timeout = timeout
        super().__init__(f"Request exceeded deadline of {timeout}s", partial_result)


class InvalidPlanError(AgentExecutionError):
    """The plan's dependencies reference unknown steps or form a cycle."""


class AnalysisParseError(AgentExecutionError):
    """The analyzer reply did not match the expected JSON contract."""


class ToolExecutionError(AgentExecutionError):
    """A tool invocation failed for one step."""

    def __init__(self, tool_name: str, step_index: int, cause: BaseException):
        self.tool_name = tool_name
        self.step_index = step_index
        self.cause = cause
        super().__init__(f"Tool '{tool_name}' failed on step {step_index}: {cause}")


class SynthesisError(AgentExecutionError):
    """The synthesis model call failed or returned nothing usable."""


class ModelCallError(Exception):
    """A model call did not produce usable content."""

    def __init__(self, provider_id: str, reason: str):
        self.provider_id = provider_id
        self.reason = reason
        super().__init__(f"Model call to '{provider_id}' failed: {reason}")

"""
TaskPilot - Agent task orchestration across multiple LLM providers

TaskPilot takes a free-form request, splits it into typed sub-tasks, assigns
each one a capability-matched model and tools, runs the plan, and merges the
outputs into a single answer with an inspectable execution trace.

Quick Start:
    from taskpilot import TaskPilot

    app = TaskPilot("config.yaml")
    response = await app.process_request("What is the square root of 144?")
    print(response.response)
    print(response.execution_path["steps"])

Custom tools:
    from taskpilot import tool

    @tool(tags=["data"])
    async def stock_price(text: str) -> str:
        '''Look up a stock price'''
        ...

Wiring by hand:
    from taskpilot import AgentOrchestrator, CapabilityRegistry, CapabilityDescriptor, ModelCaller

    registry = CapabilityRegistry(models=[CapabilityDescriptor.model("openai", "gpt-4o")])
    orchestrator = AgentOrchestrator(registry=registry, model_caller=ModelCaller({...}))
"""

__version__ = "0.1.0"

from .errors import (
    AgentExecutionError,
    AgentTimeoutError,
    AnalysisParseError,
    InvalidPlanError,
    ModelCallError,
    NoCapableModelError,
    StepExecutionError,
    SynthesisError,
    ToolExecutionError,
)

from .orchestrator import (
    AgentOrchestrator,
    AgentResponse,
    CapabilityDescriptor,
    CapabilityRegistry,
    ExecutionState,
    OrchestratorConfig,
    TaskType,
)

from .tools import Tool, tool, BUILTIN_TOOLS

from .context import ContextItem, ContextManager
from .history import InMemoryHistorySink, JsonlHistorySink

from .llm import (
    LLMConfig,
    LLMResponse,
    LiteLLMClient,
    ModelCaller,
)

from .app import TaskPilot

__all__ = [
    "__version__",
    "TaskPilot",
    "AgentOrchestrator", "AgentResponse", "OrchestratorConfig",
    "CapabilityDescriptor", "CapabilityRegistry", "ExecutionState", "TaskType",
    "Tool", "tool", "BUILTIN_TOOLS",
    "ContextItem", "ContextManager",
    "InMemoryHistorySink", "JsonlHistorySink",
    "LiteLLMClient", "LLMConfig", "LLMResponse", "ModelCaller",
    "AgentExecutionError", "AgentTimeoutError", "AnalysisParseError", "InvalidPlanError",
    "ModelCallError", "NoCapableModelError", "StepExecutionError", "SynthesisError",
    "ToolExecutionError",
]

"""
TaskPilot Orchestrator Module

Agent task orchestration: analyze a request, build a capability-matched
plan, execute it against models and tools, and synthesize one answer.

Quick Start:
    from taskpilot.orchestrator import (
        AgentOrchestrator, CapabilityDescriptor, CapabilityRegistry,
    )

    registry = CapabilityRegistry(
        models=[CapabilityDescriptor.model("claude", "claude-3-5-sonnet-20241022")],
    )
    orchestrator = AgentOrchestrator(registry=registry, model_caller=caller)
    response = await orchestrator.process_request("Explain CRDTs briefly")
"""

from .models import (
    AgentResponse,
    AnalysisResult,
    CapabilityDescriptor,
    CapabilityKind,
    ExecutionPlan,
    ExecutionResult,
    ExecutionState,
    PlanStep,
    StepResult,
    Task,
    TaskType,
    ToolOutput,
    build_execution_path,
)
from .config import OrchestratorConfig
from .registry import (
    DEFAULT_PREFERENCES,
    CapabilityRegistry,
    RankedPreferenceStrategy,
    SelectionStrategy,
)
from .request_analyzer import RequestAnalyzer, fallback_analysis
from .plan_builder import PlanBuilder, build_dependency_graph
from .dag_executor import execution_order, topological_sort
from .execution_engine import ExecutionEngine
from .synthesizer import ResultSynthesizer, concatenate_outputs
from .audit_logger import AuditLogger
from .orchestrator import AgentOrchestrator

__all__ = [
    # Orchestrator
    "AgentOrchestrator",
    "OrchestratorConfig",
    # Models
    "AgentResponse",
    "AnalysisResult",
    "CapabilityDescriptor",
    "CapabilityKind",
    "ExecutionPlan",
    "ExecutionResult",
    "ExecutionState",
    "PlanStep",
    "StepResult",
    "Task",
    "TaskType",
    "ToolOutput",
    "build_execution_path",
    # Registry
    "CapabilityRegistry",
    "DEFAULT_PREFERENCES",
    "RankedPreferenceStrategy",
    "SelectionStrategy",
    # Pipeline
    "RequestAnalyzer",
    "fallback_analysis",
    "PlanBuilder",
    "build_dependency_graph",
    "topological_sort",
    "execution_order",
    "ExecutionEngine",
    "ResultSynthesizer",
    "concatenate_outputs",
    "AuditLogger",
]

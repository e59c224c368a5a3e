"""
Orchestrator data models - tasks, capabilities, plans and execution results.

Every object here is created fresh for a single ``process_request`` call and
discarded once the AgentResponse is returned.
"""

import bisect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class CapabilityKind(str, Enum):
    MODEL = "model"
    TOOL = "tool"


class TaskType(str, Enum):
    """Kind of work a task needs; doubles as a capability tag."""
    REASONING = "reasoning"
    CODE = "code"
    DATA = "data"
    VISUAL = "visual"


class ExecutionState(str, Enum):
    """Lifecycle of one request's execution."""
    PLANNED = "planned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    ABORTED = "aborted"

    @classmethod
    def terminal_states(cls) -> frozenset:
        return frozenset({cls.COMPLETED, cls.PARTIALLY_COMPLETED, cls.ABORTED})


@dataclass(frozen=True)
class CapabilityDescriptor:
    """
    A model or tool known to the CapabilityRegistry.

    Attributes:
        kind: MODEL or TOOL
        provider_id: Provider the entry belongs to (e.g. "claude", "openai")
        identifier: Model id or tool name
        capability_tags: Task types / labels the entry is good at
    """
    kind: CapabilityKind
    provider_id: str
    identifier: str
    capability_tags: FrozenSet[str] = frozenset()

    @classmethod
    def model(cls, provider_id: str, identifier: str, tags=()) -> "CapabilityDescriptor":
        return cls(CapabilityKind.MODEL, provider_id, identifier, frozenset(tags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "provider_id": self.provider_id,
            "identifier": self.identifier,
            "capability_tags": sorted(self.capability_tags),
        }


@dataclass(frozen=True)
class Task:
    """A sub-task produced by the RequestAnalyzer."""
    description: str
    type: TaskType
    priority: int  # 1..5, higher runs first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "type": self.type.value,
            "priority": self.priority,
        }


@dataclass
class AnalysisResult:
    """Decomposition of a request into tasks plus tool/model hints."""
    tasks: List[Task]
    suggested_tools: List[str] = field(default_factory=list)
    model_types: List[str] = field(default_factory=list)
    used_fallback: bool = False


@dataclass(frozen=True)
class PlanStep:
    """One unit of work bound to a model and zero or more tools."""
    index: int
    task: Task
    assigned_model: CapabilityDescriptor
    assigned_tools: tuple = ()  # Tool instances
    depends_on: FrozenSet[int] = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "task": self.task.description,
            "type": self.task.type.value,
            "priority": self.task.priority,
            "model": {
                "provider": self.assigned_model.provider_id,
                "model": self.assigned_model.identifier,
            },
            "tools": [t.name for t in self.assigned_tools],
            "depends_on": sorted(self.depends_on),
        }


@dataclass
class ExecutionPlan:
    """
    Ordered steps plus the dependency graph the engine walks.

    ``dependency_graph`` maps a step index to the indices it depends on.
    """
    request_text: str
    steps: List[PlanStep]
    dependency_graph: Dict[int, List[int]]
    primary_model: CapabilityDescriptor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request_text,
            "steps": [s.to_dict() for s in self.steps],
            "dependencies": {str(k): list(v) for k, v in self.dependency_graph.items()},
            "primary_model": {
                "provider": self.primary_model.provider_id,
                "model": self.primary_model.identifier,
            },
        }


@dataclass(frozen=True)
class StepResult:
    step_index: int
    output: str
    task_type: TaskType


@dataclass(frozen=True)
class ToolOutput:
    tool_name: str
    step_index: int
    output: str
    failed: bool = False
    error: Optional[str] = None


@dataclass
class ExecutionResult:
    """
    Accumulated outputs of one execution.

    Append-only while the engine runs. Step results and tool outputs are kept
    in step order even when steps of one level finish out of order.
    """
    step_results: List[StepResult] = field(default_factory=list)
    tool_outputs: List[ToolOutput] = field(default_factory=list)
    reasoning_trace: List[str] = field(default_factory=list)
    state: ExecutionState = ExecutionState.PLANNED

    def add_step_result(self, result: StepResult) -> None:
        keys = [r.step_index for r in self.step_results]
        self.step_results.insert(bisect.bisect_right(keys, result.step_index), result)

    def add_tool_outputs(self, outputs: List[ToolOutput]) -> None:
        if not outputs:
            return
        keys = [t.step_index for t in self.tool_outputs]
        pos = bisect.bisect_right(keys, outputs[0].step_index)
        self.tool_outputs[pos:pos] = outputs

    @property
    def has_tool_failures(self) -> bool:
        return any(t.failed for t in self.tool_outputs)


def build_execution_path(
    plan: Optional[ExecutionPlan],
    result: Optional[ExecutionResult],
    failed_step: Optional[int] = None,
) -> Dict[str, Any]:
    """Plan-shaped trace of what ran: each step marked completed, failed or pending."""
    if plan is None:
        return {"request": None, "steps": [], "dependencies": {}, "primary_model": None}

    path = plan.to_dict()
    result = result or ExecutionResult()
    outputs = {r.step_index: r.output for r in result.step_results}
    for step in path["steps"]:
        index = step["index"]
        if index in outputs:
            step["status"] = "completed"
            step["output"] = outputs[index]
            step["tool_outputs"] = [
                {"tool": t.tool_name, "output": t.output, "failed": t.failed, "error": t.error}
                for t in result.tool_outputs if t.step_index == index
            ]
        elif index == failed_step:
            step["status"] = "failed"
        else:
            step["status"] = "pending"
    path["reasoning"] = list(result.reasoning_trace)
    path["state"] = result.state.value
    return path


@dataclass(frozen=True)
class AgentResponse:
    """
    Terminal artifact of ``process_request``.

    Fatal errors are reported through ``status``/``error``/``error_type``
    with the partial ``execution_path`` still attached.
    """
    response: str
    execution_path: Dict[str, Any]
    model_used: Optional[str]
    status: ExecutionState = ExecutionState.COMPLETED
    reasoning: tuple = ()
    error: Optional[Exception] = None
    error_type: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "response": self.response,
            "execution_path": self.execution_path,
            "model_used": self.model_used,
            "status": self.status.value,
            "reasoning": list(self.reasoning),
            "error": str(self.error) if self.error else None,
            "error_type": self.error_type,
            "created_at": self.created_at.isoformat(),
        }

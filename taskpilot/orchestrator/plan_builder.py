"""Plan Builder - Turns an analysis into an executable plan.

Resolves tool and model hints against the CapabilityRegistry, binds every
task to a model and the tools tagged for its type, orders steps by priority
and derives the dependency graph.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import NoCapableModelError
from .models import AnalysisResult, CapabilityDescriptor, ExecutionPlan, PlanStep
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


def build_dependency_graph(step_count: int) -> Dict[int, List[int]]:
    """Chain every step to its immediate predecessor.

    Steps therefore run strictly in plan order even when their task types
    are independent.
    """
    return {i: ([] if i == 0 else [i - 1]) for i in range(step_count)}


class PlanBuilder:
    """
    Builds ExecutionPlans against a registry.

    Example:
        builder = PlanBuilder(registry.snapshot())
        plan = builder.build_plan(request, analysis)
    """

    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    def build_plan(self, request: str, analysis: AnalysisResult) -> ExecutionPlan:
        """
        Raises:
            NoCapableModelError: if the registry has no models
        """
        models = self.registry.list_models()
        if not models:
            raise NoCapableModelError()

        tools = self._map_tools(analysis.suggested_tools)
        primary_model = self._primary_model(analysis.model_types, models)

        unordered = []
        for task in analysis.tasks:
            task_tools = tuple(t for t in tools if task.type.value in t.capability_tags)
            model = self.registry.find_best_for_tag(task.type.value) or primary_model
            unordered.append((task, model, task_tools))

        # sorted() is stable: equal priorities keep analysis order
        ordered = sorted(unordered, key=lambda entry: -entry[0].priority)

        graph = build_dependency_graph(len(ordered))
        steps = [
            PlanStep(
                index=i,
                task=task,
                assigned_model=model,
                assigned_tools=task_tools,
                depends_on=frozenset(graph[i]),
            )
            for i, (task, model, task_tools) in enumerate(ordered)
        ]

        logger.info(
            f"[PlanBuilder] {len(steps)} steps, primary model "
            f"{primary_model.provider_id}/{primary_model.identifier}, "
            f"{len(tools)} tools matched"
        )
        return ExecutionPlan(
            request_text=request,
            steps=steps,
            dependency_graph=graph,
            primary_model=primary_model,
        )

    def _map_tools(self, suggested: List[str]) -> List[Any]:
        """Exact-name lookup; unknown names are dropped, duplicates collapsed."""
        tools: List[Any] = []
        seen = set()
        for name in suggested:
            tool = self.registry.get_tool(name)
            if tool is None:
                logger.debug(f"[PlanBuilder] Suggested tool '{name}' not registered, dropped")
                continue
            if tool.name not in seen:
                seen.add(tool.name)
                tools.append(tool)
        return tools

    def _primary_model(
        self, model_types: List[str], models: List[CapabilityDescriptor]
    ) -> CapabilityDescriptor:
        candidates: List[Optional[CapabilityDescriptor]] = [
            self.registry.find_best_for_tag(model_type) for model_type in model_types
        ]
        candidates = [c for c in candidates if c is not None]
        if candidates:
            return candidates[0]
        # Providers outside every preference list still get used
        return self.registry.find_best_for_tag("general") or models[0]

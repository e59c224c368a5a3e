"""DAG Executor - Topological ordering of plan steps.

Provides Kahn's algorithm over a plan's dependency graph, grouping steps
into levels that can run concurrently.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)


def topological_sort(graph: Mapping[int, Iterable[int]]) -> List[List[int]]:
    """Sort step indices into parallel execution levels.

    Args:
        graph: step index -> indices it depends on

    Returns a list of levels. Steps within the same level have all their
    dependencies satisfied by prior levels and can execute in parallel.
    Levels are sorted by index.

    Raises:
        ValueError: If a dependency cycle is detected or a step depends on
            an index that is not a key of *graph*.
    """
    if not graph:
        return []

    in_degree: Dict[int, int] = {node: 0 for node in graph}
    dependents: Dict[int, List[int]] = defaultdict(list)

    for node, deps in graph.items():
        for dep in set(deps):
            if dep not in in_degree:
                raise ValueError(f"Step {node} depends on unknown step {dep}")
            in_degree[node] += 1
            dependents[dep].append(node)

    levels: List[List[int]] = []
    remaining = set(in_degree)

    while remaining:
        ready = sorted(node for node in remaining if in_degree[node] == 0)
        if not ready:
            raise ValueError(
                f"Cycle detected in step dependencies. "
                f"Remaining steps: {sorted(remaining)}"
            )

        levels.append(ready)
        for node in ready:
            remaining.remove(node)
            for dependent in dependents[node]:
                in_degree[dependent] -= 1

    return levels


def execution_order(graph: Mapping[int, Iterable[int]]) -> List[int]:
    """Flattened topological order."""
    return [node for level in topological_sort(graph) for node in level]

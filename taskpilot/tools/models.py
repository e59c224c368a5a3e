"""
TaskPilot Tool Models - Tools the execution engine can invoke for a step
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet

from ..orchestrator.models import CapabilityDescriptor, CapabilityKind


@dataclass(frozen=True)
class Tool:
    """
    An external capability invoked with a single input string.

    Attributes:
        name: Unique tool name, matched exactly against analyzer suggestions
        executor: ``(input: str) -> str``, sync or async
        capability_tags: Task types this tool serves (e.g. {"code", "data"})
        description: Human-readable summary
        provider_id: Owner of the tool ("builtin" for bundled tools)

    Example:
        async def lookup(text: str) -> str:
            ...

        search = Tool(name="search", executor=lookup, capability_tags=frozenset({"data"}))
        output = await search.execute("population of France")
    """
    name: str
    executor: Callable[[str], Any] = field(compare=False)
    capability_tags: FrozenSet[str] = frozenset()
    description: str = ""
    provider_id: str = "builtin"

    async def execute(self, input: str) -> str:
        result = self.executor(input)
        if inspect.isawaitable(result):
            result = await result
        return "" if result is None else str(result)

    def descriptor(self) -> CapabilityDescriptor:
        return CapabilityDescriptor(
            kind=CapabilityKind.TOOL,
            provider_id=self.provider_id,
            identifier=self.name,
            capability_tags=self.capability_tags,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "capability_tags": sorted(self.capability_tags),
            "provider_id": self.provider_id,
        }

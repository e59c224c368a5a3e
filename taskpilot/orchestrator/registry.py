"""
Capability Registry - Catalog of models and tools plus model selection.

The registry is read-mostly: the application registers models and tools at
startup (or refreshes them between requests), and each request works on an
immutable ``snapshot()`` so a refresh never changes a plan mid-flight.

Model selection is delegated to a SelectionStrategy. The default
RankedPreferenceStrategy walks an ordered list of provider ids per task type
and returns the first registered model from the first matching provider.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from .models import CapabilityDescriptor, CapabilityKind

logger = logging.getLogger(__name__)


DEFAULT_PREFERENCES: Dict[str, List[str]] = {
    "analysis": ["claude", "openai", "gemini"],
    "reasoning": ["claude", "openai", "gemini"],
    "code": ["deepseek", "openai", "claude"],
    "data": ["openai", "claude", "gemini"],
    "visual": ["gemini", "openai", "claude"],
    "synthesis": ["claude", "openai", "gemini"],
    "general": ["claude", "openai", "gemini"],
}


class SelectionStrategy(Protocol):
    """Picks a model for a capability tag, or None."""

    def select(
        self, tag: str, models: Sequence[CapabilityDescriptor]
    ) -> Optional[CapabilityDescriptor]:
        ...


class RankedPreferenceStrategy:
    """
    First-available selection over a ranked provider list per tag.

    Tags without their own list use the ``general`` list.

    Example:
        strategy = RankedPreferenceStrategy({"code": ["deepseek", "openai"]})
        strategy.select("code", models)
    """

    def __init__(self, preferences: Optional[Mapping[str, Sequence[str]]] = None):
        prefs = preferences if preferences is not None else DEFAULT_PREFERENCES
        self.preferences: Dict[str, List[str]] = {k: list(v) for k, v in prefs.items()}

    def providers_for(self, tag: str) -> List[str]:
        return self.preferences.get(tag) or self.preferences.get("general", [])

    def select(
        self, tag: str, models: Sequence[CapabilityDescriptor]
    ) -> Optional[CapabilityDescriptor]:
        for provider_id in self.providers_for(tag):
            for model in models:
                if model.provider_id == provider_id:
                    return model
        return None


class CapabilityRegistry:
    """
    Catalog of available models and tools.

    Example:
        registry = CapabilityRegistry(
            models=[CapabilityDescriptor.model("claude", "claude-3-5-sonnet-20241022")],
            tools=[calculator],
        )
        registry.find_best_for_tag("code")
    """

    def __init__(
        self,
        models: Optional[Iterable[CapabilityDescriptor]] = None,
        tools: Optional[Iterable[Any]] = None,
        strategy: Optional[SelectionStrategy] = None,
        preferences: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        """
        Args:
            models: Model descriptors
            tools: Tool instances (name, capability_tags, execute)
            strategy: Selection strategy; defaults to RankedPreferenceStrategy
            preferences: Ranked provider lists for the default strategy
        """
        self._models: List[CapabilityDescriptor] = []
        self._tools: Dict[str, Any] = {}
        self.strategy: SelectionStrategy = strategy or RankedPreferenceStrategy(preferences)
        self._frozen = False
        for model in models or ():
            self.register_model(model)
        for tool in tools or ():
            self.register_tool(tool)

    # ===== Lookup =====

    def list_models(self) -> List[CapabilityDescriptor]:
        return list(self._models)

    def list_tools(self) -> List[Any]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> Optional[Any]:
        return self._tools.get(name)

    def find_best_for_tag(self, tag: str) -> Optional[CapabilityDescriptor]:
        """Best model for *tag* according to the strategy; never raises."""
        try:
            return self.strategy.select(tag, self._models)
        except Exception as e:
            logger.warning(f"[CapabilityRegistry] selection failed for tag '{tag}': {e}")
            return None

    # ===== Mutation (between requests only) =====

    def register_model(self, model: CapabilityDescriptor) -> None:
        self._check_mutable()
        if model.kind is not CapabilityKind.MODEL:
            raise ValueError(f"Not a model descriptor: {model.identifier}")
        self._models.append(model)
        logger.debug(f"Registered model {model.provider_id}/{model.identifier}")

    def register_tool(self, tool: Any) -> None:
        self._check_mutable()
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' re-registered, replacing previous entry")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool {tool.name}")

    def refresh(
        self,
        models: Optional[Iterable[CapabilityDescriptor]] = None,
        tools: Optional[Iterable[Any]] = None,
    ) -> None:
        """Replace the catalog. Passing None keeps that half unchanged."""
        self._check_mutable()
        if models is not None:
            self._models = []
            for model in models:
                self.register_model(model)
        if tools is not None:
            self._tools = {}
            for tool in tools:
                self.register_tool(tool)
        logger.info(
            f"CapabilityRegistry refreshed: {len(self._models)} models, {len(self._tools)} tools"
        )

    def snapshot(self) -> "CapabilityRegistry":
        """Immutable copy for the duration of one request."""
        copy = CapabilityRegistry(self._models, self._tools.values(), strategy=self.strategy)
        copy._frozen = True
        return copy

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("Registry snapshot is read-only")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "models": [m.to_dict() for m in self._models],
            "tools": [
                t.to_dict() if hasattr(t, "to_dict")
                else {"name": t.name, "capability_tags": sorted(t.capability_tags)}
                for t in self._tools.values()
            ],
        }

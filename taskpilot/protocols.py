"""
TaskPilot Protocols - Abstract interfaces for dependency injection

These protocols define the contracts the orchestration engine expects from
its collaborators. Any object with the right shape can be plugged in, which
keeps the engine independent of concrete providers, tool backends and
storage.
"""

from typing import Protocol, List, Dict, Any, Optional, FrozenSet, runtime_checkable


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Abstract interface for LLM clients

    Example:
        class MyLLMClient:
            async def chat_completion(
                self,
                messages: List[Dict[str, Any]],
                config: Optional[Dict] = None
            ) -> Any:
                ...
    """

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Call LLM for chat completion

        Args:
            messages: List of message dicts with 'role' and 'content'
            config: Optional configuration (model, temperature, max_tokens)

        Returns:
            Response object exposing a ``content`` attribute
        """
        ...


@runtime_checkable
class ModelCallerProtocol(Protocol):
    """
    Calls a model by provider id.

    Implementations must raise on failure instead of returning empty content.
    """

    async def call(
        self,
        provider_id: str,
        messages: List[Dict[str, Any]],
        settings: Optional[Any] = None,
    ) -> Any:
        ...


@runtime_checkable
class ToolProtocol(Protocol):
    """An external capability invoked with a single input string."""

    name: str
    capability_tags: FrozenSet[str]

    async def execute(self, input: str) -> str:
        ...


@runtime_checkable
class ContextProviderProtocol(Protocol):
    """Resolves opaque context references (e.g. ``ctx_1a2b3c4d``) to text.

    References are scoped to the user that added them.
    """

    def resolve(self, reference: str, user_id: str = "default") -> Optional[str]:
        ...


@runtime_checkable
class HistorySinkProtocol(Protocol):
    """Durable store for executed requests."""

    async def save(
        self,
        user_id: str,
        conversation_id: Optional[str],
        request: str,
        execution_path: Dict[str, Any],
        response: str,
    ) -> None:
        ...

"""
Model Caller - Routes model calls to the client registered for a provider id.

The orchestration engine never talks to LLM clients directly. It asks the
ModelCaller for ``call(provider_id, messages, settings)`` and receives either
an LLMResponse with non-empty content or a ModelCallError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import ModelCallError
from ..protocols import LLMClientProtocol

logger = logging.getLogger(__name__)


@dataclass
class CallSettings:
    """Per-call overrides forwarded to the client."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


class ModelCaller:
    """
    Provider id -> LLM client dispatcher.

    Example:
        caller = ModelCaller({"openai": openai_client, "claude": anthropic_client})
        response = await caller.call(
            "claude",
            [{"role": "user", "content": "Hello"}],
            CallSettings(model="claude-3-5-sonnet-20241022", temperature=0.2),
        )
    """

    def __init__(self, clients: Optional[Dict[str, LLMClientProtocol]] = None):
        self._clients: Dict[str, LLMClientProtocol] = dict(clients or {})

    def register(self, provider_id: str, client: LLMClientProtocol) -> None:
        self._clients[provider_id] = client

    @property
    def provider_ids(self) -> List[str]:
        return list(self._clients)

    async def call(
        self,
        provider_id: str,
        messages: List[Dict[str, Any]],
        settings: Optional[CallSettings] = None,
    ) -> Any:
        """Call the model; raise ModelCallError instead of returning empty content."""
        client = self._clients.get(provider_id)
        if client is None:
            raise ModelCallError(provider_id, "no client registered for provider")

        config = (settings or CallSettings()).to_dict()
        try:
            response = await client.chat_completion(messages=messages, config=config)
        except asyncio.TimeoutError as e:
            raise ModelCallError(provider_id, "timeout") from e
        except Exception as e:
            raise ModelCallError(provider_id, f"{type(e).__name__}: {e}") from e

        content = getattr(response, "content", None)
        if not content or not content.strip():
            raise ModelCallError(provider_id, "empty content")
        return response

    async def close(self) -> None:
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if close is not None:
                await close()


async def call_with_retry(
    caller: Any,
    provider_id: str,
    messages: List[Dict[str, Any]],
    settings: Optional[CallSettings] = None,
    max_retries: int = 0,
    base_delay: float = 1.0,
) -> Any:
    """Call through *caller* with bounded exponential back-off.

    With ``max_retries=0`` (or a negative value) the call is attempted
    exactly once.
    """
    max_retries = max(0, max_retries)
    for attempt in range(max_retries + 1):
        try:
            return await caller.call(provider_id, messages, settings)
        except ModelCallError as e:
            if attempt >= max_retries:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(f"[ModelCaller] {e}; retrying in {delay}s (attempt {attempt + 1})")
            await asyncio.sleep(delay)

"""Value types passed between LiteLLMClient, ModelCaller and the orchestrator."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    CONTENT_FILTER = "content_filter"

    @classmethod
    def from_finish_reason(cls, finish_reason: Optional[str]) -> "StopReason":
        """Map an OpenAI-style ``finish_reason``; unknown values are a normal end."""
        return _FINISH_REASONS.get(finish_reason or "stop", cls.END_TURN)


_FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "end_turn": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "max_tokens": StopReason.MAX_TOKENS,
    "stop_sequence": StopReason.STOP_SEQUENCE,
    "content_filter": StopReason.CONTENT_FILTER,
}


@dataclass
class LLMConfig:
    """
    Connection settings and sampling defaults for one configured provider.

    Attributes:
        model: Default model id, used when a call does not name one
        api_key: Provider key; falls back to the provider's env var
        base_url: Endpoint override (Azure, DashScope, self-hosted Ollama)
        api_version: Azure OpenAI API version
        temperature: Default sampling temperature
        max_tokens: Default completion limit
        timeout: Per-request timeout in seconds
        track_costs: Ask litellm for the USD cost of each call
    """
    model: str = "gpt-4o"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    api_version: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: float = 60
    track_costs: bool = True

    @classmethod
    def from_provider(cls, entry: Dict[str, Any], default_model: Optional[str] = None) -> "LLMConfig":
        """Build from a ``providers.<id>`` block of the YAML config."""
        return cls(
            model=entry.get("model") or default_model or cls.model,
            api_key=entry.get("api_key"),
            base_url=entry.get("base_url"),
            api_version=entry.get("api_version"),
            temperature=entry.get("temperature", cls.temperature),
            max_tokens=entry.get("max_tokens", cls.max_tokens),
            timeout=entry.get("timeout", cls.timeout),
            track_costs=entry.get("track_costs", cls.track_costs),
        )


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: Optional[float] = None  # USD, when litellm knows the model's pricing


@dataclass
class LLMResponse:
    content: str
    stop_reason: StopReason = StopReason.END_TURN
    model: Optional[str] = None
    usage: Optional[Usage] = None

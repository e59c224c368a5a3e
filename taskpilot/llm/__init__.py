"""
TaskPilot LLM layer

LiteLLMClient talks to any litellm-supported provider; ModelCaller
dispatches calls to the client registered for a provider id.

Usage:
    from taskpilot.llm import LiteLLMClient, LLMConfig, ModelCaller

    client = LiteLLMClient(LLMConfig(model="gpt-4o", api_key="sk-xxx"), "openai")
    caller = ModelCaller({"openai": client})
    response = await caller.call("openai", messages=[...])
"""

from .caller import CallSettings, ModelCaller, call_with_retry
from .litellm_client import LiteLLMClient, build_litellm_model_string, sampling_params
from .types import LLMConfig, LLMResponse, StopReason, Usage

__all__ = [
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "Usage",
    "CallSettings",
    "ModelCaller",
    "call_with_retry",
    "LiteLLMClient",
    "build_litellm_model_string",
    "sampling_params",
]

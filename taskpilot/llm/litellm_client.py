"""
LiteLLM Client - One async chat client for every configured provider

litellm routes on a prefixed model string (``anthropic/claude-3-opus``,
``azure/<deployment>``...). Each LiteLLMClient is bound to one provider
entry of the config; a call may still name a different model id of that
provider through ``config["model"]``.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

from .types import LLMConfig, LLMResponse, StopReason, Usage

logger = logging.getLogger(__name__)

# Provider -> environment variable holding its API key
_API_KEY_ENV: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "dashscope": "DASHSCOPE_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

# Provider -> litellm routing prefix. DashScope is served in OpenAI-compatible mode.
_MODEL_PREFIX: Dict[str, str] = {
    "anthropic": "anthropic",
    "azure": "azure",
    "gemini": "gemini",
    "ollama": "ollama",
    "deepseek": "deepseek",
    "dashscope": "openai",
}

# o-series and gpt-5 reasoning models reject temperature and take max_completion_tokens
_REASONING_MODEL = re.compile(r"^(o\d+(-.*)?|gpt-5.*)$", re.IGNORECASE)


def build_litellm_model_string(provider: str, model: str) -> str:
    """``("anthropic", "claude-3-opus")`` -> ``"anthropic/claude-3-opus"``.

    OpenAI and unknown providers pass the model id through unchanged.
    """
    prefix = _MODEL_PREFIX.get(provider.lower())
    return f"{prefix}/{model}" if prefix else model


def sampling_params(model: str, max_tokens: int, temperature: float) -> Dict[str, Any]:
    if _REASONING_MODEL.match(model):
        return {"max_completion_tokens": max_tokens}
    return {"max_tokens": max_tokens, "temperature": temperature}


class LiteLLMClient:
    """
    Implements LLMClientProtocol on top of ``litellm.acompletion``.

    Example:
        client = LiteLLMClient(LLMConfig(model="claude-3-5-sonnet-20241022"), "anthropic")
        response = await client.chat_completion(
            [{"role": "user", "content": "Hello!"}],
            config={"temperature": 0.2},
        )
    """

    def __init__(self, config: LLMConfig, provider_name: str = "openai"):
        self.config = config
        self.provider = provider_name.lower()

        api_key = config.api_key
        if not api_key and self.provider in _API_KEY_ENV:
            api_key = os.environ.get(_API_KEY_ENV[self.provider])

        self._base_kwargs: Dict[str, Any] = {"timeout": config.timeout}
        if api_key:
            self._base_kwargs["api_key"] = api_key
        if config.base_url:
            self._base_kwargs["api_base"] = config.base_url
        if config.api_version:
            self._base_kwargs["api_version"] = config.api_version

        logger.info(
            f"[LiteLLM] client for provider={self.provider} "
            f"default={build_litellm_model_string(self.provider, config.model)}"
        )

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        config: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """
        Args:
            messages: Chat messages with 'role' and 'content'
            config: Per-call ``model``, ``temperature`` and ``max_tokens``;
                None values fall back to the client's LLMConfig
        """
        import litellm

        overrides = {k: v for k, v in (config or {}).items() if v is not None}
        model_id = overrides.get("model") or self.config.model
        model = build_litellm_model_string(self.provider, model_id)
        params: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            **sampling_params(
                model_id,
                overrides.get("max_tokens", self.config.max_tokens),
                overrides.get("temperature", self.config.temperature),
            ),
            **self._base_kwargs,
        }

        logger.debug(f"[LiteLLM] model={model} messages={len(messages)}")
        completion = await litellm.acompletion(**params)

        choice = completion.choices[0]
        return LLMResponse(
            content=choice.message.content or "",
            stop_reason=StopReason.from_finish_reason(choice.finish_reason),
            model=getattr(completion, "model", None) or model_id,
            usage=self._usage(litellm, completion, model),
        )

    def _usage(self, litellm: Any, completion: Any, model: str) -> Optional[Usage]:
        if not completion.usage:
            return None
        usage = Usage(
            prompt_tokens=completion.usage.prompt_tokens,
            completion_tokens=completion.usage.completion_tokens,
            total_tokens=completion.usage.total_tokens,
        )
        if self.config.track_costs:
            try:
                usage.cost = litellm.completion_cost(completion_response=completion)
            except Exception as e:
                logger.debug(f"[LiteLLM] no pricing for {model}: {e}")
        return usage

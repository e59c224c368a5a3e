"""
TaskPilot Application - Single entry point for the orchestration engine.

Usage:
    from taskpilot import TaskPilot

    app = TaskPilot("config.yaml")
    response = await app.process_request("What is the capital of France?")

    # Multi-user
    response = await app.process_request("...", user_id="user1", conversation_id="c1")

Config file layout::

    providers:
      claude:
        provider: anthropic
        api_key: ${ANTHROPIC_API_KEY}
      openai:
        provider: openai
        api_key: ${OPENAI_API_KEY}
    models:
      - provider: claude
        model: claude-3-5-sonnet-20241022
        tags: [reasoning, analysis, synthesis]
      - provider: openai
        model: gpt-4o
        tags: [code, data]
    preferences:            # optional, overrides defaults per tag
      code: [openai, claude]
    tools: [calculator, web_fetch]   # optional, default: all built-ins
    orchestrator:           # optional OrchestratorConfig overrides
      max_workers: 4
    history:                # optional
      backend: jsonl        # memory | jsonl
      path: data/history.jsonl
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional, Union

import yaml

from .context import ContextManager
from .history import InMemoryHistorySink, JsonlHistorySink
from .llm.types import LLMConfig
from .llm.caller import ModelCaller
from .llm.litellm_client import LiteLLMClient
from .orchestrator import (
    DEFAULT_PREFERENCES,
    AgentOrchestrator,
    AgentResponse,
    CapabilityDescriptor,
    CapabilityRegistry,
    OrchestratorConfig,
)
from .tools import BUILTIN_TOOLS

logger = logging.getLogger(__name__)


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    # Replace ${VAR} with environment variable values
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


def _build_models(cfg: dict) -> List[CapabilityDescriptor]:
    providers = cfg.get("providers") or {}
    models = []
    for entry in cfg.get("models") or []:
        provider_id = entry.get("provider")
        model = entry.get("model")
        if not provider_id or not model:
            raise ValueError("Each 'models' entry needs 'provider' and 'model'")
        if provider_id not in providers:
            raise ValueError(f"Model '{model}' references unknown provider '{provider_id}'")
        models.append(CapabilityDescriptor.model(provider_id, model, entry.get("tags") or ()))
    return models


def _build_model_caller(cfg: dict) -> ModelCaller:
    caller = ModelCaller()
    models_by_provider: Dict[str, str] = {}
    for entry in cfg.get("models") or []:
        models_by_provider.setdefault(entry.get("provider"), entry.get("model"))

    for provider_id, pcfg in (cfg.get("providers") or {}).items():
        pcfg = pcfg or {}
        llm_config = LLMConfig.from_provider(pcfg, models_by_provider.get(provider_id))
        litellm_provider = pcfg.get("provider") or provider_id
        caller.register(provider_id, LiteLLMClient(config=llm_config, provider_name=litellm_provider))
        logger.info(f"LLM client: id={provider_id}, provider={litellm_provider}")
    return caller


def _build_tools(cfg: dict) -> list:
    selected = cfg.get("tools")
    if selected is None:
        return list(BUILTIN_TOOLS)
    by_name = {t.name: t for t in BUILTIN_TOOLS}
    unknown = [name for name in selected if name not in by_name]
    if unknown:
        raise ValueError(f"Unknown tools in config: {', '.join(unknown)}")
    return [by_name[name] for name in selected]


def _build_history_sink(cfg: dict, limit: int) -> Any:
    history_cfg = cfg.get("history") or {}
    backend = history_cfg.get("backend", "memory")
    if backend == "memory":
        return InMemoryHistorySink(limit=limit)
    if backend == "jsonl":
        path = history_cfg.get("path")
        if not path:
            raise ValueError("Missing required config field: 'history.path'")
        return JsonlHistorySink(path)
    raise ValueError(f"Unknown history backend: {backend}")


class TaskPilot:
    """
    TaskPilot Application entry point.

    Sync constructor reads and validates config; clients and the
    orchestrator are built on first use.

    Args:
        config: Path to YAML configuration file, or an already-loaded dict.

    Example:
        app = TaskPilot("config.yaml")
        response = await app.process_request("Summarize https://example.com")
    """

    def __init__(self, config: Union[str, Dict[str, Any]]):
        self._config = _load_config(config) if isinstance(config, str) else dict(config)
        self._initialized = False

        # Validate required fields
        if not self._config.get("providers"):
            raise ValueError("Missing required config field: 'providers'")
        if not self._config.get("models"):
            raise ValueError("Missing required config field: 'models'")
        _build_models(self._config)

        self.contexts = ContextManager()
        self._model_caller: Optional[ModelCaller] = None
        self._registry: Optional[CapabilityRegistry] = None
        self._orchestrator: Optional[AgentOrchestrator] = None

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        cfg = self._config
        orchestrator_config = OrchestratorConfig.from_dict(cfg.get("orchestrator"))

        preferences = {k: list(v) for k, v in DEFAULT_PREFERENCES.items()}
        preferences.update({k: list(v) for k, v in (cfg.get("preferences") or {}).items()})

        self._model_caller = _build_model_caller(cfg)
        self._registry = CapabilityRegistry(
            models=_build_models(cfg),
            tools=_build_tools(cfg),
            preferences=preferences,
        )
        self._orchestrator = AgentOrchestrator(
            registry=self._registry,
            model_caller=self._model_caller,
            config=orchestrator_config,
            history_sink=_build_history_sink(cfg, orchestrator_config.history_limit),
            context_provider=self.contexts,
        )
        self._initialized = True
        logger.info(
            f"TaskPilot initialized: {len(self._registry.list_models())} models, "
            f"{len(self._registry.list_tools())} tools"
        )

    @property
    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    @property
    def orchestrator(self) -> AgentOrchestrator:
        self._ensure_initialized()
        return self._orchestrator

    @property
    def registry(self) -> CapabilityRegistry:
        self._ensure_initialized()
        return self._registry

    def capabilities(self) -> Dict[str, Any]:
        return self.registry.to_dict()

    async def process_request(
        self,
        request: str,
        conversation_id: Optional[str] = None,
        prior_context: Any = None,
        *,
        user_id: str = "default",
        timeout: Optional[float] = None,
    ) -> AgentResponse:
        """
        Run a request through the orchestrator.

        ``prior_context`` may hold references returned by ``contexts.add``
        for the same ``user_id``.
        """
        return await self.orchestrator.process_request(
            request,
            conversation_id,
            prior_context,
            user_id=user_id,
            timeout=timeout,
        )

    async def shutdown(self) -> None:
        """Close LLM clients."""
        if not self._initialized:
            return
        try:
            await self._model_caller.close()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")
        finally:
            self._initialized = False
            self._model_caller = None
            self._registry = None
            self._orchestrator = None
            logger.info("TaskPilot shut down")

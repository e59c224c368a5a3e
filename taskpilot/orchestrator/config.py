"""Orchestrator configuration.

Centralizes the tunable parameters of the analyze/plan/execute/synthesize
pipeline.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional


@dataclass
class OrchestratorConfig:
    """All orchestration configuration centralized in one place."""

    # Concurrency
    max_workers: int = 4
    """Maximum concurrent external calls (model calls and tool invocations)."""

    # Timeouts
    step_timeout: float = 120
    """Per-step model call timeout in seconds."""
    tool_timeout: float = 30
    """Per-tool invocation timeout in seconds."""
    default_timeout: Optional[float] = None
    """Whole-request deadline used when the caller does not pass one."""

    # Prompt size limits
    analysis_max_tokens: int = 1000
    max_dependency_chars: int = 8000
    """Upper bound on dependency outputs folded into a step prompt."""
    max_context_chars: int = 4000
    """Upper bound on resolved prior context folded into a prompt."""
    max_context_items: int = 10
    max_synthesis_chars: int = 24000

    # LLM calls
    llm_max_retries: int = 0
    """Retries for analyzer and synthesizer calls. 0 means a single attempt."""
    llm_retry_base_delay: float = 1.0
    """Retry base delay in seconds (used for exponential back-off)."""

    # History
    history_limit: int = 100
    """In-memory execution history entries kept by the orchestrator."""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "OrchestratorConfig":
        """Build from a config mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

"""Tests for taskpilot.orchestrator.registry

Tests cover:
- RankedPreferenceStrategy: ranked provider walk, general fallback
- CapabilityRegistry.find_best_for_tag: default preferences, no match, strategy errors
- register_model / register_tool / refresh
- snapshot() isolation and read-only behavior
"""

import pytest

from taskpilot.orchestrator.models import CapabilityDescriptor, CapabilityKind
from taskpilot.orchestrator.registry import (
    DEFAULT_PREFERENCES,
    CapabilityRegistry,
    RankedPreferenceStrategy,
)
from taskpilot.tools import tool


def _model(provider, identifier=None):
    return CapabilityDescriptor.model(provider, identifier or f"{provider}-model")


@tool(tags=["code"])
def echo_tool(text: str) -> str:
    """Echo the input"""
    return text


# ── Tests: RankedPreferenceStrategy ──


class TestRankedPreferenceStrategy:

    def test_first_registered_provider_in_rank_order(self):
        strategy = RankedPreferenceStrategy({"code": ["deepseek", "openai", "claude"]})
        models = [_model("claude"), _model("openai")]

        assert strategy.select("code", models).provider_id == "openai"

    def test_walks_preference_list_not_registration_order(self):
        strategy = RankedPreferenceStrategy({"reasoning": ["claude", "openai"]})
        models = [_model("openai"), _model("claude")]

        assert strategy.select("reasoning", models).provider_id == "claude"

    def test_unknown_tag_uses_general(self):
        strategy = RankedPreferenceStrategy({"general": ["gemini"]})
        models = [_model("openai"), _model("gemini")]

        assert strategy.select("astrology", models).provider_id == "gemini"

    def test_no_match_returns_none(self):
        strategy = RankedPreferenceStrategy({"code": ["deepseek"], "general": []})
        assert strategy.select("code", [_model("claude")]) is None

    def test_first_model_of_a_provider_wins(self):
        strategy = RankedPreferenceStrategy({"data": ["openai"]})
        models = [_model("openai", "gpt-4o"), _model("openai", "gpt-4o-mini")]

        assert strategy.select("data", models).identifier == "gpt-4o"


# ── Tests: find_best_for_tag ──


class TestFindBestForTag:

    def test_default_preferences_table(self):
        assert DEFAULT_PREFERENCES["code"] == ["deepseek", "openai", "claude"]
        assert DEFAULT_PREFERENCES["visual"] == ["gemini", "openai", "claude"]
        assert DEFAULT_PREFERENCES["data"] == ["openai", "claude", "gemini"]
        for tag in ("analysis", "reasoning", "synthesis", "general"):
            assert DEFAULT_PREFERENCES[tag] == ["claude", "openai", "gemini"]

    def test_defaults_pick_claude_for_reasoning(self):
        registry = CapabilityRegistry(models=[_model("openai"), _model("claude")])
        assert registry.find_best_for_tag("reasoning").provider_id == "claude"

    def test_defaults_pick_openai_for_code_without_deepseek(self):
        registry = CapabilityRegistry(models=[_model("claude"), _model("openai")])
        assert registry.find_best_for_tag("code").provider_id == "openai"

    def test_empty_registry_returns_none(self):
        assert CapabilityRegistry().find_best_for_tag("reasoning") is None

    def test_unlisted_provider_never_selected(self):
        registry = CapabilityRegistry(models=[_model("mistral")])
        assert registry.find_best_for_tag("reasoning") is None

    def test_custom_preferences_injected(self):
        registry = CapabilityRegistry(
            models=[_model("claude"), _model("mistral")],
            preferences={"reasoning": ["mistral"], "general": ["claude"]},
        )
        assert registry.find_best_for_tag("reasoning").provider_id == "mistral"
        assert registry.find_best_for_tag("code").provider_id == "claude"

    def test_strategy_errors_are_swallowed(self):
        class BrokenStrategy:
            def select(self, tag, models):
                raise RuntimeError("boom")

        registry = CapabilityRegistry(models=[_model("claude")], strategy=BrokenStrategy())
        assert registry.find_best_for_tag("reasoning") is None

    def test_custom_strategy(self):
        class LastModelStrategy:
            def select(self, tag, models):
                return models[-1] if models else None

        registry = CapabilityRegistry(
            models=[_model("claude"), _model("openai")], strategy=LastModelStrategy()
        )
        assert registry.find_best_for_tag("anything").provider_id == "openai"


# ── Tests: mutation ──


class TestRegistryMutation:

    def test_register_model(self):
        registry = CapabilityRegistry()
        registry.register_model(_model("claude"))
        assert [m.provider_id for m in registry.list_models()] == ["claude"]

    def test_register_rejects_tool_descriptor(self):
        registry = CapabilityRegistry()
        descriptor = CapabilityDescriptor(CapabilityKind.TOOL, "builtin", "calculator")
        with pytest.raises(ValueError):
            registry.register_model(descriptor)

    def test_register_and_get_tool(self):
        registry = CapabilityRegistry(tools=[echo_tool])
        assert registry.get_tool("echo_tool") is echo_tool
        assert registry.get_tool("missing") is None

    def test_register_tool_replaces_same_name(self):
        @tool(name="echo_tool")
        def other(text: str) -> str:
            return text.upper()

        registry = CapabilityRegistry(tools=[echo_tool])
        registry.register_tool(other)

        assert registry.get_tool("echo_tool") is other
        assert len(registry.list_tools()) == 1

    def test_refresh_replaces_models_only(self):
        registry = CapabilityRegistry(models=[_model("claude")], tools=[echo_tool])
        registry.refresh(models=[_model("openai")])

        assert [m.provider_id for m in registry.list_models()] == ["openai"]
        assert registry.get_tool("echo_tool") is echo_tool

    def test_list_models_returns_copy(self):
        registry = CapabilityRegistry(models=[_model("claude")])
        registry.list_models().clear()
        assert len(registry.list_models()) == 1


# ── Tests: snapshot ──


class TestSnapshot:

    def test_snapshot_is_isolated_from_later_refresh(self):
        registry = CapabilityRegistry(models=[_model("claude")])
        snapshot = registry.snapshot()

        registry.refresh(models=[_model("openai")])

        assert [m.provider_id for m in snapshot.list_models()] == ["claude"]

    def test_snapshot_is_read_only(self):
        snapshot = CapabilityRegistry(models=[_model("claude")]).snapshot()
        with pytest.raises(RuntimeError, match="read-only"):
            snapshot.register_model(_model("openai"))
        with pytest.raises(RuntimeError):
            snapshot.refresh(models=[])

    def test_snapshot_keeps_strategy(self):
        registry = CapabilityRegistry(
            models=[_model("claude"), _model("openai")],
            preferences={"general": ["openai"]},
        )
        assert registry.snapshot().find_best_for_tag("anything").provider_id == "openai"

    def test_to_dict(self):
        registry = CapabilityRegistry(models=[_model("claude", "c-1")], tools=[echo_tool])
        data = registry.to_dict()

        assert data["models"][0]["provider_id"] == "claude"
        assert data["models"][0]["identifier"] == "c-1"
        assert data["tools"][0]["name"] == "echo_tool"

"""Tests for the engine registry."""

import pytest

from gh_aw.core.exceptions import EngineNotFoundError
from gh_aw.core.settings import CompilerSettings, set_settings
from gh_aw.engines.base import AgenticEngine, ExecutionConfig
from gh_aw.engines.registry import EngineRegistry, get_engine_registry, reset_engine_registry

ALL_ENGINES = ["ai-inference", "claude", "codex", "custom", "gemini", "genaiscript", "opencode"]


class _EchoEngine(AgenticEngine):
    def __init__(self, engine_id: str = "echo") -> None:
        self._id = engine_id

    @property
    def id(self) -> str:
        return self._id

    @property
    def display_name(self) -> str:
        return "Echo"

    @property
    def description(self) -> str:
        return "Prints the prompt"

    def execution_config(self, workflow_name, log_file, engine_config, network, has_safe_outputs, **kwargs):  # type: ignore[no-untyped-def]
        return ExecutionConfig(step_name="Echo prompt", command=f"cat prompt.txt | tee {log_file}")

    def render_mcp_config(self, tools, mcp_tools):  # type: ignore[no-untyped-def]
        return []


class TestEngineRegistry:
    """Tests for EngineRegistry lookups."""

    def test_supported_engines_sorted(self) -> None:
        assert get_engine_registry().get_supported_engines() == ALL_ENGINES

    def test_exact_lookup(self) -> None:
        engine = get_engine_registry().get_engine("claude")
        assert engine.display_name == "Claude Code"

    def test_exact_lookup_unknown(self) -> None:
        with pytest.raises(EngineNotFoundError) as exc_info:
            get_engine_registry().get_engine("codex-experimental")
        assert exc_info.value.engine_id == "codex-experimental"

    def test_prefix_resolution(self) -> None:
        """Versioned identifiers resolve to the engine whose id prefixes them."""
        assert get_engine_registry().resolve("codex-experimental").id == "codex"
        assert get_engine_registry().resolve("claude-sonnet").id == "claude"

    def test_resolve_unknown(self) -> None:
        with pytest.raises(EngineNotFoundError) as exc_info:
            get_engine_registry().resolve("nope")
        assert str(exc_info.value) == "unknown engine: nope"

    def test_get_engine_by_prefix(self) -> None:
        registry = get_engine_registry()
        assert registry.get_engine_by_prefix("codex-mini").id == "codex"
        with pytest.raises(EngineNotFoundError):
            registry.get_engine_by_prefix("unknown-model")

    def test_is_valid_engine_is_exact(self) -> None:
        registry = get_engine_registry()
        assert registry.is_valid_engine("gemini")
        assert not registry.is_valid_engine("gemini-pro")

    def test_default_engine_from_settings(self) -> None:
        assert get_engine_registry().get_default_engine().id == "claude"
        set_settings(CompilerSettings(default_engine="codex"))
        assert get_engine_registry().get_default_engine().id == "codex"

    def test_register_replaces(self) -> None:
        registry = EngineRegistry()
        first = _EchoEngine()
        second = _EchoEngine()
        registry.register(first)
        registry.register(second)
        assert registry.get_engine("echo") is second
        assert registry.all_engines() == [second]

    def test_singleton_and_reset(self) -> None:
        first = get_engine_registry()
        assert get_engine_registry() is first
        reset_engine_registry()
        assert get_engine_registry() is not first


class TestCapabilities:
    """Capability flags of the built-in engines."""

    @pytest.mark.parametrize(
        ("engine_id", "whitelist", "http", "max_turns", "experimental"),
        [
            ("claude", True, True, True, False),
            ("codex", True, False, False, True),
            ("gemini", True, False, False, False),
            ("custom", False, False, True, False),
            ("opencode", True, False, False, True),
            ("genaiscript", False, False, False, True),
            ("ai-inference", False, False, False, False),
        ],
    )
    def test_flags(
        self, engine_id: str, whitelist: bool, http: bool, max_turns: bool, experimental: bool
    ) -> None:
        engine = get_engine_registry().get_engine(engine_id)
        assert engine.supports_tools_whitelist is whitelist
        assert engine.supports_http_transport is http
        assert engine.supports_max_turns is max_turns
        assert engine.experimental is experimental

    def test_every_engine_renders_execution_steps(self) -> None:
        """Each engine produces at least one step for a default configuration."""
        for engine in get_engine_registry().all_engines():
            if engine.id == "custom":
                continue
            steps = engine.execution_steps("Test", "/tmp/aw-logs/test.log", None, None, False)
            assert steps, engine.id
            assert steps[0][0].startswith("      - name: ")

    def test_custom_engine_without_steps_only_ensures_log(self) -> None:
        engine = get_engine_registry().get_engine("custom")
        steps = engine.execution_steps("Test", "/tmp/aw-logs/test.log", None, None, False)
        assert len(steps) == 1
        assert steps[0][0] == "      - name: Ensure log file exists"

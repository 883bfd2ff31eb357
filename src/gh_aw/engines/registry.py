"""Engine registry.

Maps engine identifiers to AgenticEngine instances. Lookups are exact first,
then by prefix, so versioned or legacy identifiers such as `codex-experimental`
resolve to the `codex` engine.

Example:
    >>> registry = get_engine_registry()
    >>> registry.resolve("claude").display_name
    'Claude Code'
    >>> registry.get_supported_engines()
    ['ai-inference', 'claude', 'codex', 'custom', 'gemini', 'genaiscript', 'opencode']

"""

from __future__ import annotations

import logging

from gh_aw.core.exceptions import EngineNotFoundError
from gh_aw.core.settings import get_settings
from gh_aw.engines.ai_inference import AIInferenceEngine
from gh_aw.engines.base import AgenticEngine
from gh_aw.engines.claude import ClaudeEngine
from gh_aw.engines.codex import CodexEngine
from gh_aw.engines.custom import CustomEngine
from gh_aw.engines.gemini import GeminiEngine
from gh_aw.engines.genaiscript import GenAIScriptEngine
from gh_aw.engines.opencode import OpenCodeEngine

logger = logging.getLogger(__name__)


class EngineRegistry:
    """Registered engines keyed by id."""

    def __init__(self) -> None:
        self._engines: dict[str, AgenticEngine] = {}

    def register(self, engine: AgenticEngine) -> None:
        """Add an engine; a later registration with the same id replaces it."""
        if engine.id in self._engines:
            logger.debug("Replacing registered engine: %s", engine.id)
        self._engines[engine.id] = engine

    def get_engine(self, engine_id: str) -> AgenticEngine:
        """Exact lookup.

        Raises:
            EngineNotFoundError: If no engine has this id.

        """
        try:
            return self._engines[engine_id]
        except KeyError:
            raise EngineNotFoundError(f"unknown engine: {engine_id}", engine_id) from None

    def get_engine_by_prefix(self, prefix: str) -> AgenticEngine:
        """First engine (by id order) whose id is a prefix of the identifier.

        Raises:
            EngineNotFoundError: If no engine id prefixes the identifier.

        """
        for engine_id in sorted(self._engines):
            if prefix.startswith(engine_id):
                return self._engines[engine_id]
        raise EngineNotFoundError(f"unknown engine: {prefix}", prefix)

    def resolve(self, engine_id: str) -> AgenticEngine:
        """Exact lookup, then prefix lookup."""
        if engine_id in self._engines:
            return self._engines[engine_id]
        engine = self.get_engine_by_prefix(engine_id)
        logger.debug("Resolved engine '%s' to '%s' by prefix", engine_id, engine.id)
        return engine

    def get_supported_engines(self) -> list[str]:
        return sorted(self._engines)

    def is_valid_engine(self, engine_id: str) -> bool:
        return engine_id in self._engines

    def get_default_engine(self) -> AgenticEngine:
        """Engine named by settings.default_engine."""
        return self.resolve(get_settings().default_engine)

    def all_engines(self) -> list[AgenticEngine]:
        return [self._engines[engine_id] for engine_id in sorted(self._engines)]


_registry: EngineRegistry | None = None


def get_engine_registry() -> EngineRegistry:
    """Get the process-wide registry, built on first use with all engines."""
    global _registry
    if _registry is None:
        registry = EngineRegistry()
        for engine in (
            ClaudeEngine(),
            CodexEngine(),
            GeminiEngine(),
            CustomEngine(),
            OpenCodeEngine(),
            GenAIScriptEngine(),
            AIInferenceEngine(),
        ):
            registry.register(engine)
        _registry = registry
    return _registry


def reset_engine_registry() -> None:
    """Reset global registry (for testing)."""
    global _registry
    _registry = None

"""Agentic engine strategy layer.

This module provides:
- AgenticEngine base class and ExecutionConfig
- Concrete engines (claude, codex, gemini, custom, opencode, genaiscript,
  ai-inference)
- EngineRegistry with exact and prefix lookup
- Engine configuration parsing, MCP rendering and log metrics
"""

from gh_aw.engines.base import AgenticEngine, ExecutionConfig, GitHubActionStep
from gh_aw.engines.config import (
    DEFAULT_ALLOWED_DOMAINS,
    EngineConfig,
    NetworkPermissions,
    extract_engine_config,
    merge_engine_configs,
    validate_engine_conflicts,
)
from gh_aw.engines.metrics import (
    LogMetrics,
    count_errors_and_warnings,
    extract_first_match,
    extract_json_metrics,
)
from gh_aw.engines.registry import EngineRegistry, get_engine_registry, reset_engine_registry

__all__ = [
    # Base
    "AgenticEngine",
    "ExecutionConfig",
    "GitHubActionStep",
    # Config
    "DEFAULT_ALLOWED_DOMAINS",
    "EngineConfig",
    "NetworkPermissions",
    "extract_engine_config",
    "merge_engine_configs",
    "validate_engine_conflicts",
    # Metrics
    "LogMetrics",
    "count_errors_and_warnings",
    "extract_first_match",
    "extract_json_metrics",
    # Registry
    "EngineRegistry",
    "get_engine_registry",
    "reset_engine_registry",
]

"""Core module for gh-aw settings, diagnostics and errors.

This module provides:
- Project settings model and cached access via get_settings()
- Positioned Diagnostic records
- Exception hierarchy with GhAwError as base
"""

from gh_aw.core.diagnostics import Diagnostic, context_lines
from gh_aw.core.exceptions import (
    CompilerError,
    ConfigError,
    EngineNotFoundError,
    FrontmatterParseError,
    FrontmatterValidationFailed,
    GhAwError,
    JobGraphError,
    SemanticError,
)
from gh_aw.core.settings import (
    SETTINGS_FILENAME,
    CompilerSettings,
    get_settings,
    load_settings,
    reset_settings,
    set_settings,
)

__all__ = [
    # Diagnostics
    "Diagnostic",
    "context_lines",
    # Exceptions
    "CompilerError",
    "ConfigError",
    "EngineNotFoundError",
    "FrontmatterParseError",
    "FrontmatterValidationFailed",
    "GhAwError",
    "JobGraphError",
    "SemanticError",
    # Settings
    "SETTINGS_FILENAME",
    "CompilerSettings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "set_settings",
]

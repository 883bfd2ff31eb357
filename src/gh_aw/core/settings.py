"""Project settings loader.

Loads compiler settings from .gh-aw.yaml in the working directory, falling
back to defaults when the file is missing.

Usage:
    from gh_aw.core.settings import get_settings

    settings = get_settings()
    engine_id = settings.default_engine
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gh_aw.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = ".gh-aw.yaml"

# Docker tag of ghcr.io/github/github-mcp-server used when the github tool
# does not pin docker_image_version
DEFAULT_GITHUB_MCP_VERSION = "sha-45e90ae"


class CompilerSettings(BaseModel):
    """Compiler defaults that apply to every workflow in a project.

    Attributes:
        default_engine: Engine used when the frontmatter names none.
        github_mcp_version: Default GitHub MCP server image tag.
        runs_on: Default runner label of the main job.
        timeout_minutes: Default agent timeout in minutes.
        strict: Refuse write permissions on the main job.

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_engine: str = Field(
        default="claude",
        description="Engine used when the workflow frontmatter has no engine",
    )
    github_mcp_version: str = Field(
        default=DEFAULT_GITHUB_MCP_VERSION,
        description="Tag of the GitHub MCP server container image",
    )
    runs_on: str = Field(default="ubuntu-latest", description="Default runner label")
    timeout_minutes: int = Field(
        default=5,
        ge=1,
        le=360,
        description="Default agent timeout in minutes",
    )
    strict: bool = Field(
        default=False,
        description="Reject write permissions on the agent job",
    )

    @field_validator("default_engine", "github_mcp_version", "runs_on")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty strings."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


def load_settings(settings_path: Path | None = None) -> CompilerSettings:
    """Load compiler settings from a YAML file.

    Args:
        settings_path: Path to the settings file. Defaults to ./.gh-aw.yaml.

    Returns:
        CompilerSettings with loaded or default values.

    Raises:
        ConfigError: If the file exists but cannot be parsed or is invalid.

    """
    path = settings_path or Path.cwd() / SETTINGS_FILENAME

    if not path.exists():
        logger.debug("No settings file at %s, using defaults", path)
        return CompilerSettings()

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(
            f"Failed to read settings file {path}: {e}\n"
            f"  How to fix: Check the YAML syntax of {SETTINGS_FILENAME}"
        ) from e

    if not isinstance(data, dict):
        raise ConfigError(
            f"Settings file {path} must contain a mapping, got {type(data).__name__}"
        )

    try:
        settings = CompilerSettings.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid settings in {path}: {details}") from e

    logger.debug("Loaded settings from %s", path)
    return settings


# Global settings cache
_settings: CompilerSettings | None = None


def get_settings() -> CompilerSettings:
    """Get the cached project settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: CompilerSettings) -> None:
    """Replace the cached settings (used by the CLI after loading a file)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset cached settings (for testing)."""
    global _settings
    _settings = None

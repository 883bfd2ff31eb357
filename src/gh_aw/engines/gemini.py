"""Google Gemini CLI engine."""

from __future__ import annotations

import json
import logging
from typing import Any

from gh_aw.engines.base import (
    PROMPT_PATH,
    VALUE_INDENT,
    AgenticEngine,
    ExecutionConfig,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import mcp_type

logger = logging.getLogger(__name__)

GEMINI_ACTION = "google-github-actions/run-gemini-cli@v1"


class GeminiEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "gemini"

    @property
    def display_name(self) -> str:
        return "Gemini CLI"

    @property
    def description(self) -> str:
        return "Uses Google Gemini CLI with GitHub integration and tool support"

    @property
    def supports_tools_whitelist(self) -> bool:
        return True

    def execution_config(
        self,
        workflow_name: str,
        log_file: str,
        engine_config: EngineConfig | None,
        network: NetworkPermissions | None,
        has_safe_outputs: bool,
        *,
        allowed_tools: str = "",
        timeout_minutes: int = 5,
    ) -> ExecutionConfig:
        inputs = {
            "prompt": f"$(cat {PROMPT_PATH})",
            "gemini_api_key": "${{ secrets.GEMINI_API_KEY }}",
        }
        if engine_config is not None and engine_config.model:
            # Single-quoted so the JSON object stays a string
            inputs["settings"] = "'" + json.dumps({"model": engine_config.model}) + "'"
        return ExecutionConfig(
            step_name="Execute Gemini CLI Action",
            action=GEMINI_ACTION,
            inputs=inputs,
            environment={"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}"},
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        lines = [
            f"{VALUE_INDENT}# Gemini CLI handles GitHub integration natively when GITHUB_TOKEN is available",
            f"{VALUE_INDENT}# No additional MCP configuration required for GitHub tools",
        ]
        custom = [name for name in mcp_tools if name != "github" and mcp_type(tools.get(name))]
        if custom:
            logger.warning("Custom MCP tools are ignored by the Gemini engine: %s", ", ".join(custom))
            lines += [
                f"{VALUE_INDENT}# Note: Custom MCP tools are not currently supported by Gemini CLI engine",
                f"{VALUE_INDENT}# Consider using claude or opencode engines for custom MCP integrations",
            ]
        return lines

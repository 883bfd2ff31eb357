"""OpenAI Codex CLI engine (experimental).

Codex reads MCP servers from `$CODEX_HOME/config.toml`, so its MCP config is
rendered as TOML and only stdio servers are supported.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from gh_aw.engines.base import (
    PROMPT_PATH,
    SAFE_OUTPUTS_ENV,
    AgenticEngine,
    ExecutionConfig,
    GitHubActionStep,
    npm_install_steps,
    render_custom_step,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import MCP_CONFIG_DIR, collect_servers, render_toml_config
from gh_aw.engines.metrics import LogMetrics, count_errors_and_warnings

logger = logging.getLogger(__name__)

DEFAULT_CODEX_MODEL = "o4-mini"

_TOKENS_USED = re.compile(r"tokens\s+used[:\s]+(\d+)", re.IGNORECASE)

_COMMAND = """set -o pipefail
INSTRUCTION=$(cat {prompt})
export CODEX_HOME={codex_home}

# Create log directory outside git repo
mkdir -p /tmp/aw-logs

# pipefail keeps the codex exit code
codex exec \\
  -c model={model} \\
  --full-auto "$INSTRUCTION" 2>&1 | tee {log_file}"""


class CodexEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "codex"

    @property
    def display_name(self) -> str:
        return "Codex"

    @property
    def description(self) -> str:
        return "Uses OpenAI Codex CLI with MCP server support"

    @property
    def experimental(self) -> bool:
        return True

    @property
    def supports_tools_whitelist(self) -> bool:
        return True

    @property
    def log_parser_script(self) -> str | None:
        return "parse_codex_log"

    def installation_steps(
        self, engine_config: EngineConfig | None, network: NetworkPermissions | None
    ) -> list[GitHubActionStep]:
        version = engine_config.version if engine_config is not None else ""
        return npm_install_steps(self.display_name, "@openai/codex", version)

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
        model = DEFAULT_CODEX_MODEL
        if engine_config is not None and engine_config.model:
            model = engine_config.model

        env = {
            "OPENAI_API_KEY": "${{ secrets.OPENAI_API_KEY }}",
            "GITHUB_STEP_SUMMARY": "${{ env.GITHUB_STEP_SUMMARY }}",
            "GITHUB_AW_PROMPT": PROMPT_PATH,
        }
        if has_safe_outputs:
            env["GITHUB_AW_SAFE_OUTPUTS"] = SAFE_OUTPUTS_ENV
        custom_steps: tuple[GitHubActionStep, ...] = ()
        if engine_config is not None:
            env.update(engine_config.env)
            custom_steps = tuple(render_custom_step(step) for step in engine_config.steps)

        return ExecutionConfig(
            step_name="Run Codex",
            command=_COMMAND.format(
                prompt=PROMPT_PATH, codex_home=MCP_CONFIG_DIR, model=model, log_file=log_file
            ),
            environment=env,
            steps=custom_steps,
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        return render_toml_config(collect_servers(tools, mcp_tools, http_supported=False))

    def parse_log_metrics(self, log_content: str, verbose: bool = False) -> LogMetrics:
        """Sum every `tokens used: N` report; Codex logs no cost."""
        lines = log_content.split("\n")
        tokens = 0
        for line in lines:
            match = _TOKENS_USED.search(line)
            if match:
                tokens += int(match.group(1))
        errors, warnings = count_errors_and_warnings(lines)
        return LogMetrics(token_usage=tokens, error_count=errors, warning_count=warnings)

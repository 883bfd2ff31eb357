"""OpenCode engine (experimental)."""

from __future__ import annotations

from typing import Any

from gh_aw.engines.base import (
    PROMPT_PATH,
    AgenticEngine,
    ExecutionConfig,
    GitHubActionStep,
    npm_install_steps,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import MCP_CONFIG_DIR, collect_servers, render_json_config

OPENCODE_CONFIG_PATH = f"{MCP_CONFIG_DIR}/opencode.json"


def api_key_env(model: str) -> str:
    """Secret the model needs: Anthropic models use ANTHROPIC_API_KEY."""
    if model.startswith(("claude", "anthropic/")):
        return "ANTHROPIC_API_KEY"
    return "OPENCODE_API_KEY"


class OpenCodeEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "opencode"

    @property
    def display_name(self) -> str:
        return "OpenCode"

    @property
    def description(self) -> str:
        return "Uses OpenCode AI coding assistant (experimental)"

    @property
    def experimental(self) -> bool:
        return True

    @property
    def supports_tools_whitelist(self) -> bool:
        return True

    def installation_steps(
        self, engine_config: EngineConfig | None, network: NetworkPermissions | None
    ) -> list[GitHubActionStep]:
        version = engine_config.version if engine_config is not None else ""
        return npm_install_steps(self.display_name, "opencode", version, cache=True)

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
        model = engine_config.model if engine_config is not None else ""
        key = api_key_env(model)

        run = ["opencode exec", f"  --config {OPENCODE_CONFIG_PATH}"]
        if model:
            run.append(f"  --model {model}")
        run.append(f'  --auto "$INSTRUCTION" 2>&1 | tee {log_file}')
        command = "\n".join(
            [
                f"INSTRUCTION=$(cat {PROMPT_PATH})",
                f"export OPENCODE_CONFIG={MCP_CONFIG_DIR}",
                "",
                "# Create log directory outside git repo",
                "mkdir -p /tmp/aw-logs",
                "",
                "# Run opencode with log capture",
                " \\\n".join(run),
            ]
        )

        env = {key: f"${{{{ secrets.{key} }}}}"}
        if engine_config is not None:
            env.update(engine_config.env)
        return ExecutionConfig(step_name="Run OpenCode", command=command, environment=env)

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        servers = collect_servers(tools, mcp_tools, http_supported=False)
        return render_json_config(servers, path=OPENCODE_CONFIG_PATH)

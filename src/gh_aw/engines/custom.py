"""Custom engine: runs the user's own `engine.steps`.

Every custom step receives the prompt path, the safe output file, the turn
limit and the engine `env:` map in its environment. A final step makes sure
the agent log exists so that log upload never fails.
"""

from __future__ import annotations

from typing import Any

from gh_aw.engines.base import (
    FIELD_INDENT,
    STEP_INDENT,
    VALUE_INDENT,
    AgenticEngine,
    ExecutionConfig,
    base_environment,
    render_custom_step,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import collect_servers, render_json_config


class CustomEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "custom"

    @property
    def display_name(self) -> str:
        return "Custom Steps"

    @property
    def description(self) -> str:
        return "Executes user-defined GitHub Actions steps"

    @property
    def supports_max_turns(self) -> bool:
        return True

    @property
    def log_parser_script(self) -> str | None:
        return "parse_generic_log"

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
        env = base_environment(engine_config, has_safe_outputs)
        steps = []
        if engine_config is not None:
            for step in engine_config.steps:
                step_env = step.get("env") if isinstance(step.get("env"), dict) else {}
                steps.append(render_custom_step({**step, "env": {**step_env, **env}}))

        ensure_log = [
            f"{STEP_INDENT}- name: Ensure log file exists",
            f"{FIELD_INDENT}run: |",
            f'{VALUE_INDENT}echo "Custom steps execution completed" >> {log_file}',
            f"{VALUE_INDENT}touch {log_file}",
        ]
        return ExecutionConfig(
            step_name="Custom steps",
            steps=tuple(steps),
            post_steps=(ensure_log,),
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        return render_json_config(collect_servers(tools, mcp_tools, http_supported=False))

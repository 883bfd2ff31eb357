"""GitHub Models engine via actions/ai-inference."""

from __future__ import annotations

from typing import Any

from gh_aw.engines.base import (
    PROMPT_PATH,
    SAFE_OUTPUTS_ENV,
    AgenticEngine,
    ExecutionConfig,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import render_json_config
from gh_aw.engines.metrics import (
    LogMetrics,
    count_errors_and_warnings,
    extract_json_metrics,
    parse_json_object,
    to_int,
)

DEFAULT_AI_INFERENCE_VERSION = "v1"
DEFAULT_AI_INFERENCE_MODEL = "gpt-4o-mini"


class AIInferenceEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "ai-inference"

    @property
    def display_name(self) -> str:
        return "AI Inference"

    @property
    def description(self) -> str:
        return "Uses GitHub's actions/ai-inference action with MCP tool support"

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
        version = DEFAULT_AI_INFERENCE_VERSION
        model = DEFAULT_AI_INFERENCE_MODEL
        if engine_config is not None:
            version = engine_config.version or version
            model = engine_config.model or model

        env_lines = [f"GITHUB_AW_PROMPT_FILE: {PROMPT_PATH}"]
        if has_safe_outputs:
            env_lines.append(f"GITHUB_AW_SAFE_OUTPUTS: {SAFE_OUTPUTS_ENV}")
        if engine_config is not None:
            env_lines += [f"{key}: {value}" for key, value in engine_config.env.items()]

        return ExecutionConfig(
            step_name="Execute AI Inference Action",
            action=f"actions/ai-inference@{version}",
            inputs={
                "model": model,
                "prompt": "Please read the instructions from the file at "
                "$GITHUB_AW_PROMPT_FILE and follow them.",
                "env": "\n".join(env_lines),
            },
            block_inputs=frozenset({"env"}),
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        return render_json_config({})

    def parse_log_metrics(self, log_content: str, verbose: bool = False) -> LogMetrics:
        """Per-line JSON metrics plus OpenAI-style prompt/completion usage."""
        lines = log_content.split("\n")
        tokens = 0
        cost = 0.0
        for line in lines:
            line_metrics = extract_json_metrics(line, verbose)
            tokens += line_metrics.token_usage
            cost += line_metrics.estimated_cost
            if line_metrics.token_usage:
                continue
            data = parse_json_object(line)
            if data is not None and isinstance(data.get("usage"), dict):
                usage = data["usage"]
                tokens += to_int(usage.get("prompt_tokens")) + to_int(usage.get("completion_tokens"))
        errors, warnings = count_errors_and_warnings(lines)
        return LogMetrics(
            token_usage=tokens, estimated_cost=cost, error_count=errors, warning_count=warnings
        )

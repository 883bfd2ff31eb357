"""GenAIScript engine (experimental).

The prompt is wrapped in a generated `workflow.genai.mts` script that is run
with `genaiscript run`. GenAIScript has its own tool system, so no MCP config
is written.
"""

from __future__ import annotations

import re
from typing import Any

from gh_aw.engines.base import (
    PROMPT_PATH,
    SAFE_OUTPUTS_ENV,
    VALUE_INDENT,
    AgenticEngine,
    ExecutionConfig,
    GitHubActionStep,
    npm_install_steps,
)
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.metrics import LogMetrics, count_errors_and_warnings

DEFAULT_GENAISCRIPT_MODEL = "gpt-4o-mini"

_TOKEN_PATTERNS = (
    re.compile(r"total[_\s]tokens[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"tokens[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"completion[_\s]tokens[:\s]+(\d+)", re.IGNORECASE),
)

_COMMAND = """set -o pipefail
INSTRUCTION=$(cat {prompt})

# Wrap the prompt in a GenAIScript script
mkdir -p /tmp/genaiscript-workspace/genaisrc
cat > /tmp/genaiscript-workspace/genaisrc/workflow.genai.mts << 'EOF'
script({{
  title: "GitHub Agentic Workflow",
  description: "Execute workflow instructions using GenAIScript",
  model: "{model}"
}})

$`${{process.env.WORKFLOW_INSTRUCTION || ""}}`
EOF

cd /tmp/genaiscript-workspace
export WORKFLOW_INSTRUCTION="$INSTRUCTION"

# pipefail keeps the genaiscript exit code
genaiscript run workflow \\
  --model {model} \\
  --out /tmp/genaiscript-output 2>&1 | tee {log_file}"""


def line_token_usage(line: str) -> int:
    for pattern in _TOKEN_PATTERNS:
        match = pattern.search(line)
        if match:
            return int(match.group(1))
    return 0


class GenAIScriptEngine(AgenticEngine):
    @property
    def id(self) -> str:
        return "genaiscript"

    @property
    def display_name(self) -> str:
        return "GenAIScript"

    @property
    def description(self) -> str:
        return "Uses GenAIScript to run markdown-based AI scripts with JavaScript/TypeScript"

    @property
    def experimental(self) -> bool:
        return True

    @property
    def log_parser_script(self) -> str | None:
        return "parse_generic_log"

    def declared_output_files(self) -> list[str]:
        return ["output.txt", "*.genai.md"]

    def installation_steps(
        self, engine_config: EngineConfig | None, network: NetworkPermissions | None
    ) -> list[GitHubActionStep]:
        version = engine_config.version if engine_config is not None else ""
        return npm_install_steps(self.display_name, "genaiscript", version)

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
        model = DEFAULT_GENAISCRIPT_MODEL
        if engine_config is not None and engine_config.model:
            model = engine_config.model

        env = {
            "OPENAI_API_KEY": "${{ secrets.OPENAI_API_KEY }}",
            "ANTHROPIC_API_KEY": "${{ secrets.ANTHROPIC_API_KEY }}",
            "AZURE_OPENAI_API_KEY": "${{ secrets.AZURE_OPENAI_API_KEY }}",
            "GOOGLE_API_KEY": "${{ secrets.GOOGLE_API_KEY }}",
            "GITHUB_STEP_SUMMARY": "${{ env.GITHUB_STEP_SUMMARY }}",
        }
        if has_safe_outputs:
            env["GITHUB_AW_SAFE_OUTPUTS"] = SAFE_OUTPUTS_ENV
        if engine_config is not None:
            env.update(engine_config.env)

        return ExecutionConfig(
            step_name="Run GenAIScript",
            command=_COMMAND.format(prompt=PROMPT_PATH, model=model, log_file=log_file),
            environment=env,
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        return [
            f"{VALUE_INDENT}# GenAIScript uses its own tool system",
            f"{VALUE_INDENT}# No MCP configuration needed",
        ]

    def parse_log_metrics(self, log_content: str, verbose: bool = False) -> LogMetrics:
        lines = log_content.split("\n")
        tokens = sum(line_token_usage(line) for line in lines if line.strip())
        errors, warnings = count_errors_and_warnings(lines)
        return LogMetrics(token_usage=tokens, error_count=errors, warning_count=warnings)

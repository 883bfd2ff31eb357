"""Claude Code engine.

Runs anthropics/claude-code-base-action with the prompt file, the JSON MCP
config and the computed tool allow-list. When the workflow restricts network
egress, a Claude settings file and a PreToolUse hook are generated so that
WebFetch and WebSearch only reach allowed domains.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gh_aw.engines.base import (
    FIELD_INDENT,
    PROMPT_PATH,
    SAFE_OUTPUTS_ENV,
    STEP_INDENT,
    VALUE_INDENT,
    AgenticEngine,
    ExecutionConfig,
    GitHubActionStep,
    base_environment,
    render_custom_step,
)
from gh_aw.engines.config import DEFAULT_ALLOWED_DOMAINS, EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import MCP_JSON_PATH, collect_servers, render_json_config
from gh_aw.engines.metrics import (
    LogMetrics,
    count_errors_and_warnings,
    extract_json_cost,
    extract_json_token_usage,
    parse_json_object,
    to_float,
    usage_tokens,
)
from gh_aw.templates import render_template

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_ACTION_VERSION = "v0.0.56"

SETTINGS_PATH = ".claude/settings.json"
HOOK_PATH = ".claude/hooks/network_permissions.py"


def network_enforced(engine_config: EngineConfig | None, network: NetworkPermissions | None) -> bool:
    """Whether the settings file and hook are generated.

    Only the literal `claude` engine id enforces egress rules; any network
    section, including an empty allow-list, counts.
    """
    return engine_config is not None and engine_config.id == "claude" and network is not None


def allowed_domains(network: NetworkPermissions | None) -> list[str]:
    """Domains the hook lets through; no policy means the defaults."""
    if network is None:
        return list(DEFAULT_ALLOWED_DOMAINS)
    return network.allowed_domains()


def settings_json() -> str:
    settings = {
        "hooks": {
            "PreToolUse": [
                {
                    "matcher": "WebFetch|WebSearch",
                    "hooks": [{"type": "command", "command": f"python3 {HOOK_PATH}"}],
                }
            ]
        }
    }
    return json.dumps(settings, indent=2)


def settings_step() -> GitHubActionStep:
    lines = [
        f"{STEP_INDENT}- name: Generate Claude Settings",
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}mkdir -p .claude",
        f"{VALUE_INDENT}cat > {SETTINGS_PATH} << 'EOF'",
    ]
    lines += [VALUE_INDENT + line for line in settings_json().split("\n")]
    lines.append(f"{VALUE_INDENT}EOF")
    return lines


def network_hook_step(domains: list[str]) -> GitHubActionStep:
    script = render_template("network_permissions.py.j2", domains=domains)
    lines = [
        f"{STEP_INDENT}- name: Generate Network Permissions Hook",
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}mkdir -p .claude/hooks",
        f"{VALUE_INDENT}cat > {HOOK_PATH} << 'EOF'",
    ]
    lines += [VALUE_INDENT + line if line else "" for line in script.split("\n")]
    lines += [f"{VALUE_INDENT}EOF", f"{VALUE_INDENT}chmod +x {HOOK_PATH}"]
    return lines


def capture_logs_step(log_file: str) -> GitHubActionStep:
    return [
        f"{STEP_INDENT}- name: Capture Agentic Action logs",
        f"{FIELD_INDENT}if: always()",
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}# Copy the detailed execution file from Agentic Action if available",
        f'{VALUE_INDENT}if [ -n "${{{{ steps.agentic_execution.outputs.execution_file }}}}" ] '
        f'&& [ -f "${{{{ steps.agentic_execution.outputs.execution_file }}}}" ]; then',
        f"{VALUE_INDENT}  cp ${{{{ steps.agentic_execution.outputs.execution_file }}}} {log_file}",
        f"{VALUE_INDENT}else",
        f'{VALUE_INDENT}  echo "No execution file output found from Agentic Action" >> {log_file}',
        f"{VALUE_INDENT}fi",
        "",
        f"{VALUE_INDENT}# Ensure log file exists",
        f"{VALUE_INDENT}touch {log_file}",
    ]


class ClaudeEngine(AgenticEngine):
    """Claude Code with MCP tool allow-listing, http transport and max-turns."""

    @property
    def id(self) -> str:
        return "claude"

    @property
    def display_name(self) -> str:
        return "Claude Code"

    @property
    def description(self) -> str:
        return "Uses Claude Code with full MCP tool support and allow-listing"

    @property
    def supports_tools_whitelist(self) -> bool:
        return True

    @property
    def supports_http_transport(self) -> bool:
        return True

    @property
    def supports_max_turns(self) -> bool:
        return True

    @property
    def log_parser_script(self) -> str | None:
        return "parse_claude_log"

    def declared_output_files(self) -> list[str]:
        return ["output.txt"]

    def installation_steps(
        self, engine_config: EngineConfig | None, network: NetworkPermissions | None
    ) -> list[GitHubActionStep]:
        if not network_enforced(engine_config, network):
            return []
        domains = allowed_domains(network)
        logger.debug("Restricting Claude network access to %d domains", len(domains))
        return [settings_step(), network_hook_step(domains)]

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
        version = DEFAULT_CLAUDE_ACTION_VERSION
        if engine_config is not None and engine_config.version:
            version = engine_config.version

        inputs: dict[str, str] = {
            "prompt_file": PROMPT_PATH,
            "anthropic_api_key": "${{ secrets.ANTHROPIC_API_KEY }}",
            "mcp_config": MCP_JSON_PATH,
            "timeout_minutes": str(timeout_minutes),
        }
        comments: dict[str, tuple[str, ...]] = {}
        if allowed_tools:
            inputs["allowed_tools"] = f'"{allowed_tools}"'
            comments["allowed_tools"] = ("Allowed tools (sorted):",) + tuple(
                f"- {tool}" for tool in allowed_tools.split(",")
            )

        claude_env: list[str] = []
        if has_safe_outputs:
            claude_env.append(f"GITHUB_AW_SAFE_OUTPUTS: {SAFE_OUTPUTS_ENV}")
        if engine_config is not None:
            claude_env += [f"{key}: {value}" for key, value in engine_config.env.items()]
            if engine_config.max_turns is not None:
                inputs["max_turns"] = str(engine_config.max_turns)
            if engine_config.model:
                inputs["model"] = engine_config.model
        if claude_env:
            inputs["claude_env"] = "\n".join(claude_env)
        if network_enforced(engine_config, network):
            inputs["settings"] = SETTINGS_PATH

        custom_steps: tuple[GitHubActionStep, ...] = ()
        if engine_config is not None:
            custom_steps = tuple(render_custom_step(step) for step in engine_config.steps)

        return ExecutionConfig(
            step_name="Execute Claude Code Action",
            action=f"anthropics/claude-code-base-action@{version}",
            inputs=inputs,
            environment=base_environment(engine_config, has_safe_outputs),
            step_id="agentic_execution",
            input_comments=comments,
            steps=custom_steps,
            post_steps=(capture_logs_step(log_file),),
            block_inputs=frozenset({"claude_env"}),
        )

    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        return render_json_config(collect_servers(tools, mcp_tools, http_supported=True))

    def parse_log_metrics(self, log_content: str, verbose: bool = False) -> LogMetrics:
        """Metrics from Claude's stream-JSON log.

        The final `result` entry carries authoritative usage and
        `total_cost_usd`; without it the maximum per-line token usage and the
        first reported cost are used. Error and warning counts skip JSON lines
        of a stream log, but cover every line of a JSON array log.
        """
        token_usage = 0
        cost = 0.0
        result_found = False

        payload = _json_array(log_content)
        if payload is not None:
            for entry in payload:
                if isinstance(entry, dict) and entry.get("type") == "result":
                    token_usage = usage_tokens(entry.get("usage"))
                    cost = to_float(entry.get("total_cost_usd"))
                    break
            # Lines of a pretty-printed array still count towards errors and warnings
            errors, warnings = count_errors_and_warnings(log_content.split("\n"))
            return LogMetrics(
                token_usage=token_usage,
                estimated_cost=cost,
                error_count=errors,
                warning_count=warnings,
            )

        text_lines: list[str] = []
        for line in log_content.split("\n"):
            data = parse_json_object(line)
            if data is None:
                text_lines.append(line)
                continue
            if result_found:
                continue
            if data.get("type") == "result":
                token_usage = usage_tokens(data.get("usage")) or extract_json_token_usage(data)
                cost = to_float(data.get("total_cost_usd")) or extract_json_cost(data)
                result_found = True
                continue
            token_usage = max(token_usage, extract_json_token_usage(data))
            if cost == 0.0:
                cost = extract_json_cost(data)

        errors, warnings = count_errors_and_warnings(text_lines)
        if verbose:
            logger.debug("Claude log metrics: %d tokens, $%.4f", token_usage, cost)
        return LogMetrics(
            token_usage=token_usage,
            estimated_cost=cost,
            error_count=errors,
            warning_count=warnings,
        )


def _json_array(log_content: str) -> list[Any] | None:
    trimmed = log_content.strip()
    if not trimmed.startswith("["):
        return None
    try:
        data = json.loads(trimmed)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, list) else None

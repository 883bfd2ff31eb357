"""Step builders for the generated jobs.

Each builder returns one GitHubActionStep (a list of YAML lines at the
indentation of a job's `steps:` list) or a list of them. The compiler calls
them in the order the steps appear in the main job.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gh_aw.core.yamlutil import dump_condition, indent_block
from gh_aw.engines.base import (
    FIELD_INDENT,
    PROMPT_PATH,
    SAFE_OUTPUTS_ENV,
    STEP_INDENT,
    VALUE_INDENT,
    AgenticEngine,
    GitHubActionStep,
    render_custom_step,
)
from gh_aw.engines.config import EngineConfig
from gh_aw.js import format_script, get_script
from gh_aw.templates import render_template
from gh_aw.workflow.proxy import proxy_tool_names

logger = logging.getLogger(__name__)

GITHUB_SCRIPT_ACTION = "actions/github-script@v7"
UPLOAD_ARTIFACT_ACTION = "actions/upload-artifact@v4"
DOWNLOAD_ARTIFACT_ACTION = "actions/download-artifact@v4"
CHECKOUT_ACTION = "actions/checkout@v5"
CACHE_ACTION = "actions/cache@v3"

AW_INFO_PATH = "/tmp/aw_info.json"
PATCH_PATH = "/tmp/aw.patch"
PATCH_ARTIFACT = "aw.patch"
OUTPUT_ARTIFACT = "aw_output.txt"
ACCESS_LOG_DIR = "/tmp/access-logs"


def github_script_step(
    name: str,
    script: str,
    *,
    step_id: str = "",
    if_: str = "",
    env: dict[str, str] | None = None,
) -> GitHubActionStep:
    """actions/github-script step running a bundled script.

    Args:
        name: Step name.
        script: Bundled script name, e.g. "create_issue".
        step_id: Optional step id.
        if_: Optional step condition.
        env: Step environment, in insertion order.

    """
    lines = [f"{STEP_INDENT}- name: {name}"]
    if step_id:
        lines.append(f"{FIELD_INDENT}id: {step_id}")
    if if_:
        lines += _condition_lines(if_)
    lines.append(f"{FIELD_INDENT}uses: {GITHUB_SCRIPT_ACTION}")
    if env:
        lines.append(f"{FIELD_INDENT}env:")
        lines += [f"{VALUE_INDENT}{key}: {value}" for key, value in env.items()]
    lines += [f"{FIELD_INDENT}with:", f"{VALUE_INDENT}script: |"]
    lines += format_script(get_script(script))
    return lines


def _condition_lines(if_: str) -> list[str]:
    return indent_block(dump_condition(if_), FIELD_INDENT).split("\n")


def upload_artifact_step(
    name: str, artifact: str, path: str, if_: str = "always()", if_no_files: str = "warn"
) -> GitHubActionStep:
    lines = [f"{STEP_INDENT}- name: {name}"]
    if if_:
        lines += _condition_lines(if_)
    lines += [
        f"{FIELD_INDENT}uses: {UPLOAD_ARTIFACT_ACTION}",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}name: {artifact}",
        f"{VALUE_INDENT}path: {path}",
        f"{VALUE_INDENT}if-no-files-found: {if_no_files}",
    ]
    return lines


def run_step(
    name: str,
    script: str,
    *,
    step_id: str = "",
    if_: str = "",
    env: dict[str, str] | None = None,
) -> GitHubActionStep:
    """`run: |` step; env is rendered after the script."""
    lines = [f"{STEP_INDENT}- name: {name}"]
    if step_id:
        lines.append(f"{FIELD_INDENT}id: {step_id}")
    if if_:
        lines += _condition_lines(if_)
    lines.append(f"{FIELD_INDENT}run: |")
    lines += [VALUE_INDENT + line if line else "" for line in script.split("\n")]
    if env:
        lines.append(f"{FIELD_INDENT}env:")
        lines += [f"{VALUE_INDENT}{key}: {value}" for key, value in env.items()]
    return lines


def checkout_step(fetch_depth: int | None = None) -> GitHubActionStep:
    lines = [f"{STEP_INDENT}- name: Checkout repository", f"{FIELD_INDENT}uses: {CHECKOUT_ACTION}"]
    if fetch_depth is not None:
        lines += [f"{FIELD_INDENT}with:", f"{VALUE_INDENT}fetch-depth: {fetch_depth}"]
    return lines


def custom_steps(steps: list[dict[str, Any]] | None) -> list[GitHubActionStep]:
    """Steps declared in the frontmatter (`steps:` or `post-steps:`)."""
    return [render_custom_step(step) for step in steps or ()]


# =============================================================================
# Cache
# =============================================================================


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def cache_steps(cache: Any) -> list[GitHubActionStep]:
    """actions/cache steps for a `cache:` mapping or list of mappings.

    Steps are named "Cache (<key>)", or "Cache N" for keyless entries of a
    list.
    """
    if isinstance(cache, dict):
        entries = [cache]
    elif isinstance(cache, list):
        entries = [entry for entry in cache if isinstance(entry, dict)]
    else:
        return []

    steps: list[GitHubActionStep] = []
    for index, entry in enumerate(entries, start=1):
        name = f"Cache {index}" if len(entries) > 1 else "Cache"
        key = entry.get("key")
        if isinstance(key, str) and key:
            name = f"Cache ({key})"

        lines = [f"{STEP_INDENT}- name: {name}", f"{FIELD_INDENT}uses: {CACHE_ACTION}", f"{FIELD_INDENT}with:"]
        if "key" in entry:
            lines.append(f"{VALUE_INDENT}key: {_scalar(key)}")
        for field in ("path", "restore-keys"):
            if field not in entry:
                continue
            value = entry[field]
            if isinstance(value, list):
                lines.append(f"{VALUE_INDENT}{field}: |")
                lines += [f"{VALUE_INDENT}  {_scalar(item)}" for item in value]
            else:
                lines.append(f"{VALUE_INDENT}{field}: {_scalar(value)}")
        for field in ("upload-chunk-size", "fail-on-cache-miss", "lookup-only"):
            if field in entry:
                lines.append(f"{VALUE_INDENT}{field}: {_scalar(entry[field])}")
        steps.append(lines)

    if steps:
        steps[0].insert(0, f"{STEP_INDENT}# Cache configuration from frontmatter processed below")
    return steps


# =============================================================================
# Main job
# =============================================================================


def setup_agent_output_step() -> GitHubActionStep:
    return github_script_step("Setup agent output", "setup_agent_output", step_id="setup_agent_output")


def mcp_setup_step(engine: AgenticEngine, tools: dict[str, Any], mcp_tools: list[str]) -> GitHubActionStep:
    lines = [
        f"{STEP_INDENT}- name: Setup MCPs",
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}mkdir -p /tmp/mcp-config",
    ]
    lines += engine.render_mcp_config(tools, mcp_tools)
    return lines


def safety_checks_step(workflow_name: str, stop_time: str) -> GitHubActionStep:
    """Disable the workflow and fail once the stop time has passed."""
    script = render_template("safety_checks.sh.j2", workflow_name=workflow_name, stop_time=stop_time)
    return run_step("Safety checks", script, env={"GH_TOKEN": "${{ secrets.GITHUB_TOKEN }}"})


def prompt_steps(markdown: str, instructions: str, has_safe_outputs: bool) -> list[GitHubActionStep]:
    """Write the prompt file and echo it into the step summary.

    Args:
        markdown: Expanded prompt body.
        instructions: Safe output instructions appended to the prompt, or "".
        has_safe_outputs: Whether the safe output file variable is exposed.

    """
    create = [f"{STEP_INDENT}- name: Create prompt"]
    if has_safe_outputs:
        create += [f"{FIELD_INDENT}env:", f"{VALUE_INDENT}GITHUB_AW_SAFE_OUTPUTS: {SAFE_OUTPUTS_ENV}"]
    create += [
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}mkdir -p /tmp/aw-prompts",
        f"{VALUE_INDENT}cat > {PROMPT_PATH} << 'EOF'",
    ]
    body = markdown + ("\n\n" + instructions if instructions else "")
    create += [VALUE_INDENT + line if line else "" for line in body.split("\n")]
    create.append(f"{VALUE_INDENT}EOF")

    summary = run_step(
        "Print prompt to step summary",
        'echo "## Generated Prompt" >> $GITHUB_STEP_SUMMARY\n'
        'echo "" >> $GITHUB_STEP_SUMMARY\n'
        "echo '``````markdown' >> $GITHUB_STEP_SUMMARY\n"
        f"cat {PROMPT_PATH} >> $GITHUB_STEP_SUMMARY\n"
        "echo '``````' >> $GITHUB_STEP_SUMMARY",
    )
    return [create, summary]


def aw_info_steps(
    engine: AgenticEngine, engine_config: EngineConfig | None, workflow_name: str
) -> list[GitHubActionStep]:
    """Record engine and run metadata in /tmp/aw_info.json and upload it."""
    engine_id = engine_config.id if engine_config is not None and engine_config.id else engine.id
    model = engine_config.model if engine_config is not None else ""
    version = engine_config.version if engine_config is not None else ""
    fields = [
        ("engine_id", json.dumps(engine_id)),
        ("engine_name", json.dumps(engine.display_name)),
        ("model", json.dumps(model)),
        ("version", json.dumps(version)),
        ("workflow_name", json.dumps(workflow_name)),
        ("experimental", _scalar(engine.experimental)),
        ("supports_tools_whitelist", _scalar(engine.supports_tools_whitelist)),
        ("supports_http_transport", _scalar(engine.supports_http_transport)),
        ("run_id", "context.runId"),
        ("run_number", "context.runNumber"),
        ("run_attempt", "process.env.GITHUB_RUN_ATTEMPT"),
        ("repository", "context.repo.owner + '/' + context.repo.repo"),
        ("ref", "context.ref"),
        ("sha", "context.sha"),
        ("actor", "context.actor"),
        ("event_name", "context.eventName"),
        ("created_at", "new Date().toISOString()"),
    ]
    script_indent = VALUE_INDENT + "  "
    generate = [
        f"{STEP_INDENT}- name: Generate agentic run info",
        f"{FIELD_INDENT}uses: {GITHUB_SCRIPT_ACTION}",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}script: |",
        f"{script_indent}const fs = require('fs');",
        "",
        f"{script_indent}const awInfo = {{",
    ]
    generate += [
        f"{script_indent}  {key}: {value}{',' if i < len(fields) - 1 else ''}"
        for i, (key, value) in enumerate(fields)
    ]
    generate += [
        f"{script_indent}}};",
        "",
        f"{script_indent}// Write to /tmp directory to avoid inclusion in PR",
        f"{script_indent}const tmpPath = '{AW_INFO_PATH}';",
        f"{script_indent}fs.writeFileSync(tmpPath, JSON.stringify(awInfo, null, 2));",
        f"{script_indent}console.log('Generated aw_info.json at:', tmpPath);",
        f"{script_indent}console.log(JSON.stringify(awInfo, null, 2));",
    ]
    upload = upload_artifact_step("Upload agentic run info", "aw_info.json", AW_INFO_PATH)
    return [generate, upload]


def workflow_complete_steps() -> list[GitHubActionStep]:
    check = run_step(
        "Check if workflow-complete.txt exists, if so upload it",
        "if [ -f workflow-complete.txt ]; then\n"
        '  echo "File exists"\n'
        '  echo "upload=true" >> $GITHUB_OUTPUT\n'
        "else\n"
        '  echo "File does not exist"\n'
        '  echo "upload=false" >> $GITHUB_OUTPUT\n'
        "fi",
        step_id="check_file",
    )
    upload = [
        f"{STEP_INDENT}- name: Upload workflow-complete.txt",
        f"{FIELD_INDENT}if: steps.check_file.outputs.upload == 'true'",
        f"{FIELD_INDENT}uses: {UPLOAD_ARTIFACT_ACTION}",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}name: workflow-complete",
        f"{VALUE_INDENT}path: workflow-complete.txt",
    ]
    return [check, upload]


def output_collection_steps(config_json: str, allowed_domains: list[str]) -> list[GitHubActionStep]:
    """Validate the agent's JSONL output and publish it as a job output.

    Args:
        config_json: Compact JSON of the enabled output types.
        allowed_domains: URL domains kept by sanitization; [] for the default list.

    """
    env = {
        "GITHUB_AW_SAFE_OUTPUTS": SAFE_OUTPUTS_ENV,
        "GITHUB_AW_SAFE_OUTPUTS_CONFIG": json.dumps(config_json),
    }
    if allowed_domains:
        env["GITHUB_AW_ALLOWED_DOMAINS"] = json.dumps(",".join(allowed_domains))
    collect = github_script_step("Collect agent output", "collect_output", step_id="collect_output", env=env)

    summary = [
        f"{STEP_INDENT}- name: Print agent output to step summary",
        f"{FIELD_INDENT}env:",
        f"{VALUE_INDENT}GITHUB_AW_SAFE_OUTPUTS: {SAFE_OUTPUTS_ENV}",
        f"{FIELD_INDENT}run: |",
    ]
    summary += [
        VALUE_INDENT + line
        for line in (
            'echo "## Agent Output (JSONL)" >> $GITHUB_STEP_SUMMARY',
            'echo "" >> $GITHUB_STEP_SUMMARY',
            "echo '``````json' >> $GITHUB_STEP_SUMMARY",
            f"cat {SAFE_OUTPUTS_ENV} >> $GITHUB_STEP_SUMMARY",
            "# Ensure there's a newline after the file content if it doesn't end with one",
            f'if [ -s {SAFE_OUTPUTS_ENV} ] && [ "$(tail -c1 {SAFE_OUTPUTS_ENV})" != "" ]; then',
            '  echo "" >> $GITHUB_STEP_SUMMARY',
            "fi",
            "echo '``````' >> $GITHUB_STEP_SUMMARY",
        )
    ]
    upload = upload_artifact_step(
        "Upload agentic output file",
        OUTPUT_ARTIFACT,
        SAFE_OUTPUTS_ENV,
        if_="always() && steps.collect_output.outputs.output != ''",
    )
    return [collect, summary, upload]


def engine_output_upload_step(output_files: list[str]) -> GitHubActionStep:
    lines = [
        f"{STEP_INDENT}- name: Upload engine output files",
        f"{FIELD_INDENT}if: always()",
        f"{FIELD_INDENT}uses: {UPLOAD_ARTIFACT_ACTION}",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}name: agent_outputs",
        f"{VALUE_INDENT}path: |",
    ]
    lines += [f"{VALUE_INDENT}  {path}" for path in output_files]
    lines.append(f"{VALUE_INDENT}if-no-files-found: ignore")
    return lines


def access_log_steps(tools: dict[str, Any]) -> list[GitHubActionStep]:
    """Copy the Squid access log of every proxied tool and upload them."""
    names = proxy_tool_names(tools)
    if not names:
        return []
    script = [f"mkdir -p {ACCESS_LOG_DIR}"]
    for name in names:
        container = f"squid-proxy-{name}"
        script += [
            f"echo 'Extracting access.log from {container} container'",
            f"if docker ps -a --format '{{{{.Names}}}}' | grep -q '^{container}$'; then",
            f"  docker cp {container}:/var/log/squid/access.log {ACCESS_LOG_DIR}/access-{name}.log "
            f"2>/dev/null || echo 'No access.log found for {name}'",
            "else",
            f"  echo 'Container {container} not found'",
            "fi",
        ]
    extract = run_step("Extract squid access logs", "\n".join(script), if_="always()")
    upload = upload_artifact_step("Upload squid access logs", "access.log", f"{ACCESS_LOG_DIR}/")
    return [extract, upload]


def log_parsing_step(engine: AgenticEngine, log_file: str) -> GitHubActionStep | None:
    """Render the agent log into the step summary, for engines with a parser."""
    if not engine.log_parser_script:
        return None
    return github_script_step(
        "Parse agent logs for step summary",
        engine.log_parser_script,
        if_="always()",
        env={"AGENT_LOG_FILE": log_file},
    )


def upload_agent_logs_step(safe_name: str, log_file: str) -> GitHubActionStep:
    return upload_artifact_step("Upload agent logs", f"{safe_name}.log", log_file)


def git_patch_steps() -> list[GitHubActionStep]:
    """Commit leftovers and export new commits as /tmp/aw.patch."""
    generate = run_step(
        "Generate git patch",
        render_template("generate_git_patch.sh.j2", patch_path=PATCH_PATH),
        if_="always()",
    )
    upload = upload_artifact_step("Upload git patch", PATCH_ARTIFACT, PATCH_PATH, if_no_files="ignore")
    return [generate, upload]


# =============================================================================
# Task and reaction jobs
# =============================================================================


def team_member_steps(command_condition: str) -> list[GitHubActionStep]:
    """Only users with admin or maintain access may trigger a command."""
    check = github_script_step(
        "Check team membership for command workflow",
        "check_team_member",
        step_id="check-team-member",
        if_=command_condition,
    )
    validate = run_step(
        "Validate team membership",
        'echo "❌ Access denied: Only team members can trigger command workflows"\n'
        'echo "User ${{ github.actor }} is not a team member"\n'
        "exit 1",
        if_="steps.check-team-member.outputs.is_team_member == 'false'",
    )
    return [check, validate]


def compute_text_step() -> GitHubActionStep:
    return github_script_step("Compute current body text", "compute_text", step_id="compute-text")


def barrier_step() -> GitHubActionStep:
    return [
        f"{STEP_INDENT}- name: Task job condition barrier",
        f'{FIELD_INDENT}run: echo "Task job executed - conditions satisfied"',
    ]


def reaction_step(reaction: str, command: str) -> GitHubActionStep:
    env = {"GITHUB_AW_REACTION": reaction}
    if command:
        env["GITHUB_AW_COMMAND"] = command
    return github_script_step(
        f"Add {reaction} reaction to the triggering item", "add_reaction", step_id="react", env=env
    )


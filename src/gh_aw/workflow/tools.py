"""Tool grant normalization.

The `tools` section mixes engine-neutral grants (`bash`, `edit`,
`web-fetch`, `web-search`), the built-in `github` MCP server and custom MCP
servers. Normalization maps neutral grants to Claude tool names under
`claude.allowed`, adds read-only defaults, and widens the grants when safe
outputs need to commit changes. Every function returns a new mapping; the
input is never modified.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from gh_aw.engines.mcp import mcp_type

logger = logging.getLogger(__name__)

NEUTRAL_TOOLS: tuple[str, ...] = ("bash", "web-fetch", "web-search", "edit")

EDIT_TOOLS: tuple[str, ...] = ("Edit", "MultiEdit", "NotebookEdit", "Write")

DEFAULT_CLAUDE_TOOLS: tuple[str, ...] = (
    "Task",
    "Glob",
    "Grep",
    "ExitPlanMode",
    "TodoWrite",
    "LS",
    "Read",
    "NotebookRead",
)

GIT_COMMANDS: tuple[str, ...] = (
    "git checkout:*",
    "git branch:*",
    "git switch:*",
    "git add:*",
    "git rm:*",
    "git commit:*",
    "git merge:*",
)

# Read-only GitHub MCP tools granted to every workflow
DEFAULT_GITHUB_TOOLS: tuple[str, ...] = (
    # actions
    "download_workflow_run_artifact",
    "get_job_logs",
    "get_workflow_run",
    "get_workflow_run_logs",
    "get_workflow_run_usage",
    "list_workflow_jobs",
    "list_workflow_run_artifacts",
    "list_workflow_runs",
    "list_workflows",
    # code security
    "get_code_scanning_alert",
    "list_code_scanning_alerts",
    # context
    "get_me",
    # dependabot
    "get_dependabot_alert",
    "list_dependabot_alerts",
    # discussions
    "get_discussion",
    "get_discussion_comments",
    "list_discussion_categories",
    "list_discussions",
    # issues
    "get_issue",
    "get_issue_comments",
    "list_issues",
    "search_issues",
    # notifications
    "get_notification_details",
    "list_notifications",
    # organizations
    "search_orgs",
    # pull requests
    "get_pull_request",
    "get_pull_request_comments",
    "get_pull_request_diff",
    "get_pull_request_files",
    "get_pull_request_reviews",
    "get_pull_request_status",
    "list_pull_requests",
    "search_pull_requests",
    # repositories
    "get_commit",
    "get_file_contents",
    "get_tag",
    "list_branches",
    "list_commits",
    "list_tags",
    "search_code",
    "search_repositories",
    # secret protection
    "get_secret_scanning_alert",
    "list_secret_scanning_alerts",
    # users
    "search_users",
)


def _claude_allowed(tools: dict[str, Any]) -> dict[str, Any]:
    claude = tools.get("claude")
    if isinstance(claude, dict) and isinstance(claude.get("allowed"), dict):
        return dict(claude["allowed"])
    return {}


def _with_claude_allowed(tools: dict[str, Any], allowed: dict[str, Any]) -> dict[str, Any]:
    claude = tools.get("claude")
    section = dict(claude) if isinstance(claude, dict) else {}
    section["allowed"] = allowed
    return {**tools, "claude": section}


def expand_neutral_tools(tools: dict[str, Any]) -> dict[str, Any]:
    """Move neutral grants to Claude tool names under `claude.allowed`.

    `bash: [cmds]` keeps its command list; any other bash value allows all
    commands. `edit` grants every edit tool.
    """
    result = {key: value for key, value in tools.items() if key not in NEUTRAL_TOOLS}
    allowed = _claude_allowed(result)
    if "bash" in tools:
        bash = tools["bash"]
        allowed["Bash"] = list(bash) if isinstance(bash, list) else None
    if "web-fetch" in tools:
        allowed["WebFetch"] = None
    if "web-search" in tools:
        allowed["WebSearch"] = None
    if "edit" in tools:
        for name in EDIT_TOOLS:
            allowed[name] = None
    return _with_claude_allowed(result, allowed)


def widen_bash(existing: Any, commands: tuple[str, ...] = GIT_COMMANDS) -> list[str] | None:
    """Union of a Bash grant with extra commands.

    A missing grant becomes the extra commands; unrestricted grants (`*`,
    `:*` or null) stay unrestricted. Existing commands keep their order.
    """
    if existing is None:
        return None
    if not isinstance(existing, list):
        return list(commands)
    if "*" in existing or ":*" in existing:
        return list(existing)
    return list(existing) + [cmd for cmd in commands if cmd not in existing]


def apply_default_tools(tools: dict[str, Any], needs_git: bool) -> dict[str, Any]:
    """Normalize grants and add the read-only defaults.

    Args:
        tools: Merged tools section of the workflow.
        needs_git: Whether a safe output commits changes (create-pull-request
            or push-to-branch); adds edit tools and git commands.

    Returns:
        New tools mapping with `github.allowed` and `claude.allowed` filled.

    """
    result = expand_neutral_tools(copy.deepcopy(tools))

    github = result.get("github")
    github_config = dict(github) if isinstance(github, dict) else {}
    existing = github_config.get("allowed")
    github_allowed = list(existing) if isinstance(existing, list) else []
    github_allowed += [tool for tool in DEFAULT_GITHUB_TOOLS if tool not in github_allowed]
    github_config["allowed"] = github_allowed
    result["github"] = github_config

    allowed = _claude_allowed(result)
    for name in DEFAULT_CLAUDE_TOOLS:
        allowed.setdefault(name, None)

    if needs_git:
        for name in EDIT_TOOLS:
            allowed.setdefault(name, None)
        if "Bash" in allowed:
            allowed["Bash"] = widen_bash(allowed["Bash"])
        else:
            allowed["Bash"] = list(GIT_COMMANDS)
        logger.debug("Widened tool grants with git commands")

    return _with_claude_allowed(result, allowed)


def is_mcp_tool(name: str, config: Any) -> bool:
    return name == "github" or mcp_type(config) is not None


def mcp_tool_names(tools: dict[str, Any]) -> list[str]:
    """Sorted MCP tools of a normalized tools section, github included."""
    names = {name for name, config in tools.items() if is_mcp_tool(name, config)}
    return sorted(names | {"github"})


def compute_allowed_tools(tools: dict[str, Any], has_safe_outputs: bool) -> str:
    """Sorted, comma-joined allow-list for the engine.

    Claude tools appear by name, Bash as `Bash` when unrestricted or as
    `Bash(cmd)` per command, MCP tools as `mcp__<server>` for a wildcard or
    `mcp__<server>__<tool>` per allowed tool. Safe outputs need `Write`.
    """
    allowed_tools: list[str] = []

    claude_allowed = _claude_allowed(tools)
    if "Bash" in claude_allowed:
        claude_allowed.setdefault("KillBash", None)
        claude_allowed.setdefault("BashOutput", None)
    for name, value in claude_allowed.items():
        if name == "Bash":
            if isinstance(value, list) and ":*" not in value and "*" not in value:
                allowed_tools += [f"Bash({cmd})" for cmd in value if isinstance(cmd, str)]
            else:
                allowed_tools.append("Bash")
        elif name[:1].isupper():
            allowed_tools.append(name)

    for name, config in tools.items():
        if name == "claude" or not isinstance(config, dict) or not is_mcp_tool(name, config):
            continue
        server_allowed = config.get("allowed")
        if not isinstance(server_allowed, list):
            continue
        if "*" in server_allowed:
            allowed_tools.append(f"mcp__{name}")
        else:
            allowed_tools += [f"mcp__{name}__{tool}" for tool in server_allowed if isinstance(tool, str)]

    if has_safe_outputs and "Write" not in allowed_tools:
        allowed_tools.append("Write")

    return ",".join(sorted(allowed_tools))

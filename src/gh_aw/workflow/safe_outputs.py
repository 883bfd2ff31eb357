"""Safe outputs: write actions performed on behalf of the agent.

The agent job runs read-only. Instead of calling the GitHub API it appends
JSON lines to the file named by GITHUB_AW_SAFE_OUTPUTS; the main job
validates that file into its `output` and one separate job per configured
output type performs the write with the smallest permissions it needs.

Usage:
    config = parse_safe_outputs(frontmatter)
    if config is not None:
        for job in build_safe_output_jobs(config, "agent", command=""):
            manager.add(job)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from gh_aw.core.exceptions import SemanticError
from gh_aw.engines.base import FIELD_INDENT, SAFE_OUTPUTS_ENV, STEP_INDENT, VALUE_INDENT, GitHubActionStep
from gh_aw.parser.schema import (
    AddIssueCommentSettings,
    AddIssueLabelSettings,
    CreateDiscussionSettings,
    CreateIssueSettings,
    CreatePullRequestSettings,
    MissingToolSettings,
    PushToBranchSettings,
    ReviewCommentSettings,
    SafeOutputsSettings,
    UpdateIssueSettings,
)
from gh_aw.templates import render_template
from gh_aw.workflow.command import command_only_condition
from gh_aw.workflow.expressions import condition_tree, render
from gh_aw.workflow.jobs import Job
from gh_aw.workflow.steps import (
    DOWNLOAD_ARTIFACT_ACTION,
    PATCH_ARTIFACT,
    checkout_step,
    github_script_step,
)

logger = logging.getLogger(__name__)

SAFE_OUTPUT_TIMEOUT_MINUTES = 10

ISSUE_OR_PR_CONTEXT = "github.event.issue.number || github.event.pull_request.number"
NOT_FORK_CONDITION = "!(github.event.pull_request.head.repo.fork)"


def parse_safe_outputs(frontmatter: dict[str, Any]) -> SafeOutputsSettings | None:
    """The `safe-outputs` section, or None when absent.

    Raises:
        SemanticError: If the section does not match the schema.

    """
    raw = frontmatter.get("safe-outputs")
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise SemanticError("'safe-outputs' must be a mapping of output types")
    try:
        return SafeOutputsSettings.model_validate(raw)
    except ValidationError as e:
        raise SemanticError(f"invalid safe-outputs configuration: {e}") from e


def needs_git_commands(config: SafeOutputsSettings | None) -> bool:
    """Whether the agent must be able to commit (pull request or branch push)."""
    return config is not None and (
        config.create_pull_request is not None or config.push_to_branch is not None
    )


def safe_outputs_config_json(config: SafeOutputsSettings) -> str:
    """Compact JSON of the enabled output types, read by collect_output.cjs."""
    enabled: dict[str, dict[str, Any]] = {}
    if config.create_issue is not None:
        enabled["create-issue"] = {"enabled": True, "max": config.create_issue.max}
    if config.add_issue_comment is not None:
        comment: dict[str, Any] = {"enabled": True, "max": config.add_issue_comment.max}
        if config.add_issue_comment.target:
            comment["target"] = config.add_issue_comment.target
        enabled["add-issue-comment"] = comment
    if config.create_pull_request is not None:
        enabled["create-pull-request"] = {"enabled": True, "max": config.create_pull_request.max}
    if config.add_issue_label is not None:
        enabled["add-issue-label"] = {"enabled": True, "max": config.add_issue_label.max}
    if config.update_issue is not None:
        update: dict[str, Any] = {"enabled": True, "max": config.update_issue.max}
        if config.update_issue.target:
            update["target"] = config.update_issue.target
        enabled["update-issue"] = update
    if config.push_to_branch is not None:
        push: dict[str, Any] = {"enabled": True, "branch": config.push_to_branch.branch}
        if config.push_to_branch.target:
            push["target"] = config.push_to_branch.target
        enabled["push-to-branch"] = push
    if config.create_discussion is not None:
        enabled["create-discussion"] = {"enabled": True, "max": config.create_discussion.max}
    if config.create_pull_request_review_comment is not None:
        enabled["create-pull-request-review-comment"] = {
            "enabled": True,
            "max": config.create_pull_request_review_comment.max,
        }
    if config.missing_tool is not None:
        enabled["missing-tool"] = {"enabled": True, "max": config.missing_tool.max}
    return json.dumps(enabled, separators=(",", ":"))


# =============================================================================
# Prompt instructions
# =============================================================================

_HEADINGS: tuple[tuple[str, str], ...] = (
    ("add_issue_comment", "Adding a Comment to an Issue or Pull Request"),
    ("create_issue", "Creating an Issue"),
    ("create_pull_request", "Creating a Pull Request"),
    ("add_issue_label", "Adding Labels to Issues or Pull Requests"),
    ("update_issue", "Updating Issues"),
    ("push_to_branch", "Pushing Changes to Branch"),
    ("create_discussion", "Creating a Discussion"),
    ("create_pull_request_review_comment", "Creating Pull Request Review Comments"),
    ("missing_tool", "Reporting Missing Tools or Functionality"),
)

_EXAMPLES: tuple[tuple[str, str], ...] = (
    ("create_issue", '{"type": "create-issue", "title": "Bug Report", "body": "Found an issue with..."}'),
    ("add_issue_comment", '{"type": "add-issue-comment", "body": "This is related to the issue above."}'),
    (
        "create_pull_request",
        '{"type": "create-pull-request", "title": "Fix typo", '
        '"body": "Corrected spelling mistake in documentation"}',
    ),
    ("add_issue_label", '{"type": "add-issue-label", "labels": ["bug", "priority-high"]}'),
    ("push_to_branch", '{"type": "push-to-branch", "message": "Update documentation with latest changes"}'),
    ("missing_tool", '{"type": "missing-tool", "tool": "docker", "reason": "Need to build a container image"}'),
)


def _update_issue_example(config: SafeOutputsSettings) -> str:
    update = config.update_issue
    fields: list[str] = []
    if update is not None:
        if "status" in update.model_fields_set:
            fields.append('"status": "open"')
        if "title" in update.model_fields_set:
            fields.append('"title": "New issue title"')
        if "body" in update.model_fields_set:
            fields.append('"body": "Updated issue body in markdown"')
    if not fields:
        fields = ['"title": "New issue title"', '"body": "Updated issue body"', '"status": "open"']
    return '{"type": "update-issue", ' + ", ".join(fields) + "}"


def safe_outputs_instructions(config: SafeOutputsSettings) -> str:
    """Prompt section telling the agent how to request each enabled output."""
    return render_template(
        "safe_outputs_prompt.md.j2",
        config=config,
        headings=[title for attr, title in _HEADINGS if getattr(config, attr) is not None],
        examples=[example for attr, example in _EXAMPLES if getattr(config, attr) is not None],
        update_example=_update_issue_example(config),
        output_file=SAFE_OUTPUTS_ENV,
    )


# =============================================================================
# Jobs
# =============================================================================


def _agent_output_env(main_job: str) -> dict[str, str]:
    return {"GITHUB_AW_AGENT_OUTPUT": f"${{{{ needs.{main_job}.outputs.output }}}}"}


def _quoted(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _guard(command: str, base: str) -> str:
    """Job condition: the command mention check combined with a context guard.

    An empty or `always()` base adds no guard of its own.
    """
    unconditional = base in ("", "always()")
    if not command:
        return base
    command_condition = render(command_only_condition(command))
    if unconditional:
        return command_condition
    return render(condition_tree(command_condition, base))


def _context_guard(target: str | None, context: str) -> str:
    # An explicit target does not need a triggering issue or pull request
    return "always()" if target else context


def _outputs(step_id: str, *names: str) -> dict[str, str]:
    return {name: f"${{{{ steps.{step_id}.outputs.{name} }}}}" for name in names}


def _download_patch_steps() -> list[GitHubActionStep]:
    download = [
        f"{STEP_INDENT}- name: Download patch artifact",
        f"{FIELD_INDENT}uses: {DOWNLOAD_ARTIFACT_ACTION}",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}name: {PATCH_ARTIFACT}",
        f"{VALUE_INDENT}path: /tmp/",
    ]
    return [download, checkout_step(fetch_depth=0)]


def _create_issue_job(settings: CreateIssueSettings, main_job: str, command: str = "") -> Job:
    env = _agent_output_env(main_job)
    if settings.title_prefix:
        env["GITHUB_AW_ISSUE_TITLE_PREFIX"] = _quoted(settings.title_prefix)
    if settings.labels:
        env["GITHUB_AW_ISSUE_LABELS"] = _quoted(",".join(settings.labels))
    step = github_script_step("Create Output Issue", "create_issue", step_id="create_issue", env=env)
    return Job(
        name="create_issue",
        if_=_guard(command, ""),
        permissions={"contents": "read", "issues": "write"},
        needs=(main_job,),
        outputs=_outputs("create_issue", "issue_number", "issue_url"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _create_issue_comment_job(settings: AddIssueCommentSettings, main_job: str, command: str = "") -> Job:
    env = _agent_output_env(main_job)
    if settings.target:
        env["GITHUB_AW_COMMENT_TARGET"] = _quoted(settings.target)
    step = github_script_step("Add Issue Comment", "create_comment", step_id="create_comment", env=env)
    return Job(
        name="create_issue_comment",
        if_=_guard(command, _context_guard(settings.target, ISSUE_OR_PR_CONTEXT)),
        permissions={"contents": "read", "issues": "write", "pull-requests": "write"},
        needs=(main_job,),
        outputs=_outputs("create_comment", "comment_id", "comment_url"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _create_pull_request_job(settings: CreatePullRequestSettings, main_job: str, command: str = "") -> Job:
    """Apply the agent's patch on a new branch and open a pull request.

    Never runs for pull requests from forks, whose tokens cannot push.
    """
    env = _agent_output_env(main_job)
    env["GITHUB_AW_WORKFLOW_ID"] = _quoted(main_job)
    env["GITHUB_AW_BASE_BRANCH"] = "${{ github.ref_name }}"
    if settings.title_prefix:
        env["GITHUB_AW_PR_TITLE_PREFIX"] = _quoted(settings.title_prefix)
    if settings.labels:
        env["GITHUB_AW_PR_LABELS"] = _quoted(",".join(settings.labels))
    draft = True if settings.draft is None else settings.draft
    env["GITHUB_AW_PR_DRAFT"] = _quoted("true" if draft else "false")

    steps = _download_patch_steps()
    steps.append(
        github_script_step("Create Pull Request", "create_pull_request", step_id="create_pull_request", env=env)
    )
    command_condition = render(command_only_condition(command)) if command else ""
    return Job(
        name="create_pull_request",
        if_=render(condition_tree(command_condition, NOT_FORK_CONDITION)),
        permissions={"contents": "write", "issues": "write", "pull-requests": "write"},
        needs=(main_job,),
        outputs=_outputs("create_pull_request", "pull_request_number", "pull_request_url", "branch_name"),
        steps=tuple(steps),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _add_labels_job(settings: AddIssueLabelSettings, main_job: str, command: str = "") -> Job:
    env = _agent_output_env(main_job)
    # An empty allow-list lets the agent add any label
    env["GITHUB_AW_LABELS_ALLOWED"] = _quoted(",".join(settings.allowed))
    env["GITHUB_AW_LABELS_MAX_COUNT"] = str(settings.max)
    step = github_script_step("Add Labels", "add_labels", step_id="add_labels", env=env)
    return Job(
        name="add_labels",
        if_=_guard(command, ISSUE_OR_PR_CONTEXT),
        permissions={"contents": "read", "issues": "write", "pull-requests": "write"},
        needs=(main_job,),
        outputs=_outputs("add_labels", "labels_added"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _update_issue_job(settings: UpdateIssueSettings, main_job: str, command: str = "") -> Job:
    updatable = settings.model_fields_set
    env = _agent_output_env(main_job)
    env["GITHUB_AW_UPDATE_STATUS"] = "true" if "status" in updatable else "false"
    env["GITHUB_AW_UPDATE_TITLE"] = "true" if "title" in updatable else "false"
    env["GITHUB_AW_UPDATE_BODY"] = "true" if "body" in updatable else "false"
    if settings.target:
        env["GITHUB_AW_UPDATE_TARGET"] = _quoted(settings.target)
    step = github_script_step("Update Issue", "update_issue", step_id="update_issue", env=env)
    return Job(
        name="update_issue",
        if_=_guard(command, _context_guard(settings.target, "github.event.issue.number")),
        permissions={"contents": "read", "issues": "write"},
        needs=(main_job,),
        outputs=_outputs("update_issue", "issue_number", "issue_url"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _push_to_branch_job(settings: PushToBranchSettings, main_job: str, command: str = "") -> Job:
    if not settings.branch:
        raise SemanticError("safe-outputs.push-to-branch branch configuration is invalid")
    env = _agent_output_env(main_job)
    env["GITHUB_AW_PUSH_BRANCH"] = _quoted(settings.branch)
    if settings.target:
        env["GITHUB_AW_PUSH_TARGET"] = _quoted(settings.target)

    steps = _download_patch_steps()
    steps.append(github_script_step("Push to Branch", "push_to_branch", step_id="push_to_branch", env=env))
    return Job(
        name="push_to_branch",
        if_=_guard(command, _context_guard(settings.target, "github.event.pull_request.number")),
        permissions={"contents": "write", "pull-requests": "read"},
        needs=(main_job,),
        outputs=_outputs("push_to_branch", "branch_name", "commit_sha", "push_url"),
        steps=tuple(steps),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _create_discussion_job(settings: CreateDiscussionSettings, main_job: str, command: str = "") -> Job:
    env = _agent_output_env(main_job)
    if settings.title_prefix:
        env["GITHUB_AW_DISCUSSION_TITLE_PREFIX"] = _quoted(settings.title_prefix)
    if settings.category_id:
        env["GITHUB_AW_DISCUSSION_CATEGORY_ID"] = _quoted(settings.category_id)
    step = github_script_step(
        "Create Output Discussion", "create_discussion", step_id="create_discussion", env=env
    )
    return Job(
        name="create_discussion",
        if_=_guard(command, ""),
        permissions={"contents": "read", "discussions": "write"},
        needs=(main_job,),
        outputs=_outputs("create_discussion", "discussion_number", "discussion_url"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _create_pr_review_comment_job(settings: ReviewCommentSettings, main_job: str, command: str = "") -> Job:
    env = _agent_output_env(main_job)
    env["GITHUB_AW_PR_REVIEW_COMMENT_SIDE"] = _quoted(settings.side)
    step = github_script_step(
        "Create PR Review Comment",
        "create_pr_review_comment",
        step_id="create_pr_review_comment",
        env=env,
    )
    return Job(
        name="create_pr_review_comment",
        if_=_guard(command, "github.event.pull_request.number"),
        permissions={"contents": "read", "pull-requests": "write"},
        needs=(main_job,),
        outputs=_outputs("create_pr_review_comment", "review_comment_id", "review_comment_url"),
        steps=(step,),
        timeout_minutes=SAFE_OUTPUT_TIMEOUT_MINUTES,
    )


def _missing_tool_job(settings: MissingToolSettings, main_job: str, command: str = "") -> Job:
    """Record tools the agent reported missing; runs even when the agent failed."""
    env = _agent_output_env(main_job)
    if settings.max > 0:
        env["GITHUB_AW_MISSING_TOOL_MAX"] = str(settings.max)
    step = github_script_step("Record Missing Tool", "missing_tool", step_id="missing_tool", env=env)
    return Job(
        name="missing_tool",
        if_="always()",
        permissions={"contents": "read"},
        needs=(main_job,),
        outputs=_outputs("missing_tool", "tools_reported", "total_count"),
        steps=(step,),
        timeout_minutes=5,
    )


_JOB_BUILDERS = (
    ("create_issue", _create_issue_job),
    ("add_issue_comment", _create_issue_comment_job),
    ("create_pull_request", _create_pull_request_job),
    ("add_issue_label", _add_labels_job),
    ("update_issue", _update_issue_job),
    ("push_to_branch", _push_to_branch_job),
    ("create_discussion", _create_discussion_job),
    ("create_pull_request_review_comment", _create_pr_review_comment_job),
    ("missing_tool", _missing_tool_job),
)


def build_safe_output_jobs(config: SafeOutputsSettings, main_job: str, command: str = "") -> list[Job]:
    """One job per configured output type, in a fixed order.

    Args:
        config: Parsed safe-outputs section.
        main_job: Name of the agent job whose output the jobs consume.
        command: Slash command of the workflow, or "".

    """
    jobs = [
        builder(getattr(config, attr), main_job, command)
        for attr, builder in _JOB_BUILDERS
        if getattr(config, attr) is not None
    ]
    logger.debug("Built %d safe output job(s)", len(jobs))
    return jobs

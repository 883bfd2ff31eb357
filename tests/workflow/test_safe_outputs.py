"""Tests for safe output parsing, instructions and jobs."""

import json

import pytest

from gh_aw.core.exceptions import SemanticError
from gh_aw.core.yamlutil import load_yaml
from gh_aw.workflow.command import command_only_condition
from gh_aw.workflow.expressions import render
from gh_aw.workflow.jobs import render_job
from gh_aw.workflow.safe_outputs import (
    ISSUE_OR_PR_CONTEXT,
    NOT_FORK_CONDITION,
    build_safe_output_jobs,
    needs_git_commands,
    parse_safe_outputs,
    safe_outputs_config_json,
    safe_outputs_instructions,
)


def _config(section: dict):
    config = parse_safe_outputs({"safe-outputs": section})
    assert config is not None
    return config


def _jobs(section: dict, command: str = "") -> dict:
    return {job.name: job for job in build_safe_output_jobs(_config(section), "agent", command)}


# === Parsing ===


class TestParseSafeOutputs:
    """Tests for parse_safe_outputs()."""

    def test_absent(self) -> None:
        assert parse_safe_outputs({"on": "push"}) is None

    def test_bare_keys_enable_defaults(self) -> None:
        config = _config({"create-issue": None, "add-issue-label": None})
        assert config.create_issue is not None
        assert config.create_issue.max == 1
        assert config.add_issue_label is not None
        assert config.add_issue_label.max == 3
        assert config.create_pull_request is None

    def test_not_a_mapping(self) -> None:
        with pytest.raises(SemanticError) as exc_info:
            parse_safe_outputs({"safe-outputs": ["create-issue"]})
        assert "must be a mapping of output types" in str(exc_info.value)

    def test_invalid_setting(self) -> None:
        with pytest.raises(SemanticError) as exc_info:
            parse_safe_outputs({"safe-outputs": {"create-issue": {"max": 0}}})
        assert "invalid safe-outputs configuration" in str(exc_info.value)

    def test_needs_git_commands(self) -> None:
        assert not needs_git_commands(None)
        assert not needs_git_commands(_config({"create-issue": None}))
        assert needs_git_commands(_config({"create-pull-request": None}))
        assert needs_git_commands(_config({"push-to-branch": None}))


class TestConfigJson:
    """Tests for safe_outputs_config_json()."""

    def test_compact(self) -> None:
        assert safe_outputs_config_json(_config({"create-issue": None})) == (
            '{"create-issue":{"enabled":true,"max":1}}'
        )

    def test_targets_and_branch(self) -> None:
        config = _config(
            {
                "add-issue-comment": {"target": "*"},
                "push-to-branch": {"branch": "docs", "target": "*"},
            }
        )
        assert json.loads(safe_outputs_config_json(config)) == {
            "add-issue-comment": {"enabled": True, "max": 1, "target": "*"},
            "push-to-branch": {"enabled": True, "branch": "docs", "target": "*"},
        }


class TestInstructions:
    def test_only_enabled_sections(self) -> None:
        text = safe_outputs_instructions(_config({"create-issue": None, "missing-tool": None}))
        assert "## Creating an Issue, Reporting Missing Tools or Functionality" in text
        assert '"type": "create-issue"' in text
        assert "Adding a Comment to an Issue or Pull Request" not in text
        assert "GITHUB_AW_SAFE_OUTPUTS" in text


# === Jobs ===


class TestSafeOutputJobs:
    """Tests for build_safe_output_jobs()."""

    def test_fixed_order(self) -> None:
        jobs = build_safe_output_jobs(
            _config(
                {
                    "missing-tool": None,
                    "push-to-branch": None,
                    "create-issue": None,
                    "add-issue-comment": None,
                }
            ),
            "agent",
        )
        assert [job.name for job in jobs] == [
            "create_issue",
            "create_issue_comment",
            "push_to_branch",
            "missing_tool",
        ]

    def test_every_section_builds_a_valid_job(self) -> None:
        sections = [
            "create-issue",
            "add-issue-comment",
            "create-pull-request",
            "add-issue-label",
            "update-issue",
            "push-to-branch",
            "create-discussion",
            "create-pull-request-review-comment",
            "missing-tool",
        ]
        jobs = build_safe_output_jobs(_config(dict.fromkeys(sections)), "agent", "fix")
        assert len(jobs) == len(sections)
        workflow = load_yaml("jobs:\n" + "".join(render_job(job) for job in jobs))
        assert list(workflow["jobs"]) == [job.name for job in jobs]
        for job in jobs:
            assert workflow["jobs"][job.name]["if"] == job.if_

    def test_create_issue(self) -> None:
        job = _jobs({"create-issue": {"title-prefix": "[bot] ", "labels": ["a", "b"]}})["create_issue"]
        assert job.needs == ("agent",)
        assert job.if_ == ""
        assert job.permissions == {"contents": "read", "issues": "write"}
        assert job.timeout_minutes == 10
        text = render_job(job)
        assert "GITHUB_AW_AGENT_OUTPUT: ${{ needs.agent.outputs.output }}" in text
        assert 'GITHUB_AW_ISSUE_TITLE_PREFIX: "[bot] "' in text
        assert 'GITHUB_AW_ISSUE_LABELS: "a,b"' in text
        assert "uses: actions/github-script@v7" in text

    def test_comment_needs_issue_or_pr(self) -> None:
        assert _jobs({"add-issue-comment": None})["create_issue_comment"].if_ == ISSUE_OR_PR_CONTEXT

    def test_explicit_target_runs_always(self) -> None:
        jobs = _jobs({"add-issue-comment": {"target": "*"}, "update-issue": {"target": "42"}})
        assert jobs["create_issue_comment"].if_ == "always()"
        assert jobs["update_issue"].if_ == "always()"
        assert 'GITHUB_AW_UPDATE_TARGET: "42"' in render_job(jobs["update_issue"])

    def test_pull_request_fork_guard(self) -> None:
        job = _jobs({"create-pull-request": None})["create_pull_request"]
        assert job.if_ == NOT_FORK_CONDITION
        assert job.permissions["contents"] == "write"
        text = render_job(job)
        assert 'GITHUB_AW_PR_DRAFT: "true"' in text
        assert 'GITHUB_AW_WORKFLOW_ID: "agent"' in text
        assert "name: Download patch artifact" in text
        assert "fetch-depth: 0" in text

    def test_pull_request_not_draft(self) -> None:
        job = _jobs({"create-pull-request": {"draft": False}})["create_pull_request"]
        assert 'GITHUB_AW_PR_DRAFT: "false"' in render_job(job)

    def test_labels(self) -> None:
        job = _jobs({"add-issue-label": {"allowed": ["bug", "docs"], "max": 2}})["add_labels"]
        text = render_job(job)
        assert 'GITHUB_AW_LABELS_ALLOWED: "bug,docs"' in text
        assert "GITHUB_AW_LABELS_MAX_COUNT: 2" in text

    def test_any_label_allowed(self) -> None:
        job = _jobs({"add-issue-label": None})["add_labels"]
        assert 'GITHUB_AW_LABELS_ALLOWED: ""' in render_job(job)

    def test_update_issue_fields(self) -> None:
        job = _jobs({"update-issue": {"title": None, "body": None}})["update_issue"]
        assert job.if_ == "github.event.issue.number"
        text = render_job(job)
        assert "GITHUB_AW_UPDATE_STATUS: false" in text
        assert "GITHUB_AW_UPDATE_TITLE: true" in text
        assert "GITHUB_AW_UPDATE_BODY: true" in text

    def test_push_to_branch(self) -> None:
        job = _jobs({"push-to-branch": None})["push_to_branch"]
        assert job.if_ == "github.event.pull_request.number"
        assert job.permissions == {"contents": "write", "pull-requests": "read"}
        assert 'GITHUB_AW_PUSH_BRANCH: "triggering"' in render_job(job)

    def test_push_to_branch_empty_branch(self) -> None:
        with pytest.raises(SemanticError) as exc_info:
            _jobs({"push-to-branch": {"branch": ""}})
        assert "branch configuration is invalid" in str(exc_info.value)

    def test_discussion_and_review_comment(self) -> None:
        jobs = _jobs(
            {
                "create-discussion": {"category-id": "DIC_1"},
                "create-pull-request-review-comment": {"side": "LEFT"},
            }
        )
        assert jobs["create_discussion"].permissions == {"contents": "read", "discussions": "write"}
        assert 'GITHUB_AW_DISCUSSION_CATEGORY_ID: "DIC_1"' in render_job(jobs["create_discussion"])
        review = jobs["create_pr_review_comment"]
        assert review.if_ == "github.event.pull_request.number"
        assert 'GITHUB_AW_PR_REVIEW_COMMENT_SIDE: "LEFT"' in render_job(review)

    def test_missing_tool_always_runs(self) -> None:
        job = _jobs({"missing-tool": {"max": 5}})["missing_tool"]
        assert job.if_ == "always()"
        assert job.timeout_minutes == 5
        assert "GITHUB_AW_MISSING_TOOL_MAX: 5" in render_job(job)


class TestCommandGuards:
    """Safe output jobs of a command workflow only run for the command."""

    COMMAND = render(command_only_condition("fix"))

    def test_unguarded_job_gets_command_condition(self) -> None:
        assert _jobs({"create-issue": None}, command="fix")["create_issue"].if_ == self.COMMAND

    def test_guard_combined_with_context(self) -> None:
        job = _jobs({"add-issue-label": None}, command="fix")["add_labels"]
        assert job.if_ == f"({self.COMMAND}) && ({ISSUE_OR_PR_CONTEXT})"

    def test_fork_guard_kept(self) -> None:
        job = _jobs({"create-pull-request": None}, command="fix")["create_pull_request"]
        assert job.if_ == f"({self.COMMAND}) && ({NOT_FORK_CONDITION})"

    def test_missing_tool_not_guarded(self) -> None:
        assert _jobs({"missing-tool": None}, command="fix")["missing_tool"].if_ == "always()"

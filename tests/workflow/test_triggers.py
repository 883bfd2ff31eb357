"""Tests for trigger classification, concurrency and expression safety."""

import pytest

from gh_aw.core.exceptions import SemanticError
from gh_aw.workflow.concurrency import concurrency_group_keys, generate_concurrency
from gh_aw.workflow.expression_safety import (
    is_allowed_expression,
    unauthorized_expressions,
    validate_expression_safety,
)
from gh_aw.workflow.triggers import TriggerCategories, classify_triggers, event_names

# === Classification ===


class TestClassifyTriggers:
    """Tests for classify_triggers()."""

    def test_event_names(self) -> None:
        assert event_names("push") == ["push"]
        assert event_names(["push", "issues"]) == ["push", "issues"]
        assert event_names({"issues": {}, "reaction": "eyes", "stop-after": "+1d"}) == ["issues"]
        assert event_names(None) == []

    def test_pull_request_only(self) -> None:
        categories = classify_triggers({"pull_request": {"types": ["opened"]}})
        assert categories.pull_request
        assert categories.pull_request_only

    def test_mixed(self) -> None:
        categories = classify_triggers(["issues", "pull_request_review", "discussion"])
        assert categories == TriggerCategories(pull_request=True, issue=True, discussion=True)
        assert not categories.pull_request_only

    def test_command_disables_pull_request_only(self) -> None:
        categories = classify_triggers({"pull_request": {}}, has_command=True)
        assert categories.command
        assert not categories.pull_request_only


# === Concurrency ===


class TestConcurrency:
    """Tests for concurrency groups."""

    @pytest.mark.parametrize(
        ("categories", "suffix"),
        [
            (TriggerCategories(), None),
            (TriggerCategories(command=True), "${{ github.event.issue.number || github.event.pull_request.number }}"),
            (
                TriggerCategories(pull_request=True, issue=True),
                "${{ github.event.issue.number || github.event.pull_request.number }}",
            ),
            (
                TriggerCategories(pull_request=True, discussion=True),
                "${{ github.event.pull_request.number || github.event.discussion.number }}",
            ),
            (
                TriggerCategories(issue=True, discussion=True),
                "${{ github.event.issue.number || github.event.discussion.number }}",
            ),
            (TriggerCategories(pull_request=True), "${{ github.event.pull_request.number || github.ref }}"),
            (TriggerCategories(issue=True), "${{ github.event.issue.number }}"),
            (TriggerCategories(discussion=True), "${{ github.event.discussion.number }}"),
        ],
    )
    def test_group_keys(self, categories: TriggerCategories, suffix: str | None) -> None:
        keys = concurrency_group_keys(categories)
        assert keys[:2] == ["gh-aw", "${{ github.workflow }}"]
        if suffix is None:
            assert len(keys) == 2
        else:
            assert keys[2] == suffix

    def test_push_workflow(self) -> None:
        assert generate_concurrency("", TriggerCategories()) == (
            'concurrency:\n  group: "gh-aw-${{ github.workflow }}"'
        )

    def test_pull_request_cancels_in_progress(self) -> None:
        text = generate_concurrency("", TriggerCategories(pull_request=True))
        assert text.endswith("  cancel-in-progress: true")

    def test_issue_does_not_cancel(self) -> None:
        text = generate_concurrency("", TriggerCategories(pull_request=True, issue=True))
        assert "cancel-in-progress" not in text

    def test_explicit_wins(self) -> None:
        assert generate_concurrency("concurrency: custom", TriggerCategories()) == "concurrency: custom"


# === Expression safety ===


class TestExpressionSafety:
    """Tests for the prompt expression allow-list."""

    @pytest.mark.parametrize(
        "expression",
        [
            "github.repository",
            " github.event.issue.number ",
            "needs.task.outputs.text",
            "steps.my-step.outputs.value",
            "github.event.inputs.topic",
            "env.MY_VAR",
        ],
    )
    def test_allowed(self, expression: str) -> None:
        assert is_allowed_expression(expression)

    @pytest.mark.parametrize(
        "expression",
        ["secrets.GITHUB_TOKEN", "github.event.issue.title", "github.token", "needs.task.outputs.text\n"],
    )
    def test_disallowed(self, expression: str) -> None:
        assert not is_allowed_expression(expression)

    def test_unauthorized_in_order(self) -> None:
        markdown = "Repo ${{ github.repository }} by ${{ secrets.TOKEN }} on ${{ github.event.issue.title }}"
        assert unauthorized_expressions(markdown) == ["secrets.TOKEN", "github.event.issue.title"]

    def test_validate_raises_with_suggestion(self) -> None:
        with pytest.raises(SemanticError) as exc_info:
            validate_expression_safety("Use ${{ secrets.TOKEN }}")
        message = str(exc_info.value)
        assert "unauthorized expressions: [secrets.TOKEN]" in message
        assert "github.repository" in message
        assert "needs.task.outputs.text" in message

    def test_validate_clean_body(self) -> None:
        validate_expression_safety("Plain ${{ github.run_id }} text")

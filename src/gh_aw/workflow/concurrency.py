"""Concurrency group derivation."""

from __future__ import annotations

import logging

from gh_aw.workflow.triggers import TriggerCategories

logger = logging.getLogger(__name__)

_ISSUE_OR_PR = "${{ github.event.issue.number || github.event.pull_request.number }}"


def concurrency_group_keys(categories: TriggerCategories) -> list[str]:
    """Group key parts: always the workflow, then the most specific number.

    Issue numbers take precedence over pull request numbers, which take
    precedence over discussion numbers.
    """
    keys = ["gh-aw", "${{ github.workflow }}"]
    if categories.command:
        keys.append(_ISSUE_OR_PR)
    elif categories.pull_request and categories.issue:
        keys.append(_ISSUE_OR_PR)
    elif categories.pull_request and categories.discussion:
        keys.append("${{ github.event.pull_request.number || github.event.discussion.number }}")
    elif categories.issue and categories.discussion:
        keys.append("${{ github.event.issue.number || github.event.discussion.number }}")
    elif categories.pull_request:
        keys.append("${{ github.event.pull_request.number || github.ref }}")
    elif categories.issue:
        keys.append("${{ github.event.issue.number }}")
    elif categories.discussion:
        keys.append("${{ github.event.discussion.number }}")
    return keys


def cancel_in_progress(categories: TriggerCategories) -> bool:
    """Only pure pull-request workflows cancel superseded runs."""
    return categories.pull_request_only


def generate_concurrency(explicit: str, categories: TriggerCategories) -> str:
    """The `concurrency:` section.

    Args:
        explicit: Section rendered from the frontmatter, or "".
        categories: Trigger categories of the workflow.

    """
    if explicit:
        return explicit
    group = "-".join(concurrency_group_keys(categories))
    lines = ["concurrency:", f'  group: "{group}"']
    if cancel_in_progress(categories):
        lines.append("  cancel-in-progress: true")
    logger.debug("Derived concurrency group %s", group)
    return "\n".join(lines)

"""Slash-command gating conditions.

A command workflow runs when an issue, comment or pull request body mentions
`/<name>`. When the workflow also has other triggers, events that cannot
carry a command pass through unconditionally.
"""

from __future__ import annotations

from gh_aw.workflow.expressions import (
    And,
    ConditionNode,
    Contains,
    Disjunction,
    Not,
    Or,
    disjunction,
    event_type_equals,
    property_access,
    string_literal,
)

# Events that carry a body a command can be typed into
COMMAND_EVENTS: tuple[str, ...] = (
    "issues",
    "issue_comment",
    "pull_request",
    "pull_request_review_comment",
)

_BODY_PROPERTIES: tuple[str, ...] = (
    "github.event.issue.body",
    "github.event.comment.body",
    "github.event.pull_request.body",
)


def _mentions(command_name: str) -> list[Contains]:
    text = string_literal(f"/{command_name}")
    return [Contains(property_access(prop), text) for prop in _BODY_PROPERTIES]


def command_only_condition(command_name: str) -> Disjunction:
    """Flat disjunction of the three body checks."""
    return disjunction(*_mentions(command_name))


def command_events_condition() -> Disjunction:
    return disjunction(*(event_type_equals(event) for event in COMMAND_EVENTS))


def event_aware_command_condition(command_name: str, has_other_events: bool) -> ConditionNode:
    """Gate for command workflows.

    Args:
        command_name: Command without the leading slash.
        has_other_events: Whether the workflow has non-command triggers too.

    Returns:
        The nested body-mention check; with other events,
        `(command events && mention) || !(command events)`.

    """
    issue, comment, pull_request = _mentions(command_name)
    mention = Or(Or(issue, comment), pull_request)
    if not has_other_events:
        return mention
    events = command_events_condition()
    return Or(And(events, mention), Not(events))

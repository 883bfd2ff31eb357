"""Trigger classification.

The `on` section is classified once into the categories that drive guard
conditions and concurrency keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PULL_REQUEST_EVENTS: frozenset[str] = frozenset(
    {
        "pull_request",
        "pull_request_target",
        "pull_request_review",
        "pull_request_review_comment",
    }
)
ISSUE_EVENTS: frozenset[str] = frozenset({"issues", "issue_comment"})
DISCUSSION_EVENTS: frozenset[str] = frozenset({"discussion", "discussion_comment"})

# Keys under `on` that configure the compiler rather than name events
NON_EVENT_KEYS: frozenset[str] = frozenset({"command", "reaction", "stop-after"})


@dataclass(frozen=True)
class TriggerCategories:
    """Which kinds of events trigger a workflow.

    Attributes:
        pull_request: Any pull-request-like event.
        issue: Issue or issue comment events.
        discussion: Discussion or discussion comment events.
        command: A slash command trigger.

    """

    pull_request: bool = False
    issue: bool = False
    discussion: bool = False
    command: bool = False

    @property
    def pull_request_only(self) -> bool:
        """Pull-request events without issue, discussion or command triggers."""
        return self.pull_request and not (self.issue or self.discussion or self.command)


def event_names(on: Any) -> list[str]:
    """Event names of an `on` value: a string, a list or a mapping."""
    if isinstance(on, str):
        return [on]
    if isinstance(on, list):
        return [str(event) for event in on]
    if isinstance(on, dict):
        return [str(key) for key in on if key not in NON_EVENT_KEYS]
    return []


def classify_triggers(on: Any, has_command: bool = False) -> TriggerCategories:
    """Classify the events of an `on` value.

    Args:
        on: Parsed `on` section after command defaults were applied.
        has_command: Whether the workflow is command triggered.

    """
    events = set(event_names(on))
    return TriggerCategories(
        pull_request=bool(events & PULL_REQUEST_EVENTS),
        issue=bool(events & ISSUE_EVENTS),
        discussion=bool(events & DISCUSSION_EVENTS),
        command=has_command,
    )

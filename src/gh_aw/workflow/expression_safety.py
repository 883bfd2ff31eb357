"""Allow-list check for `${{ }}` expressions in the prompt body.

The prompt is written into a heredoc inside a `run:` step, so any expression
there is evaluated by GitHub Actions before the agent sees it. Only
identifiers and job/step outputs that cannot leak secrets or untrusted
content are allowed.
"""

from __future__ import annotations

import logging
import re

from gh_aw.core.exceptions import SemanticError

logger = logging.getLogger(__name__)

ALLOWED_EXPRESSIONS: tuple[str, ...] = (
    "github.event.after",
    "github.event.before",
    "github.event.check_run.id",
    "github.event.check_suite.id",
    "github.event.comment.id",
    "github.event.deployment.id",
    "github.event.deployment_status.id",
    "github.event.head_commit.id",
    "github.event.installation.id",
    "github.event.issue.number",
    "github.event.label.id",
    "github.event.milestone.id",
    "github.event.organization.id",
    "github.event.page.id",
    "github.event.project.id",
    "github.event.project_card.id",
    "github.event.project_column.id",
    "github.event.pull_request.number",
    "github.event.release.assets[0].id",
    "github.event.release.id",
    "github.event.repository.id",
    "github.event.review.id",
    "github.event.review_comment.id",
    "github.event.sender.id",
    "github.event.workflow_run.id",
    "github.actor",
    "github.owner",
    "github.repository",
    "github.run_id",
    "github.run_number",
    "github.server_url",
    "github.workflow",
    "github.workspace",
)

_EXPRESSION = re.compile(r"\$\{\{(.*?)\}\}", re.DOTALL)
_NEEDS_STEPS = re.compile(r"^(needs|steps)\.[a-zA-Z0-9_-]+(\.[a-zA-Z0-9_-]+)*$")
_INPUTS = re.compile(r"^github\.event\.inputs\.[a-zA-Z0-9_-]+$")
_ENV = re.compile(r"^env\.[a-zA-Z0-9_-]+$")


def is_allowed_expression(expression: str) -> bool:
    """Whether the text between `${{` and `}}` may appear in the prompt."""
    if "\n" in expression:
        return False
    expression = expression.strip()
    if expression in ALLOWED_EXPRESSIONS:
        return True
    return any(p.match(expression) for p in (_NEEDS_STEPS, _INPUTS, _ENV))


def unauthorized_expressions(markdown: str) -> list[str]:
    """Disallowed expressions in order of appearance."""
    return [
        match.group(1).strip()
        for match in _EXPRESSION.finditer(markdown)
        if not is_allowed_expression(match.group(1))
    ]


def validate_expression_safety(markdown: str) -> None:
    """Reject prompt bodies with disallowed expressions.

    Raises:
        SemanticError: Listing the unauthorized and the allowed expressions.

    """
    unauthorized = unauthorized_expressions(markdown)
    if not unauthorized:
        return
    logger.debug("Found %d unauthorized expressions", len(unauthorized))
    raise SemanticError(
        f"unauthorized expressions: [{', '.join(unauthorized)}]. "
        f"allowed: [{', '.join(ALLOWED_EXPRESSIONS)}]. "
        "Suggestion: pass other values through `needs.task.outputs.text`, "
        "job outputs or `env.` variables"
    )

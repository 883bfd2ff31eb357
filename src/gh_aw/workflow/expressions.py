"""Condition expressions for GitHub Actions `if:` fields.

Conditions are built bottom-up from small immutable nodes and rendered to the
GitHub Actions expression syntax with render(). Rendering is pure: the same
tree always produces the same text.

Logical combinators parenthesize every operand, so grouping never depends on
operator precedence:

    >>> render(And(event_type_equals("issues"), Not(Expression("cancelled()"))))
    "(github.event_name == 'issues') && (!(cancelled()))"

Long chains of alternatives use Disjunction instead of nested Or nodes, which
can also be rendered one term per line with a comment per term.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import singledispatch
from typing import TypeAlias

COMPARISON_OPERATORS: tuple[str, ...] = ("==", "!=", "<", ">", "<=", ">=")


@dataclass(frozen=True)
class Expression:
    """Opaque expression text rendered verbatim.

    Attributes:
        expression: Raw expression text.
        description: Optional comment shown in multiline disjunctions.

    """

    expression: str
    description: str = ""


@dataclass(frozen=True)
class PropertyAccess:
    """Context property path such as github.event.issue.number."""

    path: str


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool


@dataclass(frozen=True)
class NumberLiteral:
    """Numeric literal kept as text so 1.50 renders as written."""

    value: str


@dataclass(frozen=True)
class Comparison:
    """Binary comparison `left op right`."""

    left: ConditionNode
    operator: str
    right: ConditionNode

    def __post_init__(self) -> None:
        if self.operator not in COMPARISON_OPERATORS:
            raise ValueError(
                f"Unsupported comparison operator: '{self.operator}'. "
                f"Available: {', '.join(COMPARISON_OPERATORS)}"
            )


@dataclass(frozen=True)
class And:
    left: ConditionNode
    right: ConditionNode


@dataclass(frozen=True)
class Or:
    left: ConditionNode
    right: ConditionNode


@dataclass(frozen=True)
class Not:
    child: ConditionNode


@dataclass(frozen=True)
class Disjunction:
    """N-ary OR that renders flat instead of nesting.

    Attributes:
        terms: Alternatives in rendering order.
        multiline: Render one term per line, each but the last ending in " ||".

    """

    terms: tuple[ConditionNode, ...] = field(default_factory=tuple)
    multiline: bool = False


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: tuple[ConditionNode, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Contains:
    """contains(array, value) check."""

    array: ConditionNode
    value: ConditionNode


@dataclass(frozen=True)
class Ternary:
    condition: ConditionNode
    true_value: ConditionNode
    false_value: ConditionNode


ConditionNode: TypeAlias = (
    Expression
    | PropertyAccess
    | StringLiteral
    | BooleanLiteral
    | NumberLiteral
    | Comparison
    | And
    | Or
    | Not
    | Disjunction
    | FunctionCall
    | Contains
    | Ternary
)


@singledispatch
def render(node: object) -> str:
    """Render a condition node to GitHub Actions expression text.

    Args:
        node: Any ConditionNode variant.

    Returns:
        Expression text without the surrounding ${{ }}.

    Raises:
        TypeError: If node is not a ConditionNode.

    """
    raise TypeError(f"Cannot render {type(node).__name__} as a condition")


@render.register
def _(node: Expression) -> str:
    return node.expression


@render.register
def _(node: PropertyAccess) -> str:
    return node.path


@render.register
def _(node: StringLiteral) -> str:
    escaped = node.value.replace("'", "''")
    return f"'{escaped}'"


@render.register
def _(node: BooleanLiteral) -> str:
    return "true" if node.value else "false"


@render.register
def _(node: NumberLiteral) -> str:
    return node.value


@render.register
def _(node: Comparison) -> str:
    return f"{render(node.left)} {node.operator} {render(node.right)}"


@render.register
def _(node: And) -> str:
    return f"({render(node.left)}) && ({render(node.right)})"


@render.register
def _(node: Or) -> str:
    return f"({render(node.left)}) || ({render(node.right)})"


@render.register
def _(node: Not) -> str:
    return f"!({render(node.child)})"


@render.register
def _(node: Disjunction) -> str:
    if not node.terms:
        return ""
    if len(node.terms) == 1:
        return render(node.terms[0])

    if not node.multiline:
        return " || ".join(render(term) for term in node.terms)

    lines: list[str] = []
    last = len(node.terms) - 1
    for i, term in enumerate(node.terms):
        if isinstance(term, Expression) and term.description:
            lines.append(f"# {term.description}")
        suffix = " ||" if i < last else ""
        lines.append(render(term) + suffix)
    return "\n".join(lines)


@render.register
def _(node: FunctionCall) -> str:
    args = ", ".join(render(arg) for arg in node.arguments)
    return f"{node.name}({args})"


@render.register
def _(node: Contains) -> str:
    return f"contains({render(node.array)}, {render(node.value)})"


@render.register
def _(node: Ternary) -> str:
    return (
        f"{render(node.condition)} ? {render(node.true_value)} : {render(node.false_value)}"
    )


# =============================================================================
# Builders
# =============================================================================


def property_access(path: str) -> PropertyAccess:
    return PropertyAccess(path)


def string_literal(value: str) -> StringLiteral:
    return StringLiteral(value)


def boolean_literal(value: bool) -> BooleanLiteral:
    return BooleanLiteral(value)


def number_literal(value: int | float | str) -> NumberLiteral:
    return NumberLiteral(str(value))


def equals(left: ConditionNode, right: ConditionNode) -> Comparison:
    return Comparison(left, "==", right)


def not_equals(left: ConditionNode, right: ConditionNode) -> Comparison:
    return Comparison(left, "!=", right)


def function_call(name: str, *arguments: ConditionNode) -> FunctionCall:
    return FunctionCall(name, tuple(arguments))


def event_type_equals(event_type: str) -> Comparison:
    """github.event_name == '<event_type>'."""
    return equals(property_access("github.event_name"), string_literal(event_type))


def action_equals(action: str) -> Comparison:
    """github.event.action == '<action>'."""
    return equals(property_access("github.event.action"), string_literal(action))


def label_contains(label: str) -> Contains:
    """The triggering issue carries the given label."""
    return Contains(property_access("github.event.issue.labels.*.name"), string_literal(label))


def ref_starts_with(prefix: str) -> FunctionCall:
    """startsWith(github.ref, '<prefix>')."""
    return function_call("startsWith", property_access("github.ref"), string_literal(prefix))


def expression_with_description(expression: str, description: str) -> Expression:
    return Expression(expression, description)


def disjunction(*terms: ConditionNode) -> Disjunction:
    return Disjunction(tuple(terms))


def multiline_disjunction(*terms: ConditionNode) -> Disjunction:
    return Disjunction(tuple(terms), multiline=True)


def condition_tree(existing: str, extra: str) -> ConditionNode:
    """Combine an existing condition with an additional one.

    Args:
        existing: Already-rendered condition, possibly empty.
        extra: Rendered condition to require in addition.

    Returns:
        And(existing, extra), or just extra when there is no existing condition.

    """
    extra_node = Expression(extra)
    if not existing:
        return extra_node
    return And(Expression(existing), extra_node)


# Events whose payload can carry a reaction target
REACTION_EVENTS: tuple[str, ...] = (
    "issues",
    "pull_request",
    "issue_comment",
    "pull_request_comment",
    "pull_request_review_comment",
)


def reaction_condition() -> Disjunction:
    """Condition for jobs that react to the triggering issue, PR or comment."""
    return disjunction(*(event_type_equals(event) for event in REACTION_EVENTS))

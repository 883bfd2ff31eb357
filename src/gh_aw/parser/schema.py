"""Pydantic schema of the main workflow frontmatter.

The models describe the accepted shape of every top-level key. Unknown keys
are rejected (extra="forbid"). The compiler keeps working from the raw
frontmatter mapping; the models exist to produce structured violations that
validation.py maps back to source positions.

Usage:
    from gh_aw.parser.schema import WorkflowFrontmatter

    WorkflowFrontmatter.model_validate(frontmatter)
"""

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class NetworkSettings(_Section):
    """Network egress policy.

    Attributes:
        mode: "defaults" for the built-in allow-list of common domains.
        allowed: Additional domains; "*.example.com" matches subdomains.

    """

    mode: Literal["defaults"] | None = None
    allowed: list[str] = Field(default_factory=list)


def _network_shorthand(value: Any) -> Any:
    if isinstance(value, str):
        if value != "defaults":
            raise ValueError(f"network must be 'defaults' or a mapping, got '{value}'")
        return {"mode": "defaults"}
    return value


class EngineSettings(_Section):
    """Object form of the `engine` key."""

    id: str
    version: str | None = None
    model: str | None = None
    max_turns: int | None = Field(default=None, alias="max-turns")
    env: dict[str, str] = Field(default_factory=dict)
    steps: list[dict[str, Any]] = Field(default_factory=list)
    permissions: dict[str, Any] | None = None
    network: NetworkSettings | None = None

    @field_validator("network", mode="before")
    @classmethod
    def expand_network_shorthand(cls, v: Any) -> Any:
        """Accept `network: defaults` as shorthand."""
        return _network_shorthand(v)


class CreateIssueSettings(_Section):
    title_prefix: str | None = Field(default=None, alias="title-prefix")
    labels: list[str] = Field(default_factory=list)
    max: int = Field(default=1, ge=1)


class AddIssueCommentSettings(_Section):
    max: int = Field(default=1, ge=1)
    target: str | None = None


class CreatePullRequestSettings(_Section):
    title_prefix: str | None = Field(default=None, alias="title-prefix")
    labels: list[str] = Field(default_factory=list)
    draft: bool | None = None
    max: int = Field(default=1, ge=1, le=1)


class AddIssueLabelSettings(_Section):
    allowed: list[str] = Field(default_factory=list)
    max: int = Field(default=3, ge=1)


class UpdateIssueSettings(_Section):
    status: Any = None
    title: Any = None
    body: Any = None
    target: str | None = None
    max: int = Field(default=1, ge=1)


class PushToBranchSettings(_Section):
    branch: str = "triggering"
    target: str | None = None


class CreateDiscussionSettings(_Section):
    title_prefix: str | None = Field(default=None, alias="title-prefix")
    category_id: str | None = Field(default=None, alias="category-id")
    max: int = Field(default=1, ge=1)


class ReviewCommentSettings(_Section):
    max: int = Field(default=10, ge=1)
    side: Literal["LEFT", "RIGHT"] = "RIGHT"


class MissingToolSettings(_Section):
    max: int = Field(default=0, ge=0)


class SafeOutputsSettings(_Section):
    """The `safe-outputs` section. A key with no value enables defaults."""

    create_issue: CreateIssueSettings | None = Field(default=None, alias="create-issue")
    add_issue_comment: AddIssueCommentSettings | None = Field(
        default=None, alias="add-issue-comment"
    )
    create_pull_request: CreatePullRequestSettings | None = Field(
        default=None, alias="create-pull-request"
    )
    add_issue_label: AddIssueLabelSettings | None = Field(default=None, alias="add-issue-label")
    update_issue: UpdateIssueSettings | None = Field(default=None, alias="update-issue")
    push_to_branch: PushToBranchSettings | None = Field(default=None, alias="push-to-branch")
    create_discussion: CreateDiscussionSettings | None = Field(
        default=None, alias="create-discussion"
    )
    create_pull_request_review_comment: ReviewCommentSettings | None = Field(
        default=None, alias="create-pull-request-review-comment"
    )
    missing_tool: MissingToolSettings | None = Field(default=None, alias="missing-tool")
    allowed_domains: list[str] = Field(default_factory=list, alias="allowed-domains")

    @model_validator(mode="before")
    @classmethod
    def enable_bare_outputs(cls, data: Any) -> Any:
        """Treat `create-issue:` with no value as an empty mapping."""
        if isinstance(data, dict):
            return {
                key: ({} if value is None and key != "allowed-domains" else value)
                for key, value in data.items()
            }
        return data


class CustomJobSettings(BaseModel):
    """Entry of the `jobs` section; extra GitHub Actions job keys pass through."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    runs_on: str | list[str] | dict[str, Any] = Field(default="ubuntu-latest", alias="runs-on")
    depends: str | list[str] = Field(default_factory=list)
    if_: str | None = Field(default=None, alias="if")
    steps: list[dict[str, Any]] = Field(default_factory=list)


class WorkflowFrontmatter(_Section):
    """Main workflow frontmatter.

    `on` is optional here because its absence is reported by a dedicated
    rule with its own hint. Numeric ranges for max-turns are checked the
    same way so the message names the accepted range.
    """

    on: str | list[str] | dict[str, Any] | None = None
    permissions: str | dict[str, str] | None = None
    run_name: str | None = Field(default=None, alias="run-name")
    runs_on: str | list[str] | dict[str, Any] | None = Field(default=None, alias="runs-on")
    timeout_minutes: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("timeout_minutes", "timeout-minutes"),
    )
    concurrency: str | dict[str, Any] | None = None
    env: dict[str, Any] | None = None
    if_: str | None = Field(default=None, alias="if")
    steps: list[dict[str, Any]] | None = None
    post_steps: list[dict[str, Any]] | None = Field(default=None, alias="post-steps")
    engine: EngineSettings | None = None
    network: NetworkSettings | None = None
    tools: dict[str, Any] | list[Any] | None = None
    safe_outputs: SafeOutputsSettings | None = Field(default=None, alias="safe-outputs")
    cache: dict[str, Any] | list[dict[str, Any]] | None = None
    jobs: dict[str, CustomJobSettings] | None = None
    max_turns: int | None = Field(default=None, alias="max-turns")
    allow_domains: list[str] | None = Field(default=None, alias="allow-domains")
    strict: bool = False
    # Accepted so the compiler can explain the move to on.stop-after
    stop_time: Any = Field(default=None, alias="stop-time")

    @field_validator("engine", mode="before")
    @classmethod
    def expand_engine_shorthand(cls, v: Any) -> Any:
        """Accept `engine: <id>` as shorthand for `engine: {id: <id>}`."""
        if isinstance(v, str):
            return {"id": v}
        return v

    @field_validator("network", mode="before")
    @classmethod
    def expand_network_shorthand(cls, v: Any) -> Any:
        """Accept `network: defaults` as shorthand."""
        return _network_shorthand(v)

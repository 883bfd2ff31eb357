"""Abstract base class for agentic engine implementations.

This module defines the contract every AI backend (Claude, Codex, Gemini,
...) implements. The compiler only talks to AgenticEngine, so everything that
differs between backends lives behind it: installation steps, the execution
step, MCP server wiring and log metric extraction.

Steps are handled as lists of already-indented YAML lines (GitHubActionStep),
at the indentation of a job's `steps:` list.

Example:
    >>> class EchoEngine(AgenticEngine):
    ...     @property
    ...     def id(self) -> str:
    ...         return "echo"
    ...
    ...     @property
    ...     def display_name(self) -> str:
    ...         return "Echo"
    ...
    ...     @property
    ...     def description(self) -> str:
    ...         return "Prints the prompt"
    ...
    ...     def execution_config(self, workflow_name, log_file, engine_config,
    ...                          network, has_safe_outputs, **kwargs):
    ...         return ExecutionConfig(
    ...             step_name="Echo prompt",
    ...             command=f"cat /tmp/aw-prompts/prompt.txt | tee {log_file}",
    ...         )
    ...
    ...     def render_mcp_config(self, tools, mcp_tools):
    ...         return []

"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from gh_aw.core.yamlutil import dump_yaml, indent_block
from gh_aw.engines.config import EngineConfig, NetworkPermissions
from gh_aw.engines.metrics import LogMetrics, count_errors_and_warnings

logger = logging.getLogger(__name__)

GitHubActionStep = list[str]

PROMPT_PATH = "/tmp/aw-prompts/prompt.txt"
SAFE_OUTPUTS_ENV = "${{ env.GITHUB_AW_SAFE_OUTPUTS }}"

STEP_INDENT = "      "
FIELD_INDENT = "        "
VALUE_INDENT = "          "


@dataclass(frozen=True)
class ExecutionConfig:
    """How an engine runs the agent.

    Exactly one of action, command or steps describes the main execution.

    Attributes:
        step_name: Name of the execution step.
        action: Reusable action reference (`owner/repo@ref`).
        inputs: Action inputs; multi-line values render as block scalars.
        command: Shell script for command-based engines.
        environment: Step environment, rendered in insertion order.
        step_id: Optional `id:` of the execution step.
        input_comments: Comment lines rendered above an input.
        steps: Pre-rendered steps replacing the single execution step.
        post_steps: Pre-rendered steps appended after execution.
        block_inputs: Inputs always rendered as `|` block scalars.

    """

    step_name: str
    action: str = ""
    inputs: dict[str, str] = field(default_factory=dict)
    command: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    step_id: str = ""
    input_comments: dict[str, tuple[str, ...]] = field(default_factory=dict)
    steps: tuple[GitHubActionStep, ...] = ()
    post_steps: tuple[GitHubActionStep, ...] = ()
    block_inputs: frozenset[str] = frozenset()


class AgenticEngine(ABC):
    """Abstract base class for agentic engines.

    Concrete implementations must implement:
        - id, display_name, description: Identity shown to users
        - execution_config(): The step that runs the agent
        - render_mcp_config(): Shell lines writing the MCP server config

    Capability flags default to False and are overridden by engines that
    support the feature.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique identifier used in frontmatter (e.g., 'claude', 'codex')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """One-line description of the engine."""
        ...

    @property
    def experimental(self) -> bool:
        return False

    @property
    def supports_tools_whitelist(self) -> bool:
        """Whether tool allow-lists are honored (other engines only get github)."""
        return False

    @property
    def supports_http_transport(self) -> bool:
        """Whether MCP servers of type http can be configured."""
        return False

    @property
    def supports_max_turns(self) -> bool:
        return False

    @property
    def log_parser_script(self) -> str | None:
        """Name of the step-summary log parser script, or None."""
        return None

    def declared_output_files(self) -> list[str]:
        """Files the engine may produce, uploaded as artifacts when present."""
        return []

    def installation_steps(
        self, engine_config: EngineConfig | None, network: NetworkPermissions | None
    ) -> list[GitHubActionStep]:
        """Steps that install the engine before the prompt is built."""
        return []

    @abstractmethod
    def execution_config(
        self,
        workflow_name: str,
        log_file: str,
        engine_config: EngineConfig | None,
        network: NetworkPermissions | None,
        has_safe_outputs: bool,
        *,
        allowed_tools: str = "",
        timeout_minutes: int = 5,
    ) -> ExecutionConfig:
        """Describe the step that runs the agent.

        Args:
            workflow_name: Workflow name, used in log and artifact names.
            log_file: Absolute path the agent log must end up in.
            engine_config: Normalized engine settings, or None.
            network: Egress policy, or None when unrestricted.
            has_safe_outputs: Whether the safe output file must be exposed.
            allowed_tools: Comma-separated tool allow-list.
            timeout_minutes: Agent timeout.

        Returns:
            ExecutionConfig rendered by execution_steps().

        """
        ...

    @abstractmethod
    def render_mcp_config(self, tools: dict[str, Any], mcp_tools: list[str]) -> list[str]:
        """Shell lines (inside a `run: |` block) writing the MCP server config.

        Args:
            tools: Normalized tools section.
            mcp_tools: Sorted names of MCP tools, including "github".

        """
        ...

    def parse_log_metrics(self, log_content: str, verbose: bool = False) -> LogMetrics:
        """Extract metrics from an execution log. Never raises."""
        errors, warnings = count_errors_and_warnings(log_content.split("\n"))
        return LogMetrics(error_count=errors, warning_count=warnings)

    def execution_steps(
        self,
        workflow_name: str,
        log_file: str,
        engine_config: EngineConfig | None,
        network: NetworkPermissions | None,
        has_safe_outputs: bool,
        *,
        allowed_tools: str = "",
        timeout_minutes: int = 5,
    ) -> list[GitHubActionStep]:
        """Render the execution config of this engine as workflow steps."""
        config = self.execution_config(
            workflow_name,
            log_file,
            engine_config,
            network,
            has_safe_outputs,
            allowed_tools=allowed_tools,
            timeout_minutes=timeout_minutes,
        )
        steps = list(config.steps)
        if config.command:
            steps.append(render_command_step(config))
        elif config.action:
            steps.append(render_action_step(config))
        steps.extend(config.post_steps)
        return steps


def render_command_step(config: ExecutionConfig) -> GitHubActionStep:
    """`run: |` step with the environment sorted by name."""
    lines = [f"{STEP_INDENT}- name: {config.step_name}"]
    if config.step_id:
        lines.append(f"{FIELD_INDENT}id: {config.step_id}")
    lines.append(f"{FIELD_INDENT}run: |")
    lines += [VALUE_INDENT + line if line else "" for line in config.command.split("\n")]
    if config.environment:
        lines.append(f"{FIELD_INDENT}env:")
        for key in sorted(config.environment):
            lines.append(f"{VALUE_INDENT}{key}: {config.environment[key]}")
    return lines


def render_action_step(config: ExecutionConfig) -> GitHubActionStep:
    """`uses:` step with inputs sorted by name."""
    lines = [f"{STEP_INDENT}- name: {config.step_name}"]
    if config.step_id:
        lines.append(f"{FIELD_INDENT}id: {config.step_id}")
    lines.append(f"{FIELD_INDENT}uses: {config.action}")
    if config.inputs:
        lines.append(f"{FIELD_INDENT}with:")
        for key in sorted(config.inputs):
            value = config.inputs[key]
            lines += [f"{VALUE_INDENT}# {c}" for c in config.input_comments.get(key, ())]
            if "\n" in value or key in config.block_inputs:
                lines.append(f"{VALUE_INDENT}{key}: |")
                lines += [VALUE_INDENT + "  " + line for line in value.split("\n")]
            else:
                lines.append(f"{VALUE_INDENT}{key}: {value}")
    if config.environment:
        lines.append(f"{FIELD_INDENT}env:")
        for key, value in config.environment.items():
            lines.append(f"{VALUE_INDENT}{key}: {value}")
    return lines


def render_custom_step(step: dict[str, Any]) -> GitHubActionStep:
    """Serialize a step mapping from the frontmatter as a list item."""
    body = indent_block(dump_yaml([step]), STEP_INDENT)
    return body.split("\n")


def base_environment(
    engine_config: EngineConfig | None, has_safe_outputs: bool
) -> dict[str, str]:
    """Prompt path, safe output file, turn limit and the engine `env:` map."""
    env = {"GITHUB_AW_PROMPT": PROMPT_PATH}
    if has_safe_outputs:
        env["GITHUB_AW_SAFE_OUTPUTS"] = SAFE_OUTPUTS_ENV
    if engine_config is not None:
        if engine_config.max_turns is not None:
            env["GITHUB_AW_MAX_TURNS"] = str(engine_config.max_turns)
        env.update(engine_config.env)
    return env


def npm_install_steps(
    display_name: str, package: str, version: str = "", cache: bool = False
) -> list[GitHubActionStep]:
    """Node.js setup plus a global npm install of the engine CLI."""
    setup = [
        f"{STEP_INDENT}- name: Setup Node.js",
        f"{FIELD_INDENT}uses: actions/setup-node@v4",
        f"{FIELD_INDENT}with:",
        f"{VALUE_INDENT}node-version: '24'",
    ]
    if cache:
        setup.append(f"{VALUE_INDENT}cache: 'npm'")
    spec = f"{package}@{version}" if version else package
    install = [
        f"{STEP_INDENT}- name: Install {display_name}",
        f"{FIELD_INDENT}run: npm install -g {spec}",
    ]
    return [setup, install]

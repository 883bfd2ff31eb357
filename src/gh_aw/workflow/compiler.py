"""Compilation of workflow documents into GitHub Actions workflows.

The compiler works in two phases. parse_workflow() reads a document into an
immutable WorkflowData: frontmatter is validated, includes are expanded, the
engine is resolved and tools, triggers and defaults are normalized.
generate_yaml() then assembles the job graph and serializes it.

Usage:
    from gh_aw.workflow.compiler import Compiler

    compiler = Compiler(engine_override="codex")
    lock_file = compiler.compile_file(Path(".github/workflows/triage.md"))
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gh_aw.core.exceptions import (
    CompilerError,
    EngineNotFoundError,
    FrontmatterValidationFailed,
    SemanticError,
)
from gh_aw.core.settings import CompilerSettings, get_settings
from gh_aw.core.yamlutil import dump_section, dump_yaml
from gh_aw.engines.base import AgenticEngine, GitHubActionStep
from gh_aw.engines.config import (
    EngineConfig,
    NetworkPermissions,
    extract_engine_config,
    merge_engine_configs,
    validate_engine_conflicts,
)
from gh_aw.engines.mcp import mcp_type, validate_mcp_configs
from gh_aw.engines.registry import get_engine_registry
from gh_aw.parser.frontmatter import (
    expand_includes,
    extract_frontmatter,
    extract_workflow_name,
    merge_tools,
)
from gh_aw.parser.schema import CustomJobSettings, SafeOutputsSettings
from gh_aw.parser.validation import to_diagnostics, validate_frontmatter
from gh_aw.workflow import steps as step_builders
from gh_aw.workflow.command import COMMAND_EVENTS, command_only_condition, event_aware_command_condition
from gh_aw.workflow.concurrency import generate_concurrency
from gh_aw.workflow.expression_safety import validate_expression_safety
from gh_aw.workflow.expressions import (
    ConditionNode,
    Or,
    boolean_literal,
    condition_tree,
    disjunction,
    equals,
    label_contains,
    not_equals,
    property_access,
    reaction_condition,
    render,
    string_literal,
)
from gh_aw.workflow.jobs import Job, JobManager
from gh_aw.workflow.naming import generate_job_name, log_file_path, safe_file_name
from gh_aw.workflow.proxy import proxy_setup_steps
from gh_aw.workflow.safe_outputs import (
    build_safe_output_jobs,
    needs_git_commands,
    parse_safe_outputs,
    safe_outputs_config_json,
    safe_outputs_instructions,
)
from gh_aw.workflow.time_delta import resolve_stop_time
from gh_aw.workflow.tools import apply_default_tools, compute_allowed_tools, mcp_tool_names
from gh_aw.workflow.triggers import NON_EVENT_KEYS, classify_triggers

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock.yml"

TEXT_OUTPUT_EXPRESSION = "${{ needs.task.outputs.text }}"

# Events a slash command listens on
COMMAND_TRIGGER_EVENTS: dict[str, Any] = {
    "issues": {"types": ["opened", "edited", "reopened"]},
    "issue_comment": {"types": ["created", "edited"]},
    "pull_request": {"types": ["opened", "edited", "reopened"]},
    "pull_request_review_comment": {"types": ["created", "edited"]},
}

HEADER = (
    "# This file was automatically generated by gh-aw. DO NOT EDIT.\n"
    "# To update this file, edit the corresponding .md file and run:\n"
    "#   gh aw compile\n"
)

STRICT_WRITE_WARNING = (
    "Strict mode: Found 'write' permissions. Consider using 'read' permissions "
    "only for better security."
)


@dataclass(frozen=True)
class WorkflowData:
    """Parsed and normalized workflow, ready for YAML generation.

    Top-level sections (`on`, `concurrency`, `run-name`, `env`) are kept as
    rendered YAML text; job-level values are kept as data and rendered with
    the job.
    """

    name: str
    source: str
    on: str
    markdown: str
    engine_id: str
    engine_config: EngineConfig | None
    tools: dict[str, Any]
    allowed_tools: str
    concurrency: str
    run_name: str
    permissions: Any = "read-all"
    runs_on: Any = "ubuntu-latest"
    timeout_minutes: int = 5
    env: str = ""
    if_: str = ""
    custom_steps: tuple[dict[str, Any], ...] = ()
    post_steps: tuple[dict[str, Any], ...] = ()
    cache: Any = None
    jobs: dict[str, CustomJobSettings] = field(default_factory=dict)
    stop_time: str = ""
    command: str = ""
    command_other_events: dict[str, Any] = field(default_factory=dict)
    reaction: str = ""
    needs_text_output: bool = False
    safe_outputs: SafeOutputsSettings | None = None
    strict: bool = False

    @property
    def network(self) -> NetworkPermissions | None:
        return self.engine_config.network if self.engine_config is not None else None

    @property
    def needs_task_job(self) -> bool:
        """A command, a text output or a condition needs the preamble job."""
        return bool(self.command or self.needs_text_output or self.if_)


# =============================================================================
# Frontmatter helpers
# =============================================================================


def _comment_out_key(yaml_text: str, section: str, key: str, note: str) -> str:
    """Comment out `key:` (with its nested lines) inside `section:` of a YAML block.

    The key stays visible in the output while the compiler applies it
    through job conditions instead.
    """
    result: list[str] = []
    in_section = False
    section_indent = 0
    key_indent = -1
    for line in yaml_text.split("\n"):
        stripped = line.lstrip(" ")
        indent = len(line) - len(stripped)
        if key_indent >= 0:
            if stripped and indent > key_indent:
                result.append(f"{' ' * indent}# {stripped}")
                continue
            key_indent = -1
        if stripped.startswith(f"{section}:"):
            in_section = True
            section_indent = indent
            result.append(line)
            continue
        if in_section and stripped and indent <= section_indent:
            in_section = False
        if in_section and stripped.startswith(f"{key}:"):
            key_indent = indent
            result.append(f"{' ' * indent}# {stripped} # {note}")
            continue
        result.append(line)
    return "\n".join(result)


def render_on_section(events: Any) -> str:
    """The `on:` section with draft and label filters commented out."""
    text = dump_section("on", events)
    text = _comment_out_key(
        text, "pull_request", "draft", "Draft filtering applied via job conditions"
    )
    return _comment_out_key(text, "label", "name", "Label filtering applied via job conditions")


def normalize_tools_section(tools: Any) -> dict[str, Any]:
    """The `tools` section as a mapping; list entries are keyed by `name`."""
    if isinstance(tools, dict):
        return dict(tools)
    if not isinstance(tools, list):
        return {}
    result: dict[str, Any] = {}
    for entry in tools:
        if isinstance(entry, str):
            result[entry] = None
        elif isinstance(entry, dict) and isinstance(entry.get("name"), str):
            result[entry["name"]] = {k: v for k, v in entry.items() if k != "name"}
    return result


def draft_condition(on: Any) -> str:
    """Condition implementing `on.pull_request.draft`, or ""."""
    if not isinstance(on, dict):
        return ""
    pull_request = on.get("pull_request")
    if not isinstance(pull_request, dict):
        return ""
    draft = pull_request.get("draft")
    if not isinstance(draft, bool):
        return ""
    not_pull_request = not_equals(property_access("github.event_name"), string_literal("pull_request"))
    matches = equals(property_access("github.event.pull_request.draft"), boolean_literal(draft))
    return render(Or(not_pull_request, matches))


def label_condition(on: Any) -> str:
    """Condition implementing `on.label.name`, or ""."""
    if not isinstance(on, dict):
        return ""
    label = on.get("label")
    if not isinstance(label, dict) or not isinstance(label.get("name"), list):
        return ""
    names = [name for name in label["name"] if isinstance(name, str)]
    if not names:
        return ""
    terms: list[ConditionNode] = [label_contains(name) for name in names]
    node: ConditionNode = terms[0] if len(terms) == 1 else disjunction(*terms)
    return render(node)


def has_write_permissions(permissions: Any) -> bool:
    return "write" in dump_yaml(permissions)


def _validate_custom_steps(key: str, custom: Any) -> tuple[dict[str, Any], ...]:
    if not custom:
        return ()
    for index, step in enumerate(custom):
        if "run" not in step and "uses" not in step:
            raise SemanticError(
                f"{key}[{index}] must specify either 'run' or 'uses'\n"
                "  How to fix: Add a shell command under 'run' or an action reference under 'uses'"
            )
    return tuple(custom)


# =============================================================================
# Compiler
# =============================================================================


class Compiler:
    """Compile workflow documents to `.lock.yml` files.

    Args:
        engine_override: Engine id from the command line; wins over the
            frontmatter and the settings default.
        strict: Force strict mode on, or None to follow frontmatter and
            settings.
        settings: Project settings; defaults to get_settings().

    """

    def __init__(
        self,
        engine_override: str = "",
        strict: bool | None = None,
        settings: CompilerSettings | None = None,
    ) -> None:
        self.engine_override = engine_override
        self.strict = strict
        self._settings = settings
        self.warnings: list[str] = []

    @property
    def settings(self) -> CompilerSettings:
        return self._settings if self._settings is not None else get_settings()

    def _warn(self, message: str, *args: Any) -> None:
        text = message % args if args else message
        self.warnings.append(text)
        logger.warning("%s", text)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def compile_file(self, path: Path, output: Path | None = None) -> Path:
        """Compile one document and write its lock file.

        Args:
            path: Markdown workflow document.
            output: Target file; defaults to `<stem>.lock.yml` next to the input.

        Returns:
            Path of the written lock file.

        Raises:
            CompilerError: If the document cannot be compiled or written.

        """
        lock_file = output or path.with_name(path.name.removesuffix(".md") + LOCK_SUFFIX)
        logger.info("Compiling %s -> %s", path, lock_file)

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CompilerError(f"failed to read file {path}: {e}") from e

        text = self.compile_string(content, path)

        try:
            # Atomic write
            with tempfile.NamedTemporaryFile(
                mode="w", delete=False, encoding="utf-8", dir=lock_file.parent, suffix=".tmp"
            ) as temp_file:
                temp_file.write(text)
            os.replace(temp_file.name, lock_file)
        except OSError as e:
            raise CompilerError(f"failed to write lock file {lock_file}: {e}") from e

        logger.info("Wrote %s (%d bytes)", lock_file, len(text))
        return lock_file

    def compile_string(self, content: str, path: Path) -> str:
        """Compile document text; path names the document and anchors includes."""
        data = self.parse_workflow(content, path)
        return self.generate_yaml(data)

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse_workflow(self, content: str, path: Path) -> WorkflowData:
        """Parse and normalize a workflow document.

        Raises:
            FrontmatterParseError: If the frontmatter is not valid YAML.
            FrontmatterValidationFailed: With one diagnostic per schema violation.
            SemanticError: If the workflow cannot be compiled as written.
            CompilerError: If an include cannot be resolved.

        """
        file = str(path)
        result = extract_frontmatter(content, file)
        frontmatter = result.frontmatter
        if not frontmatter:
            raise SemanticError("no frontmatter found")
        if not result.markdown:
            raise SemanticError("no markdown content found")

        stop_time_value = frontmatter.get("stop-time")
        if stop_time_value is not None:
            raise SemanticError(
                "'stop-time' is no longer supported at the root level. Please move it under "
                "the 'on:' section and rename to 'stop-after:'.\n\nExample:\n---\non:\n"
                f'  schedule:\n    - cron: "0 9 * * 1"\n  stop-after: "{stop_time_value}"\n---'
            )

        errors = validate_frontmatter(frontmatter, result.yaml_text)
        if errors:
            raise FrontmatterValidationFailed(
                f"{len(errors)} frontmatter error(s) in {file}",
                to_diagnostics(errors, file, content, result.frontmatter_start),
            )

        expansion = expand_includes(result.markdown, path.parent)
        markdown = expansion.markdown
        validate_expression_safety(markdown)

        engine_config = extract_engine_config(frontmatter)
        engine_id, engine = self._resolve_engine(
            engine_config.id if engine_config is not None else "", expansion.engines
        )
        if engine_config is not None and engine_config.id != engine_id:
            engine_config = dataclasses.replace(engine_config, id=engine_id)
        if (
            engine_config is not None
            and engine_config.max_turns is not None
            and not engine.supports_max_turns
        ):
            raise SemanticError(
                f"max-turns not supported: engine '{engine.id}' does not support the "
                "max-turns feature"
            )

        safe_outputs = parse_safe_outputs(frontmatter)
        tools = self._normalize_tools(frontmatter, expansion.tools, engine, safe_outputs)

        name = extract_workflow_name(result.markdown, path)
        logger.debug("Workflow name: %s", name)

        on = frontmatter.get("on")
        command, reaction, stop_after, other_events, events = self._parse_triggers(on, path)

        if_ = frontmatter.get("if") or ""
        if command and not if_:
            if_ = render(event_aware_command_condition(command, bool(other_events)))
        for extra in (draft_condition(on), label_condition(on)):
            if extra:
                if_ = render(condition_tree(if_, extra))

        stop_time = ""
        if stop_after:
            try:
                stop_time = resolve_stop_time(stop_after)
            except ValueError as e:
                raise SemanticError(f"invalid stop-after format: {e}") from e
            logger.info("Resolved stop-after '%s' to %s", stop_after, stop_time)

        permissions = frontmatter.get("permissions", "read-all")
        strict = self.strict or bool(frontmatter.get("strict")) or self.settings.strict
        if strict and has_write_permissions(permissions):
            self._warn(STRICT_WRITE_WARNING)

        explicit_concurrency = (
            dump_section("concurrency", frontmatter["concurrency"])
            if frontmatter.get("concurrency") is not None
            else ""
        )
        categories = classify_triggers(events, has_command=bool(command))

        run_name = frontmatter.get("run-name")
        timeout = frontmatter.get("timeout_minutes", frontmatter.get("timeout-minutes"))

        return WorkflowData(
            name=name,
            source=file,
            on=render_on_section(events),
            markdown=markdown,
            engine_id=engine_id,
            engine_config=engine_config,
            tools=tools,
            allowed_tools=compute_allowed_tools(tools, safe_outputs is not None),
            concurrency=generate_concurrency(explicit_concurrency, categories),
            run_name=(
                dump_section("run-name", run_name)
                if run_name
                else f"run-name: {json.dumps(name, ensure_ascii=False)}"
            ),
            permissions=permissions,
            runs_on=frontmatter.get("runs-on") or self.settings.runs_on,
            timeout_minutes=timeout if isinstance(timeout, int) else self.settings.timeout_minutes,
            env=dump_section("env", frontmatter["env"]) if frontmatter.get("env") else "",
            if_=if_,
            custom_steps=_validate_custom_steps("steps", frontmatter.get("steps")),
            post_steps=_validate_custom_steps("post-steps", frontmatter.get("post-steps")),
            cache=frontmatter.get("cache"),
            jobs={
                job_name: CustomJobSettings.model_validate(job)
                for job_name, job in (frontmatter.get("jobs") or {}).items()
            },
            stop_time=stop_time,
            command=command,
            command_other_events=other_events if command else {},
            reaction=reaction,
            needs_text_output=TEXT_OUTPUT_EXPRESSION in markdown,
            safe_outputs=safe_outputs,
            strict=strict,
        )

    def _resolve_engine(
        self, frontmatter_engine: str, included_engines: tuple[Any, ...]
    ) -> tuple[str, AgenticEngine]:
        validate_engine_conflicts(frontmatter_engine, included_engines)
        engine_id = merge_engine_configs(frontmatter_engine, included_engines)

        if self.engine_override:
            if engine_id and engine_id != self.engine_override:
                self._warn(
                    "Command line --engine %s overrides markdown file engine: %s",
                    self.engine_override,
                    engine_id,
                )
            engine_id = self.engine_override
        if not engine_id:
            engine_id = self.settings.default_engine
            logger.debug("No engine setting found, defaulting to: %s", engine_id)

        try:
            engine = get_engine_registry().resolve(engine_id)
        except EngineNotFoundError as e:
            raise SemanticError(f"invalid engine setting '{engine_id}': {e}") from e

        if engine.experimental:
            self._warn("Using experimental engine: %s", engine.display_name)
        logger.debug("Engine: %s (%s)", engine.display_name, engine_id)
        return engine_id, engine

    def _normalize_tools(
        self,
        frontmatter: dict[str, Any],
        included_tools: dict[str, Any],
        engine: AgenticEngine,
        safe_outputs: SafeOutputsSettings | None,
    ) -> dict[str, Any]:
        if not engine.supports_tools_whitelist:
            if "tools" in frontmatter:
                self._warn(
                    "'tools' section ignored when using engine: %s (%s doesn't support MCP "
                    "tool allow-listing)",
                    engine.id,
                    engine.display_name,
                )
            return {"github": {}}

        tools = merge_tools(normalize_tools_section(frontmatter.get("tools")), included_tools)
        validate_mcp_configs(tools)
        if not engine.supports_http_transport:
            for tool_name, tool_config in tools.items():
                if mcp_type(tool_config) == "http":
                    raise SemanticError(
                        f"HTTP transport not supported: tool '{tool_name}' uses HTTP transport "
                        f"which is not supported by engine '{engine.id}' (only stdio transport "
                        "is supported)"
                    )
        tools = apply_default_tools(tools, needs_git_commands(safe_outputs))
        logger.debug("Merged tools: %d total tools configured", len(tools))
        return tools

    def _parse_triggers(
        self, on: Any, path: Path
    ) -> tuple[str, str, str, dict[str, Any], Any]:
        """Split `on` into compiler settings and GitHub events.

        Returns:
            (command, reaction, stop_after, other_events, events) where events
            is the value rendered as the workflow's `on:` section.

        """
        if not on:
            raise SemanticError("'on' must name at least one event")
        if not isinstance(on, dict):
            return "", "", "", {}, on

        stop_after = on.get("stop-after", "")
        if stop_after is None:
            stop_after = ""
        if not isinstance(stop_after, str):
            raise SemanticError("stop-after value must be a string")

        reaction = on.get("reaction")
        reaction = reaction if isinstance(reaction, str) else ""

        other_events = {key: value for key, value in on.items() if key not in NON_EVENT_KEYS}

        if "command" not in on:
            if not other_events:
                raise SemanticError(
                    "'on' must name at least one event besides 'reaction' and 'stop-after'"
                )
            return "", reaction, stop_after, other_events, other_events

        command_setting = on["command"]
        command = ""
        if isinstance(command_setting, dict) and isinstance(command_setting.get("name"), str):
            command = command_setting["name"]
        elif isinstance(command_setting, str):
            command = command_setting
        command = command.lstrip("/") or path.name.removesuffix(".md")

        for event in COMMAND_EVENTS:
            if event in on:
                raise SemanticError(f"cannot use 'command' with '{event}' in the same workflow")

        events = {**COMMAND_TRIGGER_EVENTS, **other_events}
        logger.debug("Command trigger /%s with %d other event(s)", command, len(other_events))
        return command, reaction, stop_after, other_events, events

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_yaml(self, data: WorkflowData) -> str:
        """Serialize a workflow.

        Raises:
            JobGraphError: If the assembled job graph is invalid.

        """
        engine = get_engine_registry().resolve(data.engine_id)
        manager = self.build_jobs(data, engine)
        manager.validate()

        parts = [HEADER]
        if data.stop_time:
            parts.append(f"#\n# Effective stop-time: {data.stop_time}\n")
        parts.append("\n")
        parts.append(f"name: {json.dumps(data.name, ensure_ascii=False)}\n")
        parts.append(data.on + "\n\n")
        parts.append("permissions: {}\n\n")
        parts.append(data.concurrency + "\n\n")
        parts.append(data.run_name + "\n\n")
        if data.env:
            parts.append(data.env + "\n\n")
        if data.cache:
            parts.append(
                "# Cache configuration from frontmatter was processed and added to the "
                "main job steps\n\n"
            )
        parts.append(manager.render())
        return "".join(parts)

    def build_jobs(self, data: WorkflowData, engine: AgenticEngine) -> JobManager:
        """Task, reaction, main, safe output and custom jobs, in that order."""
        manager = JobManager()
        main_job_name = generate_job_name(data.name)

        task_created = data.needs_task_job
        if task_created:
            manager.add(self.build_task_job(data))
        if data.reaction:
            manager.add(self.build_reaction_job(data, task_created))
        manager.add(self.build_main_job(data, engine, main_job_name, task_created))
        if data.safe_outputs is not None:
            for job in build_safe_output_jobs(data.safe_outputs, main_job_name, data.command):
                manager.add(job)
        for job in self.build_custom_jobs(data):
            manager.add(job)
        return manager

    def build_task_job(self, data: WorkflowData) -> Job:
        """Preamble job gating the workflow on its condition and command access."""
        steps: list[GitHubActionStep] = []
        outputs: dict[str, str] = {}
        if data.command:
            steps += step_builders.team_member_steps(render(command_only_condition(data.command)))
        if data.needs_text_output:
            steps.append(step_builders.compute_text_step())
            outputs["text"] = "${{ steps.compute-text.outputs.text }}"
        if not steps:
            steps.append(step_builders.barrier_step())
        return Job(name="task", if_=data.if_, outputs=outputs, steps=tuple(steps))

    def build_reaction_job(self, data: WorkflowData, task_created: bool) -> Job:
        return Job(
            name="add_reaction",
            if_=render(reaction_condition()),
            permissions={"issues": "write", "pull-requests": "write"},
            needs=("task",) if task_created else (),
            outputs={"reaction_id": "${{ steps.react.outputs.reaction-id }}"},
            steps=(step_builders.reaction_step(data.reaction, data.command),),
        )

    def build_main_job(
        self, data: WorkflowData, engine: AgenticEngine, name: str, task_created: bool
    ) -> Job:
        outputs = (
            {"output": "${{ steps.collect_output.outputs.output }}"}
            if data.safe_outputs is not None
            else {}
        )
        return Job(
            name=name,
            runs_on=data.runs_on,
            permissions=data.permissions,
            needs=("task",) if task_created else (),
            outputs=outputs,
            steps=tuple(self.main_job_steps(data, engine)),
        )

    def main_job_steps(self, data: WorkflowData, engine: AgenticEngine) -> list[GitHubActionStep]:
        """Steps of the agent job, from checkout to post-steps."""
        safe_outputs = data.safe_outputs
        has_safe_outputs = safe_outputs is not None
        log_file = log_file_path(data.name)

        steps = step_builders.custom_steps(list(data.custom_steps)) or [step_builders.checkout_step()]
        steps += step_builders.cache_steps(data.cache)
        steps += engine.installation_steps(data.engine_config, data.network)
        if has_safe_outputs:
            steps.append(step_builders.setup_agent_output_step())

        steps += proxy_setup_steps(data.tools)
        mcp_tools = mcp_tool_names(data.tools)
        if mcp_tools:
            steps.append(step_builders.mcp_setup_step(engine, data.tools, mcp_tools))

        if data.stop_time:
            steps.append(step_builders.safety_checks_step(data.name, data.stop_time))

        instructions = safe_outputs_instructions(safe_outputs) if safe_outputs is not None else ""
        steps += step_builders.prompt_steps(data.markdown, instructions, has_safe_outputs)
        steps += step_builders.aw_info_steps(engine, data.engine_config, data.name)
        steps += engine.execution_steps(
            data.name,
            log_file,
            data.engine_config,
            data.network,
            has_safe_outputs,
            allowed_tools=data.allowed_tools,
            timeout_minutes=data.timeout_minutes,
        )
        steps += step_builders.workflow_complete_steps()

        if safe_outputs is not None:
            steps += step_builders.output_collection_steps(
                safe_outputs_config_json(safe_outputs), safe_outputs.allowed_domains
            )
        output_files = engine.declared_output_files()
        if output_files:
            steps.append(step_builders.engine_output_upload_step(output_files))
        steps += step_builders.access_log_steps(data.tools)

        parse_step = step_builders.log_parsing_step(engine, log_file)
        if parse_step is not None:
            steps.append(parse_step)
        steps.append(step_builders.upload_agent_logs_step(safe_file_name(data.name), log_file))

        if needs_git_commands(safe_outputs):
            steps += step_builders.git_patch_steps()
        steps += step_builders.custom_steps(list(data.post_steps))
        return steps

    def build_custom_jobs(self, data: WorkflowData) -> list[Job]:
        """Jobs declared under `jobs:`; unknown job keys pass through unchanged."""
        jobs: list[Job] = []
        for job_name, settings in data.jobs.items():
            needs = (settings.depends,) if isinstance(settings.depends, str) else tuple(settings.depends)
            jobs.append(
                Job(
                    name=job_name,
                    runs_on=settings.runs_on,
                    if_=settings.if_ or "",
                    needs=needs,
                    steps=tuple(step_builders.custom_steps(settings.steps)),
                    extra=dict(settings.model_extra or {}),
                )
            )
        return jobs

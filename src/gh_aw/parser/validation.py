"""Frontmatter validation with source positions.

validate_frontmatter() combines the pydantic schema with rules the schema
cannot express, and attaches to every violation the span recovered by
FrontmatterLocator. to_diagnostics() turns the violations into positioned
Diagnostic records in document coordinates.

Usage:
    from gh_aw.parser.validation import to_diagnostics, validate_frontmatter

    errors = validate_frontmatter(result.frontmatter, result.yaml_text)
    diagnostics = to_diagnostics(errors, path, content, result.frontmatter_start)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from gh_aw.core.diagnostics import Diagnostic, context_lines
from gh_aw.core.exceptions import EngineNotFoundError
from gh_aw.engines.registry import get_engine_registry
from gh_aw.parser.location import FrontmatterLocator, PathSegment, SourceSpan
from gh_aw.parser.schema import WorkflowFrontmatter

logger = logging.getLogger(__name__)

MAX_TURNS_RANGE = (1, 100)

# pydantic error types whose last location segment is a key absent from the input
NAMED_KEY_ERRORS = frozenset({"missing", "extra_forbidden"})


@dataclass(frozen=True)
class FrontmatterValidationError:
    """One schema violation.

    Attributes:
        path: Dotted path of the offending field, e.g. "engine.max-turns".
        message: What is wrong.
        span: Location in frontmatter coordinates, or None when the field has
            no text (for example a required field that is missing).

    """

    path: str
    message: str
    span: SourceSpan | None = None

    def __str__(self) -> str:
        if self.path:
            return f"validation error at '{self.path}': {self.message}"
        return f"validation error: {self.message}"


def format_path(segments: Sequence[PathSegment]) -> str:
    """Render path segments as "tools[0].name"."""
    text = ""
    for segment in segments:
        if isinstance(segment, int):
            text += f"[{segment}]"
        else:
            text += f".{segment}" if text else str(segment)
    return text


class FrontmatterValidator:
    """Validate one frontmatter block, reusing a single locator."""

    def __init__(self, yaml_text: str) -> None:
        self._locator = FrontmatterLocator(yaml_text)

    def validate(self, frontmatter: dict[str, Any]) -> list[FrontmatterValidationError]:
        """Return every violation, schema errors first, in a stable order."""
        errors = self._schema_errors(frontmatter)
        seen = {e.path for e in errors}
        errors.extend(e for e in self._custom_rules(frontmatter) if e.path not in seen)
        logger.debug("Frontmatter validation found %d error(s)", len(errors))
        return errors

    def _error(self, segments: Sequence[PathSegment], message: str) -> FrontmatterValidationError:
        return FrontmatterValidationError(
            path=format_path(segments),
            message=message,
            span=self._locator.try_locate(segments),
        )

    def _schema_errors(self, frontmatter: dict[str, Any]) -> list[FrontmatterValidationError]:
        try:
            WorkflowFrontmatter.model_validate(frontmatter)
        except ValidationError as e:
            errors: list[FrontmatterValidationError] = []
            seen: set[str] = set()
            for detail in e.errors():
                segments = _data_path(frontmatter, detail["loc"], detail["type"])
                path = format_path(segments)
                if path in seen:
                    continue
                seen.add(path)
                errors.append(self._error(segments, _schema_message(segments, detail)))
            return _most_specific(errors)
        return []

    def _custom_rules(self, frontmatter: dict[str, Any]) -> list[FrontmatterValidationError]:
        errors: list[FrontmatterValidationError] = []

        if "on" not in frontmatter:
            errors.append(FrontmatterValidationError("on", "missing required field 'on'"))

        engine = frontmatter.get("engine")
        engine_id = None
        id_path: list[PathSegment] = ["engine"]
        if isinstance(engine, str):
            engine_id = engine
        elif isinstance(engine, dict) and isinstance(engine.get("id"), str):
            engine_id, id_path = engine["id"], ["engine", "id"]
        if engine_id is not None:
            registry = get_engine_registry()
            try:
                registry.resolve(engine_id)
            except EngineNotFoundError:
                errors.append(
                    self._error(
                        id_path,
                        f"unsupported engine '{engine_id}', must be one of: "
                        f"{', '.join(registry.get_supported_engines())}",
                    )
                )

        for segments, value in (
            (["max-turns"], frontmatter.get("max-turns")),
            (["engine", "max-turns"], engine.get("max-turns") if isinstance(engine, dict) else None),
        ):
            if isinstance(value, bool) or not isinstance(value, int | float):
                continue
            low, high = MAX_TURNS_RANGE
            if not low <= value <= high:
                errors.append(
                    self._error(
                        segments,
                        f"max-turns must be between {low} and {high}, got {int(value)}",
                    )
                )

        tools = frontmatter.get("tools")
        if isinstance(tools, list):
            for i, tool in enumerate(tools):
                if isinstance(tool, dict) and "name" not in tool:
                    errors.append(self._error(["tools", i, "name"], "tool must have a 'name' field"))

        if isinstance(engine, dict) and "permissions" in engine:
            if str(engine.get("id", "")).startswith("codex"):
                errors.append(
                    self._error(
                        ["engine", "permissions"],
                        "engine permissions are not supported for codex engine. "
                        "Only Claude engine supports permissions configuration",
                    )
                )

        return errors


def _data_path(data: Any, loc: Sequence[Any], kind: str) -> list[PathSegment]:
    # Union and validator tags appear in pydantic locations; keep only
    # segments that address the input data
    segments: list[PathSegment] = []
    current = data
    for i, segment in enumerate(loc):
        if isinstance(current, dict) and segment in current:
            segments.append(segment)
            current = current[segment]
        elif isinstance(current, list) and isinstance(segment, int) and 0 <= segment < len(current):
            segments.append(segment)
            current = current[segment]
        elif kind in NAMED_KEY_ERRORS and isinstance(current, dict) and i == len(loc) - 1:
            # Missing or unknown key reported relative to the current mapping
            segments.append(segment)
    return segments


def _most_specific(errors: list[FrontmatterValidationError]) -> list[FrontmatterValidationError]:
    # A union reports one error per member; drop those a deeper error explains
    paths = [e.path for e in errors]
    return [
        e
        for e in errors
        if not any(
            other.startswith(f"{e.path}.") or other.startswith(f"{e.path}[") for other in paths
        )
    ]


def _schema_message(segments: Sequence[PathSegment], detail: Any) -> str:
    kind = detail["type"]
    name = segments[-1] if segments else ""
    if kind == "extra_forbidden":
        return f"unknown property '{name}'"
    if kind == "missing":
        return f"missing required field '{name}'"
    message = detail["msg"]
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return f"'{format_path(segments)}': {message}" if segments else message


def validate_frontmatter(
    frontmatter: dict[str, Any], yaml_text: str
) -> list[FrontmatterValidationError]:
    """Validate parsed frontmatter against the workflow schema.

    Args:
        frontmatter: Parsed frontmatter mapping.
        yaml_text: Raw frontmatter text, used to recover spans.

    Returns:
        Violations in a stable order; empty when the frontmatter is valid.

    """
    return FrontmatterValidator(yaml_text).validate(frontmatter)


def hint_for(error: FrontmatterValidationError) -> str:
    """Suggest a fix for common violations, keyed by the error path."""
    if "engine" in error.path and "max-turns" not in error.path:
        engines = get_engine_registry().get_supported_engines()
        return f"Supported engines: {', '.join(engines)}"
    if "max-turns" in error.path:
        low, high = MAX_TURNS_RANGE
        return f"max-turns should be a number between {low} and {high}"
    if "tools" in error.path and "name" in error.message:
        return "Each tool must have a 'name' field specifying the tool identifier"
    if error.path == "on":
        return "Add an 'on' field to specify when the workflow should run (e.g., 'on: push')"
    return ""


def to_diagnostics(
    errors: Sequence[FrontmatterValidationError],
    file: str,
    content: str,
    frontmatter_start: int,
) -> list[Diagnostic]:
    """Convert violations to diagnostics positioned in the full document.

    Spans are shifted by frontmatter_start - 1. A violation without a span is
    reported at the first frontmatter line, column 1.
    """
    offset = frontmatter_start - 1
    diagnostics: list[Diagnostic] = []
    for error in errors:
        span = error.span.shifted(offset) if error.span is not None else None
        line = span.start_line if span is not None else frontmatter_start
        column = span.start_column if span is not None else 1
        diagnostics.append(
            Diagnostic(
                file=file,
                line=line,
                column=column,
                message=error.message,
                hint=hint_for(error),
                context=context_lines(content, line),
                span=span,
            )
        )
    return diagnostics

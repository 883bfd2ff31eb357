"""Workflow document parsing: frontmatter, @include directives and tool merging.

A workflow document is markdown with an optional YAML frontmatter block:

    ---
    on: issues
    engine: claude
    ---
    # Triage issues

    @include shared/tools.md
    Read the issue and label it.

Included files contribute their markdown (optionally one `#Section`), their
`tools` (merged into the main tools) and their `engine` (checked for
conflicts by the compiler).
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gh_aw.core.diagnostics import Diagnostic, context_lines
from gh_aw.core.exceptions import CompilerError, FrontmatterParseError, SemanticError
from gh_aw.core.yamlutil import load_yaml
from gh_aw.engines.mcp import MCP_TYPES

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"

# Line number of the first frontmatter line in the full document
FRONTMATTER_START_LINE = 2

MAX_INCLUDE_DEPTH = 10


_INCLUDE_PATTERN = re.compile(r"^@include(\?)?\s+(.+)$")
_HEADER_LEVEL_PATTERN = re.compile(r"^(#{1,3})[ \t]+")


@dataclass(frozen=True)
class FrontmatterResult:
    """Parsed frontmatter and markdown body of one document.

    Attributes:
        frontmatter: Parsed YAML mapping; empty when the document has none.
        markdown: Body text after the closing delimiter, stripped.
        frontmatter_lines: Raw frontmatter lines, without delimiters.
        frontmatter_start: Document line of the first frontmatter line,
            or 0 when there is no frontmatter.

    """

    frontmatter: dict[str, Any] = field(default_factory=dict)
    markdown: str = ""
    frontmatter_lines: tuple[str, ...] = ()
    frontmatter_start: int = 0

    @property
    def yaml_text(self) -> str:
        """Raw frontmatter YAML as written in the document."""
        return "\n".join(self.frontmatter_lines)


def extract_frontmatter(content: str, file: str = "<string>") -> FrontmatterResult:
    """Split a document into its YAML frontmatter and markdown body.

    Args:
        content: Full document text.
        file: Path used in diagnostics.

    Returns:
        FrontmatterResult. Documents that do not start with `---` return the
        whole content as markdown with an empty frontmatter.

    Raises:
        FrontmatterParseError: If the block is not closed, is not valid YAML,
            or is not a mapping.

    """
    lines = content.split("\n")
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return FrontmatterResult(markdown=content)

    end_index = next(
        (i for i in range(1, len(lines)) if lines[i].strip() == FRONTMATTER_DELIMITER),
        -1,
    )
    if end_index == -1:
        raise FrontmatterParseError(
            "frontmatter not properly closed",
            [
                Diagnostic(
                    file=file,
                    line=1,
                    column=1,
                    message="frontmatter not properly closed",
                    hint="add a closing '---' line after the frontmatter",
                    context=context_lines(content, 1),
                )
            ],
        )

    frontmatter_lines = lines[1:end_index]
    yaml_text = "\n".join(frontmatter_lines)

    try:
        data = load_yaml(yaml_text)
    except yaml.YAMLError as e:
        raise _yaml_parse_error(e, file, content) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterParseError(
            f"frontmatter must be a mapping, got {type(data).__name__}",
            [
                Diagnostic(
                    file=file,
                    line=FRONTMATTER_START_LINE,
                    column=1,
                    message=f"frontmatter must be a mapping, got {type(data).__name__}",
                    hint="check YAML syntax in frontmatter section",
                    context=context_lines(content, FRONTMATTER_START_LINE),
                )
            ],
        )

    markdown = "\n".join(lines[end_index + 1 :])
    return FrontmatterResult(
        frontmatter=data,
        markdown=markdown.strip(),
        frontmatter_lines=tuple(frontmatter_lines),
        frontmatter_start=FRONTMATTER_START_LINE,
    )


def _yaml_parse_error(error: yaml.YAMLError, file: str, content: str) -> FrontmatterParseError:
    message = str(error)
    line, column = FRONTMATTER_START_LINE, 1
    if isinstance(error, yaml.MarkedYAMLError):
        mark = error.problem_mark or error.context_mark
        if mark is not None:
            line = FRONTMATTER_START_LINE + mark.line
            column = mark.column + 1
        message = error.problem or error.context or message

    text = f"frontmatter parsing failed: {message}"
    return FrontmatterParseError(
        text,
        [
            Diagnostic(
                file=file,
                line=line,
                column=column,
                message=text,
                hint="check YAML syntax in frontmatter section",
                context=context_lines(content, line),
            )
        ],
    )


def extract_markdown_section(content: str, section_name: str) -> str:
    """Extract one H1-H3 section, up to the next header of the same or higher level.

    Raises:
        CompilerError: If no header with that name exists.

    """
    header_pattern = re.compile(r"^(#{1,3})[ \t]+" + re.escape(section_name) + r"[ \t]*$")
    collected: list[str] = []
    section_level = 0

    for line in content.split("\n"):
        if not collected:
            match = header_pattern.match(line)
            if match:
                section_level = len(match.group(1))
                collected.append(line)
            continue
        level = _HEADER_LEVEL_PATTERN.match(line)
        if level and len(level.group(1)) <= section_level:
            break
        collected.append(line)

    if not collected:
        raise CompilerError(f"section '{section_name}' not found")
    return "\n".join(collected).strip()


def extract_workflow_name(markdown: str, file_path: str | Path) -> str:
    """Return the first H1 heading, or a title derived from the file name.

    Examples:
        >>> extract_workflow_name("Intro\\n# Weekly Research\\n", "x.md")
        'Weekly Research'
        >>> extract_workflow_name("no heading", "daily-issue-triage.md")
        'Daily Issue Triage'

    """
    for line in markdown.split("\n"):
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip()

    stem = Path(file_path).stem.replace("-", " ")
    return " ".join(word[:1].upper() + word[1:] for word in stem.split())


# =============================================================================
# @include expansion
# =============================================================================


@dataclass(frozen=True)
class IncludeExpansion:
    """Result of expanding @include directives.

    Attributes:
        markdown: Body with every directive replaced by the included text.
        tools: Tools merged from all included frontmatters.
        engines: Engine settings of included files, in include order.
        files: Resolved paths of the included files.

    """

    markdown: str
    tools: dict[str, Any] = field(default_factory=dict)
    engines: tuple[Any, ...] = ()
    files: tuple[Path, ...] = ()


def expand_includes(markdown: str, base_dir: Path) -> IncludeExpansion:
    """Recursively expand `@include path[#Section]` and `@include? path` lines.

    Paths resolve against base_dir. A missing optional include is skipped; a
    missing required include fails compilation. Nested includes are expanded
    until no directive remains or MAX_INCLUDE_DEPTH passes have run.

    Raises:
        CompilerError: If a required include is missing or cannot be read.
        SemanticError: If included tools conflict with each other.

    """
    current = markdown
    tools: dict[str, Any] = {}
    engines: list[Any] = []
    files: list[Path] = []

    for _ in range(MAX_INCLUDE_DEPTH):
        processed, found = _process_includes(current, base_dir)
        for path, result in found:
            files.append(path)
            if "tools" in result.frontmatter and isinstance(result.frontmatter["tools"], dict):
                tools = merge_tools(tools, result.frontmatter["tools"])
            if "engine" in result.frontmatter:
                engines.append(result.frontmatter["engine"])
        if processed == current:
            break
        current = processed

    return IncludeExpansion(
        markdown=current, tools=tools, engines=tuple(engines), files=tuple(files)
    )


def _process_includes(
    content: str, base_dir: Path
) -> tuple[str, list[tuple[Path, FrontmatterResult]]]:
    output: list[str] = []
    found: list[tuple[Path, FrontmatterResult]] = []

    for line in content.split("\n"):
        match = _INCLUDE_PATTERN.match(line)
        if not match:
            output.append(line)
            continue

        optional = match.group(1) == "?"
        include_path, _, section = match.group(2).strip().partition("#")
        full_path = base_dir / include_path

        if not full_path.is_file():
            if optional:
                logger.info(
                    "Optional include file not found: %s. "
                    "You can create this file to configure the workflow.",
                    include_path,
                )
                continue
            raise CompilerError(
                f"failed to resolve required include '{include_path}': "
                f"file not found: {full_path}"
            )

        try:
            text = full_path.read_text(encoding="utf-8")
        except OSError as e:
            raise CompilerError(f"failed to read included file '{full_path}': {e}") from e

        result = extract_frontmatter(text, str(full_path))
        unexpected = sorted(k for k in result.frontmatter if k not in ("tools", "engine"))
        if unexpected:
            logger.warning(
                "Ignoring unexpected frontmatter fields in %s: %s",
                full_path,
                ", ".join(unexpected),
            )

        body = result.markdown
        if section:
            try:
                body = extract_markdown_section(body, section)
            except CompilerError as e:
                raise CompilerError(
                    f"failed to extract section '{section}' from {full_path}: {e}"
                ) from e

        logger.debug("Included %s%s", full_path, f"#{section}" if section else "")
        found.append((full_path, result))
        output.append(body.strip("\n"))

    return "\n".join(output), found


# =============================================================================
# Tool merging
# =============================================================================


def merge_tools(base: dict[str, Any], additional: dict[str, Any]) -> dict[str, Any]:
    """Merge two tool maps without modifying either.

    Lists are unioned in order without duplicates; `allowed` lists inside
    tool settings are unioned the same way; two MCP server definitions under
    one name must agree on every field except `allowed`; other nested
    mappings merge recursively; anything else is overwritten by additional.

    Raises:
        SemanticError: If two MCP definitions of one tool conflict.

    """
    result = copy.deepcopy(base)

    for key, new_value in additional.items():
        if key not in result:
            result[key] = copy.deepcopy(new_value)
            continue

        existing = result[key]
        if isinstance(existing, list) and isinstance(new_value, list):
            result[key] = _merge_allowed(existing, new_value)
        elif isinstance(existing, dict) and isinstance(new_value, dict):
            if _mcp_type(existing) in MCP_TYPES and _mcp_type(new_value) in MCP_TYPES:
                try:
                    result[key] = _merge_mcp_tools(existing, new_value)
                except ValueError as e:
                    raise SemanticError(f"MCP tool conflict for '{key}': {e}") from e
            elif "allowed" in existing and "allowed" in new_value:
                merged = {**existing, **copy.deepcopy(new_value)}
                merged["allowed"] = _merge_allowed(existing["allowed"], new_value["allowed"])
                result[key] = merged
            else:
                result[key] = merge_tools(existing, new_value)
        else:
            result[key] = copy.deepcopy(new_value)

    return result


def _mcp_type(tool: dict[str, Any]) -> str | None:
    mcp = tool.get("mcp")
    if isinstance(mcp, str):
        try:
            mcp = json.loads(mcp)
        except json.JSONDecodeError:
            return None
    if isinstance(mcp, dict) and isinstance(mcp.get("type"), str):
        return mcp["type"]
    return None


def _merge_allowed(existing: Any, new: Any) -> list[str]:
    merged: list[str] = []
    for items in (existing, new):
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, str) and item not in merged:
                merged.append(item)
    return merged


def _merge_mcp_tools(existing: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(existing)
    for key, value in new.items():
        if key not in result:
            result[key] = copy.deepcopy(value)
            continue
        current = result[key]
        if key == "allowed" and isinstance(current, list) and isinstance(value, list):
            result[key] = _merge_allowed(current, value)
        elif key == "mcp" and isinstance(current, dict) and isinstance(value, dict):
            result[key] = _merge_mcp_tools(current, value)
        elif json.dumps(current, sort_keys=True) != json.dumps(value, sort_keys=True):
            raise ValueError(
                f"conflicting values for '{key}': existing={current}, new={value}"
            )
    return result

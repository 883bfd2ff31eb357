"""Source-span recovery for frontmatter paths.

Schema validators report abstract structural paths ("engine.max-turns",
"/tools/1", ("safe-outputs", "create-issue", "max")), not text coordinates.
FrontmatterLocator indexes the raw frontmatter text once and maps such paths
back to line/column ranges. A path without corresponding text (for example a
required field that is entirely absent) raises PathNotFoundError; callers
treat that as "no span", never as a guess.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

import yaml

from gh_aw.core.exceptions import GhAwError
from gh_aw.core.yamlutil import compose_yaml

logger = logging.getLogger(__name__)

PathSegment = str | int

_SEGMENT_PATTERN = re.compile(r"([^.\[\]]+)|\[([^\]]+)\]")


@dataclass(frozen=True)
class SourceSpan:
    """1-based inclusive start and exclusive-end positions in source text."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def shifted(self, line_offset: int) -> SourceSpan:
        """Return the span moved down by line_offset lines."""
        return SourceSpan(
            self.start_line + line_offset,
            self.start_column,
            self.end_line + line_offset,
            self.end_column,
        )


class PathNotFoundError(GhAwError, LookupError):
    """A path could not be mapped to source text.

    Attributes:
        path: Normalized path segments that were looked up.

    """

    def __init__(self, message: str, path: Sequence[PathSegment] = ()) -> None:
        super().__init__(message)
        self.path = tuple(path)


def normalize_path(path: str | Sequence[PathSegment]) -> list[PathSegment]:
    """Split a structural path into mapping keys and sequence indices.

    Accepts dotted paths with bracket indices ("tools.github.allowed[0]"),
    JSONPath-style prefixes ("$.on"), JSON pointers ("/tools/1") and
    already-split sequences such as pydantic error locations.

    Examples:
        >>> normalize_path("$.safe-outputs.create-issue.labels[1]")
        ['safe-outputs', 'create-issue', 'labels', 1]
        >>> normalize_path("/tools/1")
        ['tools', 1]

    """
    if not isinstance(path, str):
        return list(path)

    text = path.strip()
    if text.startswith("$"):
        text = text[1:].lstrip(".")

    if text.startswith("/"):
        segments: list[PathSegment] = []
        for raw in text[1:].split("/"):
            if raw == "":
                continue
            token = raw.replace("~1", "/").replace("~0", "~")
            segments.append(int(token) if token.isdigit() else token)
        return segments

    segments = []
    for name, index in _SEGMENT_PATTERN.findall(text):
        if name:
            segments.append(name)
        else:
            index = index.strip().strip("'\"")
            segments.append(int(index) if index.isdigit() else index)
    return segments


class FrontmatterLocator:
    """Map structural paths in frontmatter YAML to source spans.

    The YAML text is composed once at construction. A parse failure is cached
    and re-raised as PathNotFoundError by every lookup.

    Example:
        >>> locator = FrontmatterLocator("on: push\\nmax-turns: 0\\n")
        >>> locator.locate("max-turns")
        SourceSpan(start_line=2, start_column=12, end_line=2, end_column=13)

    """

    def __init__(self, yaml_text: str) -> None:
        self._root: yaml.Node | None = None
        self._error: str | None = None

        if not yaml_text.strip():
            self._error = "frontmatter YAML is empty"
            return
        try:
            self._root = compose_yaml(yaml_text)
        except yaml.YAMLError as e:
            logger.debug("Frontmatter locator could not parse YAML: %s", e)
            self._error = f"failed to parse frontmatter YAML: {e}"
            return
        if self._root is None:
            self._error = "frontmatter YAML is empty"

    def locate(self, path: str | Sequence[PathSegment]) -> SourceSpan:
        """Resolve a structural path to the span of its value.

        Args:
            path: Path in any form accepted by normalize_path().

        Returns:
            The span of the value node. For block collections nested under a
            key, the span starts at the key so it lands on the field's line.

        Raises:
            PathNotFoundError: If the YAML failed to parse or the path does not
                exist in the text.

        """
        segments = normalize_path(path)
        if self._error is not None or self._root is None:
            raise PathNotFoundError(self._error or "frontmatter YAML is empty", segments)

        node: yaml.Node = self._root
        key_node: yaml.Node | None = None
        for segment in segments:
            node, key_node = self._child(node, segment, segments)

        start = node.start_mark
        if key_node is not None and isinstance(node, yaml.CollectionNode):
            if node.start_mark.line != key_node.start_mark.line:
                start = key_node.start_mark
        end = self._end_mark(node)
        return SourceSpan(start.line + 1, start.column + 1, end.line + 1, end.column + 1)

    def try_locate(self, path: str | Sequence[PathSegment]) -> SourceSpan | None:
        """Like locate(), but return None when there is no source text."""
        try:
            return self.locate(path)
        except PathNotFoundError:
            return None

    @staticmethod
    def _child(
        node: yaml.Node, segment: PathSegment, segments: Sequence[PathSegment]
    ) -> tuple[yaml.Node, yaml.Node | None]:
        if isinstance(node, yaml.MappingNode):
            for key, value in node.value:
                if isinstance(key, yaml.ScalarNode) and key.value == str(segment):
                    return value, key
        elif isinstance(node, yaml.SequenceNode) and isinstance(segment, int):
            if 0 <= segment < len(node.value):
                return node.value[segment], None
        raise PathNotFoundError(
            f"path not found: {'.'.join(str(s) for s in segments)}", segments
        )

    @classmethod
    def _end_mark(cls, node: yaml.Node) -> yaml.Mark:
        # Block collections end where the next token starts; use the last child
        if isinstance(node, yaml.MappingNode) and node.value and not node.flow_style:
            return cls._end_mark(node.value[-1][1])
        if isinstance(node, yaml.SequenceNode) and node.value and not node.flow_style:
            return cls._end_mark(node.value[-1])
        return node.end_mark

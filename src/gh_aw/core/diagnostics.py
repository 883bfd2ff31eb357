"""Positioned compiler diagnostics.

Diagnostics carry a file position, a message, an optional hint, and the
surrounding source lines so that errors can be printed the way editors and
compilers usually do:

    workflow.md:4:12: error: max-turns must be between 1 and 100, got 0
       3 | engine: claude
       4 | max-turns: 0
         |            ^
       5 | ---
    hint: max-turns should be a number between 1 and 100
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gh_aw.parser.location import SourceSpan


@dataclass(frozen=True)
class Diagnostic:
    """One positioned compiler message.

    Attributes:
        file: Path of the document the diagnostic refers to.
        line: 1-based line in the full document.
        column: 1-based column.
        message: Human-readable message.
        kind: "error" or "warning".
        hint: Optional remedy shown after the context lines.
        context: (line number, text) pairs surrounding the position.
        span: Source span in document coordinates when one was recovered.

    """

    file: str
    line: int
    column: int
    message: str
    kind: str = "error"
    hint: str = ""
    context: tuple[tuple[int, str], ...] = field(default_factory=tuple)
    span: SourceSpan | None = None

    def format(self) -> str:
        """Render the diagnostic as plain text."""
        lines = [f"{self.file}:{self.line}:{self.column}: {self.kind}: {self.message}"]
        if self.context:
            width = len(str(max(n for n, _ in self.context)))
            for number, text in self.context:
                lines.append(f"  {number:>{width}} | {text}")
                if number == self.line:
                    pad = " " * max(self.column - 1, 0)
                    lines.append(f"  {' ' * width} | {pad}^")
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


def context_lines(content: str, line: int, before: int = 2, after: int = 2) -> tuple[tuple[int, str], ...]:
    """Collect the lines around a 1-based line number of a document."""
    all_lines = content.split("\n")
    start = max(line - before, 1)
    end = min(line + after, len(all_lines))
    return tuple((n, all_lines[n - 1]) for n in range(start, end + 1))

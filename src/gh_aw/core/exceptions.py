"""Exception hierarchy for gh-aw.

All errors raised by the compiler derive from GhAwError so callers can catch
a single type. Compile failures carry every positioned diagnostic that was
found for the document.
"""

from __future__ import annotations

from collections.abc import Iterable

from gh_aw.core.diagnostics import Diagnostic


class GhAwError(Exception):
    """Base exception for all gh-aw errors."""

    pass


class ConfigError(GhAwError):
    """Invalid project settings (.gh-aw.yaml)."""

    pass


class CompilerError(GhAwError):
    """Fatal compilation failure.

    Attributes:
        diagnostics: Positioned diagnostics collected for the document.
            Empty when the failure could not be tied to a source position.

    """

    def __init__(self, message: str, diagnostics: Iterable[Diagnostic] = ()) -> None:
        """Initialize CompilerError.

        Args:
            message: Summary of the failure.
            diagnostics: Positioned diagnostics to report with it.

        """
        super().__init__(message)
        self.message = message
        self.diagnostics = list(diagnostics)

    def __str__(self) -> str:
        if not self.diagnostics:
            return self.message
        return "\n".join(d.format() for d in self.diagnostics)


class FrontmatterParseError(CompilerError):
    """The frontmatter block is not valid YAML or is not terminated."""

    pass


class FrontmatterValidationFailed(CompilerError):
    """The frontmatter violates the workflow schema.

    One diagnostic is attached per violation.
    """

    pass


class SemanticError(CompilerError):
    """Frontmatter is well-formed but cannot be compiled.

    Raised for unknown or conflicting engines, capabilities the selected
    engine does not support, invalid stop-after values, malformed custom
    steps and unauthorized expressions in the prompt body.
    """

    pass


class EngineNotFoundError(GhAwError, KeyError):
    """Registry lookup failed for an engine identifier.

    Attributes:
        engine_id: The identifier that could not be resolved.

    """

    def __init__(self, message: str, engine_id: str) -> None:
        super().__init__(message)
        self.engine_id = engine_id

    def __str__(self) -> str:
        return str(self.args[0])


class JobGraphError(GhAwError):
    """The assembled job graph is invalid.

    Raised for empty or duplicate job names, dependencies on missing jobs and
    dependency cycles. These are internal invariant violations: compilation
    aborts instead of emitting an invalid workflow.

    Attributes:
        job: Name of the job where the problem was detected.

    """

    def __init__(self, message: str, job: str | None = None) -> None:
        super().__init__(message)
        self.job = job

"""Workflow document parsing and frontmatter validation.

This module provides:
- Frontmatter extraction and @include expansion
- FrontmatterLocator mapping structural paths to source spans
- Schema validation producing positioned diagnostics
"""

from gh_aw.parser.frontmatter import (
    FrontmatterResult,
    IncludeExpansion,
    expand_includes,
    extract_frontmatter,
    extract_markdown_section,
    extract_workflow_name,
    merge_tools,
)
from gh_aw.parser.location import FrontmatterLocator, PathNotFoundError, SourceSpan, normalize_path
from gh_aw.parser.validation import (
    FrontmatterValidationError,
    FrontmatterValidator,
    to_diagnostics,
    validate_frontmatter,
)

__all__ = [
    # Frontmatter
    "FrontmatterResult",
    "IncludeExpansion",
    "expand_includes",
    "extract_frontmatter",
    "extract_markdown_section",
    "extract_workflow_name",
    "merge_tools",
    # Locations
    "FrontmatterLocator",
    "PathNotFoundError",
    "SourceSpan",
    "normalize_path",
    # Validation
    "FrontmatterValidationError",
    "FrontmatterValidator",
    "to_diagnostics",
    "validate_frontmatter",
]

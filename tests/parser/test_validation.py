"""Tests for frontmatter schema validation and positioned diagnostics."""

from typing import Any

from gh_aw.parser.frontmatter import extract_frontmatter
from gh_aw.parser.location import SourceSpan
from gh_aw.parser.validation import (
    FrontmatterValidationError,
    format_path,
    hint_for,
    to_diagnostics,
    validate_frontmatter,
)


def _validate(content: str) -> tuple[list[FrontmatterValidationError], Any]:
    result = extract_frontmatter(content, "wf.md")
    return validate_frontmatter(result.frontmatter, result.yaml_text), result


# === Schema rules ===


class TestValidateFrontmatter:
    """Tests for validate_frontmatter()."""

    def test_valid_frontmatter(self) -> None:
        errors, _ = _validate(
            "---\n"
            "on:\n"
            "  issues:\n"
            "    types: [opened]\n"
            "permissions:\n"
            "  issues: write\n"
            "engine:\n"
            "  id: claude\n"
            "  max-turns: 5\n"
            "tools:\n"
            "  github:\n"
            "    allowed: [get_issue]\n"
            "safe-outputs:\n"
            "  create-issue:\n"
            "  add-issue-label:\n"
            "    allowed: [bug]\n"
            "timeout_minutes: 10\n"
            "---\n"
            "# Title\n"
        )
        assert errors == []

    def test_unknown_property(self) -> None:
        errors, _ = _validate("---\non: push\nbogus: 1\n---\n# T\n")
        assert len(errors) == 1
        assert errors[0].path == "bogus"
        assert errors[0].message == "unknown property 'bogus'"
        assert errors[0].span is not None
        assert errors[0].span.start_line == 2

    def test_nested_unknown_property(self) -> None:
        errors, _ = _validate(
            "---\non: push\nsafe-outputs:\n  create-issue:\n    bogus: 1\n---\n# T\n"
        )
        assert [e.path for e in errors] == ["safe-outputs.create-issue.bogus"]

    def test_max_turns_out_of_range(self) -> None:
        errors, _ = _validate("---\non: push\nmax-turns: 0\n---\n# T\n")
        assert len(errors) == 1
        assert errors[0].message == "max-turns must be between 1 and 100, got 0"
        assert errors[0].span == SourceSpan(2, 12, 2, 13)

    def test_engine_max_turns_out_of_range(self) -> None:
        errors, _ = _validate("---\non: push\nengine:\n  id: claude\n  max-turns: 101\n---\n# T\n")
        assert [e.path for e in errors] == ["engine.max-turns"]
        assert "got 101" in errors[0].message

    def test_engine_max_turns_wrong_type(self) -> None:
        errors, _ = _validate("---\non: push\nengine:\n  id: claude\n  max-turns: many\n---\n# T\n")
        assert errors[0].path == "engine.max-turns"
        assert errors[0].message.startswith("'engine.max-turns':")

    def test_union_member_names_not_in_path(self) -> None:
        errors, _ = _validate("---\non: push\npermissions:\n  contents: 1\n---\n# T\n")
        assert [e.path for e in errors] == ["permissions.contents"]
        assert errors[0].span == SourceSpan(3, 13, 3, 14)

    def test_wrong_scalar_for_union_reported_once(self) -> None:
        errors, _ = _validate("---\non: push\npermissions: 5\n---\n# T\n")
        assert [e.path for e in errors] == ["permissions"]
        assert errors[0].span is not None

    def test_missing_on_has_no_span(self) -> None:
        """A missing required field is reported without a guessed span."""
        errors, _ = _validate("---\nengine: claude\n---\n# T\n")
        assert len(errors) == 1
        assert errors[0].path == "on"
        assert errors[0].span is None

    def test_unknown_engine(self) -> None:
        errors, _ = _validate("---\non: push\nengine: nope\n---\n# T\n")
        assert len(errors) == 1
        assert errors[0].path == "engine"
        assert errors[0].message.startswith("unsupported engine 'nope', must be one of: ")
        assert "claude" in errors[0].message

    def test_engine_prefix_is_accepted(self) -> None:
        errors, _ = _validate("---\non: push\nengine: codex-experimental\n---\n# T\n")
        assert errors == []

    def test_tool_list_entry_needs_name(self) -> None:
        errors, _ = _validate("---\non: push\ntools:\n  - allowed: [ls]\n---\n# T\n")
        assert [e.path for e in errors] == ["tools[0].name"]
        assert errors[0].message == "tool must have a 'name' field"

    def test_codex_engine_permissions_rejected(self) -> None:
        errors, _ = _validate(
            "---\non: push\nengine:\n  id: codex\n  permissions:\n    network: {}\n---\n# T\n"
        )
        assert [e.path for e in errors] == ["engine.permissions"]
        assert "not supported for codex engine" in errors[0].message

    def test_errors_are_stable(self) -> None:
        """The same document always yields the same ordered violations."""
        content = "---\nbogus: 1\nmax-turns: 0\nengine: nope\n---\n# T\n"
        first, _ = _validate(content)
        second, _ = _validate(content)
        assert first == second
        assert [e.path for e in first] == ["bogus", "on", "engine", "max-turns"]


class TestFormatPath:
    def test_mixed_segments(self) -> None:
        assert format_path(["tools", 0, "name"]) == "tools[0].name"

    def test_empty(self) -> None:
        assert format_path([]) == ""


# === Diagnostics ===


class TestToDiagnostics:
    """Tests for to_diagnostics()."""

    def test_positions_in_document_coordinates(self) -> None:
        content = "---\non: push\nmax-turns: 0\n---\n# T\n"
        errors, result = _validate(content)
        diagnostics = to_diagnostics(errors, "wf.md", content, result.frontmatter_start)
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert (diagnostic.line, diagnostic.column) == (3, 12)
        assert diagnostic.hint == "max-turns should be a number between 1 and 100"
        assert diagnostic.format().startswith(
            "wf.md:3:12: error: max-turns must be between 1 and 100, got 0"
        )

    def test_spanless_error_at_first_frontmatter_line(self) -> None:
        content = "---\nengine: claude\n---\n# T\n"
        errors, result = _validate(content)
        diagnostic = to_diagnostics(errors, "wf.md", content, result.frontmatter_start)[0]
        assert (diagnostic.line, diagnostic.column) == (2, 1)
        assert diagnostic.span is None
        assert "Add an 'on' field" in diagnostic.hint


class TestHints:
    def test_engine_hint_lists_engines(self) -> None:
        hint = hint_for(FrontmatterValidationError("engine", "unsupported engine 'x'"))
        assert hint.startswith("Supported engines: ")
        assert "codex" in hint

    def test_tool_name_hint(self) -> None:
        hint = hint_for(FrontmatterValidationError("tools[0].name", "tool must have a 'name' field"))
        assert "'name' field" in hint

    def test_no_hint(self) -> None:
        assert hint_for(FrontmatterValidationError("permissions", "bad")) == ""

    def test_str(self) -> None:
        error = FrontmatterValidationError("on", "missing required field 'on'")
        assert str(error) == "validation error at 'on': missing required field 'on'"

"""Tests for frontmatter extraction, @include expansion and tool merging."""

from pathlib import Path

import pytest

from gh_aw.core.exceptions import CompilerError, FrontmatterParseError, SemanticError
from gh_aw.parser.frontmatter import (
    FRONTMATTER_START_LINE,
    expand_includes,
    extract_frontmatter,
    extract_markdown_section,
    extract_workflow_name,
    merge_tools,
)

# === Extraction ===


class TestExtractFrontmatter:
    """Tests for extract_frontmatter()."""

    def test_splits_frontmatter_and_markdown(self) -> None:
        content = "---\non: push\nengine: claude\n---\n\n# Title\n\nBody\n"
        result = extract_frontmatter(content)
        assert result.frontmatter == {"on": "push", "engine": "claude"}
        assert result.markdown == "# Title\n\nBody"
        assert result.frontmatter_lines == ("on: push", "engine: claude")
        assert result.frontmatter_start == FRONTMATTER_START_LINE
        assert result.yaml_text == "on: push\nengine: claude"

    def test_no_frontmatter(self) -> None:
        """Documents without a leading delimiter are all markdown."""
        result = extract_frontmatter("# Just markdown\n")
        assert result.frontmatter == {}
        assert result.markdown == "# Just markdown\n"
        assert result.frontmatter_start == 0

    def test_empty_frontmatter(self) -> None:
        result = extract_frontmatter("---\n---\n# Title\n")
        assert result.frontmatter == {}
        assert result.markdown == "# Title"

    def test_unclosed_frontmatter(self) -> None:
        with pytest.raises(FrontmatterParseError) as exc_info:
            extract_frontmatter("---\non: push\n# Title\n", "wf.md")
        assert "not properly closed" in exc_info.value.message
        diagnostic = exc_info.value.diagnostics[0]
        assert (diagnostic.file, diagnostic.line, diagnostic.column) == ("wf.md", 1, 1)

    def test_invalid_yaml_position(self) -> None:
        """YAML errors are reported in document coordinates."""
        content = "---\non: push\ntools: [unclosed\n---\n# Title\n"
        with pytest.raises(FrontmatterParseError) as exc_info:
            extract_frontmatter(content, "wf.md")
        diagnostic = exc_info.value.diagnostics[0]
        assert diagnostic.message.startswith("frontmatter parsing failed")
        assert diagnostic.line >= FRONTMATTER_START_LINE
        assert diagnostic.hint == "check YAML syntax in frontmatter section"

    def test_non_mapping_frontmatter(self) -> None:
        with pytest.raises(FrontmatterParseError) as exc_info:
            extract_frontmatter("---\n- a\n- b\n---\n# Title\n")
        assert "must be a mapping, got list" in exc_info.value.message

    def test_on_key_stays_string(self) -> None:
        result = extract_frontmatter("---\non:\n  issues:\n    types: [opened]\n---\nx\n")
        assert "on" in result.frontmatter
        assert result.frontmatter["on"] == {"issues": {"types": ["opened"]}}


class TestExtractWorkflowName:
    """Tests for extract_workflow_name()."""

    def test_first_h1(self) -> None:
        markdown = "Intro\n## Sub\n# Weekly Research\n# Second\n"
        assert extract_workflow_name(markdown, "x.md") == "Weekly Research"

    def test_falls_back_to_file_name(self) -> None:
        assert extract_workflow_name("no heading", "daily-issue-triage.md") == "Daily Issue Triage"

    def test_h2_is_not_a_title(self) -> None:
        assert extract_workflow_name("## Not a title", "/a/b/my-flow.md") == "My Flow"


class TestExtractMarkdownSection:
    """Tests for extract_markdown_section()."""

    CONTENT = "# Top\nintro\n## Setup\nstep one\n### Detail\nmore\n## Usage\nuse it\n"

    def test_section_until_same_level(self) -> None:
        section = extract_markdown_section(self.CONTENT, "Setup")
        assert section == "## Setup\nstep one\n### Detail\nmore"

    def test_missing_section(self) -> None:
        with pytest.raises(CompilerError) as exc_info:
            extract_markdown_section(self.CONTENT, "Nope")
        assert "section 'Nope' not found" in str(exc_info.value)


# === Includes ===


class TestExpandIncludes:
    """Tests for expand_includes()."""

    def test_replaces_directive(self, tmp_path: Path) -> None:
        (tmp_path / "shared.md").write_text("Shared text\n")
        expansion = expand_includes("Before\n@include shared.md\nAfter", tmp_path)
        assert expansion.markdown == "Before\nShared text\nAfter"
        assert expansion.files == (tmp_path / "shared.md",)

    def test_collects_tools_and_engines(self, tmp_path: Path) -> None:
        (tmp_path / "tools.md").write_text(
            "---\nengine: claude\ntools:\n  github:\n    allowed: [get_issue]\n---\nUse tools\n"
        )
        expansion = expand_includes("@include tools.md", tmp_path)
        assert expansion.tools == {"github": {"allowed": ["get_issue"]}}
        assert expansion.engines == ("claude",)
        assert expansion.markdown == "Use tools"

    def test_section_include(self, tmp_path: Path) -> None:
        (tmp_path / "doc.md").write_text("# A\none\n# B\ntwo\n")
        expansion = expand_includes("@include doc.md#B", tmp_path)
        assert expansion.markdown == "# B\ntwo"

    def test_missing_required_include(self, tmp_path: Path) -> None:
        with pytest.raises(CompilerError) as exc_info:
            expand_includes("@include missing.md", tmp_path)
        assert "failed to resolve required include 'missing.md'" in str(exc_info.value)

    def test_missing_optional_include_is_skipped(self, tmp_path: Path) -> None:
        expansion = expand_includes("Before\n@include? missing.md\nAfter", tmp_path)
        assert expansion.markdown == "Before\nAfter"
        assert expansion.files == ()

    def test_nested_includes(self, tmp_path: Path) -> None:
        (tmp_path / "outer.md").write_text("Outer\n@include inner.md\n")
        (tmp_path / "inner.md").write_text("Inner\n")
        expansion = expand_includes("@include outer.md", tmp_path)
        assert expansion.markdown == "Outer\nInner"
        assert len(expansion.files) == 2

    def test_self_include_stops_at_depth_limit(self, tmp_path: Path) -> None:
        """A file including itself does not recurse forever."""
        (tmp_path / "loop.md").write_text("x\n@include loop.md\n")
        expansion = expand_includes("@include loop.md", tmp_path)
        assert expansion.markdown.startswith("x\nx")

    def test_unknown_frontmatter_fields_are_ignored(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / "extra.md").write_text("---\non: push\n---\nBody\n")
        expansion = expand_includes("@include extra.md", tmp_path)
        assert expansion.markdown == "Body"
        assert "Ignoring unexpected frontmatter fields" in caplog.text


# === Tool merging ===


class TestMergeTools:
    """Tests for merge_tools()."""

    def test_union_of_allowed_lists(self) -> None:
        base = {"github": {"allowed": ["get_issue", "list_issues"]}}
        extra = {"github": {"allowed": ["list_issues", "add_issue_comment"]}}
        merged = merge_tools(base, extra)
        assert merged["github"]["allowed"] == ["get_issue", "list_issues", "add_issue_comment"]

    def test_inputs_not_modified(self) -> None:
        base = {"bash": ["ls"]}
        extra = {"bash": ["cat"]}
        merged = merge_tools(base, extra)
        assert merged == {"bash": ["ls", "cat"]}
        assert base == {"bash": ["ls"]}
        assert extra == {"bash": ["cat"]}

    def test_new_keys_added(self) -> None:
        merged = merge_tools({"github": {}}, {"edit": None})
        assert merged == {"github": {}, "edit": None}

    def test_identical_mcp_servers_merge(self) -> None:
        server = {"mcp": {"type": "stdio", "command": "notion"}, "allowed": ["a"]}
        other = {"mcp": {"type": "stdio", "command": "notion"}, "allowed": ["b"]}
        merged = merge_tools({"notion": server}, {"notion": other})
        assert merged["notion"]["allowed"] == ["a", "b"]

    def test_conflicting_mcp_servers(self) -> None:
        """Two MCP definitions under one name must agree."""
        first = {"notion": {"mcp": {"type": "stdio", "command": "a"}}}
        second = {"notion": {"mcp": {"type": "stdio", "command": "b"}}}
        with pytest.raises(SemanticError) as exc_info:
            merge_tools(first, second)
        assert "MCP tool conflict for 'notion'" in str(exc_info.value)

"""Tests for tool grant normalization and the allow-list."""

from gh_aw.workflow.tools import (
    DEFAULT_CLAUDE_TOOLS,
    DEFAULT_GITHUB_TOOLS,
    EDIT_TOOLS,
    GIT_COMMANDS,
    apply_default_tools,
    compute_allowed_tools,
    expand_neutral_tools,
    mcp_tool_names,
    widen_bash,
)


class TestExpandNeutralTools:
    """Tests for expand_neutral_tools()."""

    def test_bash_commands(self) -> None:
        result = expand_neutral_tools({"bash": ["ls", "cat"]})
        assert "bash" not in result
        assert result["claude"]["allowed"] == {"Bash": ["ls", "cat"]}

    def test_unrestricted_bash(self) -> None:
        result = expand_neutral_tools({"bash": None})
        assert result["claude"]["allowed"] == {"Bash": None}

    def test_web_and_edit(self) -> None:
        result = expand_neutral_tools({"web-fetch": None, "web-search": None, "edit": None})
        allowed = result["claude"]["allowed"]
        assert "WebFetch" in allowed
        assert "WebSearch" in allowed
        for name in EDIT_TOOLS:
            assert name in allowed

    def test_keeps_existing_claude_grants(self) -> None:
        result = expand_neutral_tools({"claude": {"allowed": {"Read": None}}, "bash": ["ls"]})
        assert result["claude"]["allowed"] == {"Read": None, "Bash": ["ls"]}

    def test_input_not_modified(self) -> None:
        tools = {"bash": ["ls"], "github": {}}
        expand_neutral_tools(tools)
        assert tools == {"bash": ["ls"], "github": {}}


class TestWidenBash:
    def test_adds_missing_commands(self) -> None:
        assert widen_bash(["ls", "git add:*"]) == ["ls", "git add:*"] + [
            cmd for cmd in GIT_COMMANDS if cmd != "git add:*"
        ]

    def test_unrestricted_stays_unrestricted(self) -> None:
        assert widen_bash(None) is None
        assert widen_bash([":*"]) == [":*"]
        assert widen_bash(["*"]) == ["*"]


class TestApplyDefaultTools:
    """Tests for apply_default_tools()."""

    def test_adds_read_only_defaults(self) -> None:
        result = apply_default_tools({}, needs_git=False)
        assert result["github"]["allowed"] == list(DEFAULT_GITHUB_TOOLS)
        assert list(result["claude"]["allowed"]) == list(DEFAULT_CLAUDE_TOOLS)

    def test_existing_github_tools_come_first(self) -> None:
        result = apply_default_tools({"github": {"allowed": ["create_issue", "get_issue"]}}, False)
        allowed = result["github"]["allowed"]
        assert allowed[:2] == ["create_issue", "get_issue"]
        assert allowed.count("get_issue") == 1

    def test_git_widening(self) -> None:
        result = apply_default_tools({"bash": ["ls"]}, needs_git=True)
        allowed = result["claude"]["allowed"]
        assert allowed["Bash"] == ["ls", *GIT_COMMANDS]
        for name in EDIT_TOOLS:
            assert name in allowed

    def test_git_without_bash(self) -> None:
        result = apply_default_tools({}, needs_git=True)
        assert result["claude"]["allowed"]["Bash"] == list(GIT_COMMANDS)


class TestComputeAllowedTools:
    """Tests for compute_allowed_tools()."""

    def test_sorted_and_joined(self) -> None:
        tools = {
            "claude": {"allowed": {"Read": None, "Bash": ["ls", "cat"]}},
            "github": {"allowed": ["get_issue"]},
            "notion": {"mcp": {"type": "stdio", "command": "x"}, "allowed": ["*"]},
        }
        assert compute_allowed_tools(tools, has_safe_outputs=False) == ",".join(
            sorted(
                [
                    "Bash(cat)",
                    "Bash(ls)",
                    "BashOutput",
                    "KillBash",
                    "Read",
                    "mcp__github__get_issue",
                    "mcp__notion",
                ]
            )
        )

    def test_unrestricted_bash(self) -> None:
        tools = {"claude": {"allowed": {"Bash": [":*"]}}}
        assert compute_allowed_tools(tools, False) == "Bash,BashOutput,KillBash"

    def test_safe_outputs_need_write(self) -> None:
        assert compute_allowed_tools({}, has_safe_outputs=True) == "Write"
        tools = {"claude": {"allowed": {"Write": None}}}
        assert compute_allowed_tools(tools, has_safe_outputs=True) == "Write"

    def test_non_mcp_tools_ignored(self) -> None:
        tools = {"custom": {"allowed": ["x"]}}
        assert compute_allowed_tools(tools, False) == ""


class TestMcpToolNames:
    def test_github_always_included(self) -> None:
        tools = {"notion": {"mcp": {"type": "stdio"}}, "bash": ["ls"]}
        assert mcp_tool_names(tools) == ["github", "notion"]

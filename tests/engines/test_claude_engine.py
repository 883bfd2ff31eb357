"""Tests for the Claude Code engine."""

import json

from gh_aw.engines.claude import (
    DEFAULT_CLAUDE_ACTION_VERSION,
    HOOK_PATH,
    SETTINGS_PATH,
    ClaudeEngine,
    allowed_domains,
    network_enforced,
)
from gh_aw.engines.config import DEFAULT_ALLOWED_DOMAINS, EngineConfig, NetworkPermissions
from gh_aw.engines.mcp import MCP_JSON_PATH

LOG_FILE = "/tmp/aw-logs/test.log"


def _heredoc_json(lines: list[str]) -> dict:
    """Parse the JSON written by a `cat > file << 'EOF'` heredoc."""
    assert lines[0].strip().startswith("cat > ")
    assert lines[-1].strip() == "EOF"
    return json.loads("\n".join(line.strip() for line in lines[1:-1]))


def _flatten(steps: list[list[str]]) -> str:
    return "\n".join("\n".join(step) for step in steps)


class TestClaudeExecution:
    """Tests for the Claude execution step."""

    def test_default_action_step(self) -> None:
        steps = ClaudeEngine().execution_steps("Test", LOG_FILE, None, None, False)
        text = _flatten(steps)
        assert "      - name: Execute Claude Code Action" in text
        assert "        id: agentic_execution" in text
        assert f"anthropics/claude-code-base-action@{DEFAULT_CLAUDE_ACTION_VERSION}" in text
        assert f"          mcp_config: {MCP_JSON_PATH}" in text
        assert "          timeout_minutes: 5" in text
        assert "Capture Agentic Action logs" in text

    def test_inputs_sorted(self) -> None:
        config = ClaudeEngine().execution_config("Test", LOG_FILE, None, None, False)
        step = ClaudeEngine().execution_steps("Test", LOG_FILE, None, None, False)[0]
        keys = [line.strip().split(":")[0] for line in step if line.startswith("          ") and ":" in line]
        input_keys = [key for key in keys if key in config.inputs]
        assert input_keys == sorted(config.inputs)

    def test_allowed_tools_with_comment(self) -> None:
        steps = ClaudeEngine().execution_steps(
            "Test", LOG_FILE, None, None, False, allowed_tools="Bash(ls),Read"
        )
        text = _flatten(steps)
        assert "          # Allowed tools (sorted):" in text
        assert "          # - Bash(ls)" in text
        assert '          allowed_tools: "Bash(ls),Read"' in text

    def test_engine_settings(self) -> None:
        config = EngineConfig(
            id="claude",
            version="v1.0.0",
            model="claude-3-5-sonnet-20241022",
            max_turns=7,
            env={"DEBUG": "1"},
        )
        steps = ClaudeEngine().execution_steps("Test", LOG_FILE, config, None, True)
        text = _flatten(steps)
        assert "anthropics/claude-code-base-action@v1.0.0" in text
        assert "          max_turns: 7" in text
        assert "          model: claude-3-5-sonnet-20241022" in text
        assert "          claude_env: |" in text
        assert "            GITHUB_AW_SAFE_OUTPUTS: ${{ env.GITHUB_AW_SAFE_OUTPUTS }}" in text
        assert "            DEBUG: 1" in text
        assert "          GITHUB_AW_MAX_TURNS: 7" in text

    def test_custom_engine_steps_come_first(self) -> None:
        config = EngineConfig(id="claude", steps=({"name": "Prepare", "run": "echo hi"},))
        steps = ClaudeEngine().execution_steps("Test", LOG_FILE, config, None, False)
        assert steps[0][0] == "      - name: Prepare"
        assert steps[1][0] == "      - name: Execute Claude Code Action"


class TestClaudeNetwork:
    """Tests for the settings file and network hook."""

    def test_enforced_only_for_literal_claude_with_network(self) -> None:
        network = NetworkPermissions(allowed=("example.com",))
        assert network_enforced(EngineConfig(id="claude"), network)
        assert not network_enforced(EngineConfig(id="claude"), None)
        assert not network_enforced(EngineConfig(id="claude-x"), network)
        assert not network_enforced(None, network)

    def test_empty_allow_list_still_enforced(self) -> None:
        """An empty allow-list denies everything instead of disabling the hook."""
        network = NetworkPermissions()
        assert network_enforced(EngineConfig(id="claude"), network)
        assert allowed_domains(network) == []

    def test_no_policy_means_defaults(self) -> None:
        assert allowed_domains(None) == list(DEFAULT_ALLOWED_DOMAINS)

    def test_installation_steps(self) -> None:
        network = NetworkPermissions(mode="defaults", allowed=("*.example.com",))
        steps = ClaudeEngine().installation_steps(EngineConfig(id="claude"), network)
        assert [step[0] for step in steps] == [
            "      - name: Generate Claude Settings",
            "      - name: Generate Network Permissions Hook",
        ]
        settings = _heredoc_json(steps[0][3:])
        assert settings["hooks"]["PreToolUse"][0]["matcher"] == "WebFetch|WebSearch"
        assert HOOK_PATH in settings["hooks"]["PreToolUse"][0]["hooks"][0]["command"]
        hook = "\n".join(steps[1])
        assert '"*.example.com"' in hook
        assert f"chmod +x {HOOK_PATH}" in hook

    def test_settings_input_when_enforced(self) -> None:
        network = NetworkPermissions(allowed=("example.com",))
        config = ClaudeEngine().execution_config("T", LOG_FILE, EngineConfig(id="claude"), network, False)
        assert config.inputs["settings"] == SETTINGS_PATH

    def test_no_installation_without_network(self) -> None:
        assert ClaudeEngine().installation_steps(EngineConfig(id="claude"), None) == []


class TestClaudeMcpConfig:
    """The MCP config is valid JSON."""

    def test_github_and_custom_servers(self) -> None:
        tools = {
            "github": {"docker_image_version": "v1.2.3"},
            "notion": {
                "mcp": {"type": "stdio", "container": "mcp/notion", "env": {"TOKEN": "x"}},
                "allowed": ["search"],
            },
            "remote": {"mcp": {"type": "http", "url": "https://mcp.example.com"}},
        }
        lines = ClaudeEngine().render_mcp_config(tools, ["github", "notion", "remote"])
        servers = _heredoc_json(lines)["mcpServers"]
        assert list(servers) == ["github", "notion", "remote"]
        assert servers["github"]["args"][-1] == "ghcr.io/github/github-mcp-server:v1.2.3"
        assert servers["notion"] == {
            "command": "docker",
            "args": ["run", "--rm", "-i", "-e", "TOKEN", "mcp/notion"],
            "env": {"TOKEN": "x"},
        }
        assert servers["remote"] == {"url": "https://mcp.example.com"}


class TestClaudeLogMetrics:
    """Tests for ClaudeEngine.parse_log_metrics()."""

    def test_result_entry_is_authoritative(self) -> None:
        log = "\n".join(
            [
                json.dumps({"type": "assistant", "usage": {"input_tokens": 5000}}),
                json.dumps(
                    {
                        "type": "result",
                        "total_cost_usd": 0.25,
                        "usage": {"input_tokens": 100, "output_tokens": 50},
                    }
                ),
                "Warning: something odd",
            ]
        )
        metrics = ClaudeEngine().parse_log_metrics(log)
        assert metrics.token_usage == 150
        assert metrics.estimated_cost == 0.25
        assert metrics.warning_count == 1
        assert metrics.error_count == 0

    def test_json_array_log(self) -> None:
        log = json.dumps(
            [
                {"type": "system"},
                {"type": "result", "total_cost_usd": 1.5, "usage": {"output_tokens": 10}},
            ]
        )
        metrics = ClaudeEngine().parse_log_metrics(log)
        assert metrics.token_usage == 10
        assert metrics.estimated_cost == 1.5
        assert (metrics.error_count, metrics.warning_count) == (0, 0)

    def test_json_array_log_counts_errors_and_warnings(self) -> None:
        log = json.dumps(
            [
                {"type": "assistant", "text": "Error: file not found"},
                {"type": "assistant", "text": "warning: deprecated"},
                {"type": "result", "total_cost_usd": 0.5, "usage": {"input_tokens": 15}},
            ],
            indent=2,
        )
        metrics = ClaudeEngine().parse_log_metrics(log)
        assert metrics.token_usage == 15
        assert metrics.estimated_cost == 0.5
        assert metrics.error_count == 1
        assert metrics.warning_count == 1

    def test_without_result_uses_maximum(self) -> None:
        log = "\n".join(
            [
                json.dumps({"tokens": 10}),
                json.dumps({"tokens": 30, "cost": 0.1}),
                json.dumps({"tokens": 20, "cost": 0.2}),
            ]
        )
        metrics = ClaudeEngine().parse_log_metrics(log)
        assert metrics.token_usage == 30
        assert metrics.estimated_cost == 0.1

    def test_garbage_never_raises(self) -> None:
        metrics = ClaudeEngine().parse_log_metrics("{not json}\n[1, 2\n\x00\nERROR: failed")
        assert metrics.token_usage == 0
        assert metrics.error_count == 1

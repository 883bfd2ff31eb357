"""Tests for main, task and reaction job step builders and the egress proxy."""

import pytest

from gh_aw.engines.registry import get_engine_registry
from gh_aw.workflow.proxy import (
    SQUID_IMAGE,
    iptables_lines,
    needs_proxy,
    proxy_network,
    proxy_setup_steps,
    proxy_tool_names,
)
from gh_aw.workflow.steps import (
    barrier_step,
    cache_steps,
    checkout_step,
    custom_steps,
    git_patch_steps,
    log_parsing_step,
    output_collection_steps,
    prompt_steps,
    reaction_step,
    run_step,
    team_member_steps,
)

PROXIED_TOOL = {
    "mcp": {"type": "stdio", "container": "mcp/fetch", "env": {"B": "2", "A": "1"}},
    "permissions": {"network": {"allowed": ["example.com", "api.example.com"]}},
}


def _names(steps) -> list[str]:
    return [line.strip().removeprefix("- name: ") for step in steps for line in step if "- name:" in line]


# === Basic steps ===


class TestBasicSteps:
    """Tests for the generic step builders."""

    def test_checkout(self) -> None:
        assert checkout_step() == [
            "      - name: Checkout repository",
            "        uses: actions/checkout@v5",
        ]
        assert checkout_step(fetch_depth=0)[-1] == "          fetch-depth: 0"

    def test_run_step_env_after_script(self) -> None:
        step = run_step("Hi", "echo a\n\necho b", env={"X": "1"})
        assert step == [
            "      - name: Hi",
            "        run: |",
            "          echo a",
            "",
            "          echo b",
            "        env:",
            "          X: 1",
        ]

    def test_custom_steps(self) -> None:
        steps = custom_steps([{"name": "Setup", "run": "make"}])
        assert steps[0][0] == "      - name: Setup"
        assert custom_steps(None) == []


class TestCacheSteps:
    """Tests for cache_steps()."""

    def test_single_mapping(self) -> None:
        steps = cache_steps({"key": "deps-${{ hashFiles('x') }}", "path": ["a", "b"]})
        assert len(steps) == 1
        assert steps[0][0] == "      # Cache configuration from frontmatter processed below"
        assert "      - name: Cache (deps-${{ hashFiles('x') }})" in steps[0]
        assert "          path: |" in steps[0]
        assert "            b" in steps[0]

    def test_keyless_entries_numbered(self) -> None:
        steps = cache_steps([{"path": "x"}, {"path": "y", "lookup-only": True}])
        assert _names(steps) == ["Cache 1", "Cache 2"]
        assert "          lookup-only: true" in steps[1]

    def test_keyless_single(self) -> None:
        assert _names(cache_steps({"path": "x"})) == ["Cache"]

    def test_no_cache(self) -> None:
        assert cache_steps(None) == []
        assert cache_steps("x") == []


class TestPromptSteps:
    """Tests for prompt_steps()."""

    def test_heredoc(self) -> None:
        create, summary = prompt_steps("# Title\n\nDo it", "", has_safe_outputs=False)
        assert create == [
            "      - name: Create prompt",
            "        run: |",
            "          mkdir -p /tmp/aw-prompts",
            "          cat > /tmp/aw-prompts/prompt.txt << 'EOF'",
            "          # Title",
            "",
            "          Do it",
            "          EOF",
        ]
        assert summary[0] == "      - name: Print prompt to step summary"

    def test_instructions_appended(self) -> None:
        create, _ = prompt_steps("Body", "## Outputs", has_safe_outputs=True)
        assert "          GITHUB_AW_SAFE_OUTPUTS: ${{ env.GITHUB_AW_SAFE_OUTPUTS }}" in create
        assert create[-4:] == ["          Body", "", "          ## Outputs", "          EOF"]


class TestOutputSteps:
    def test_collect_output_env(self) -> None:
        collect, _, upload = output_collection_steps('{"create-issue":{}}', ["example.com", "x.org"])
        assert '          GITHUB_AW_SAFE_OUTPUTS_CONFIG: "{\\"create-issue\\":{}}"' in collect
        assert '          GITHUB_AW_ALLOWED_DOMAINS: "example.com,x.org"' in collect
        assert "        if: always() && steps.collect_output.outputs.output != ''" in upload

    def test_log_parsing(self) -> None:
        registry = get_engine_registry()
        claude = log_parsing_step(registry.resolve("claude"), "/tmp/x.log")
        assert claude is not None
        assert "          AGENT_LOG_FILE: /tmp/x.log" in claude
        assert log_parsing_step(registry.resolve("gemini"), "/tmp/x.log") is None

    def test_git_patch(self) -> None:
        generate, upload = git_patch_steps()
        assert generate[0] == "      - name: Generate git patch"
        assert "          name: aw.patch" in upload
        assert "          if-no-files-found: ignore" in upload


# === Task and reaction ===


class TestTaskSteps:
    """Tests for task and reaction job steps."""

    def test_team_member(self) -> None:
        check, validate = team_member_steps("contains(github.event.issue.body, '/fix')")
        assert "        id: check-team-member" in check
        assert "        if: contains(github.event.issue.body, '/fix')" in check
        assert "          exit 1" in validate

    def test_barrier(self) -> None:
        assert barrier_step()[0] == "      - name: Task job condition barrier"

    def test_reaction(self) -> None:
        step = reaction_step("eyes", "fix")
        assert step[0] == "      - name: Add eyes reaction to the triggering item"
        assert "          GITHUB_AW_REACTION: eyes" in step
        assert "          GITHUB_AW_COMMAND: fix" in step

    def test_reaction_without_command(self) -> None:
        assert not any("GITHUB_AW_COMMAND" in line for line in reaction_step("rocket", ""))


# === Proxy ===


class TestProxy:
    """Tests for the egress proxy of network-restricted MCP containers."""

    def test_network_is_stable(self) -> None:
        net = proxy_network("fetch")
        assert net == proxy_network("fetch")
        assert net.name == "awproxy-fetch"
        octet = int(net.subnet.split(".")[2])
        assert 100 <= octet < 200
        assert net.squid_ip == f"172.28.{octet}.10"

    @pytest.mark.parametrize(
        ("config", "expected"),
        [
            (PROXIED_TOOL, True),
            ({"mcp": {"type": "stdio", "container": "mcp/fetch"}}, False),
            ({"mcp": {"type": "stdio", "command": "x"}, "permissions": PROXIED_TOOL["permissions"]}, False),
            ({"mcp": {"type": "http", "url": "https://x"}}, False),
            ("not a tool", False),
        ],
    )
    def test_needs_proxy(self, config, expected: bool) -> None:
        assert needs_proxy(config) is expected

    def test_tool_names_sorted(self) -> None:
        tools = {"zeta": PROXIED_TOOL, "github": {}, "alpha": PROXIED_TOOL}
        assert proxy_tool_names(tools) == ["alpha", "zeta"]

    def test_iptables_reject_last(self) -> None:
        net = proxy_network("fetch")
        lines = iptables_lines("fetch")
        assert lines[-1].endswith(f"-A DOCKER-USER -s {net.subnet} -j REJECT")
        assert any("--dport 3128 -j ACCEPT" in line for line in lines)

    def test_setup_steps(self) -> None:
        config, start = proxy_setup_steps({"fetch": PROXIED_TOOL, "github": {}})
        text = "\n".join(config)
        assert "cat > squid-fetch.conf << 'EOF'" in text
        assert "          example.com" in config
        assert "          api.example.com" in config
        assert "cat > docker-compose-fetch.yml << 'EOF'" in text
        assert f"          docker pull {SQUID_IMAGE}" in start
        assert "          docker pull mcp/fetch" in start
        assert "          docker compose -f docker-compose-fetch.yml up -d squid-proxy" in start

    def test_no_proxied_tools(self) -> None:
        assert proxy_setup_steps({"github": {}}) == []

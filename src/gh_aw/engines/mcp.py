"""MCP server configuration: validation, normalization and rendering.

A custom MCP tool is declared in the frontmatter as

    tools:
      notion:
        mcp:
          type: stdio
          container: mcp/notion
          env:
            NOTION_TOKEN: ${{ secrets.NOTION_TOKEN }}
        allowed: ["search_pages"]
        permissions:
          network:
            allowed: ["api.notion.com"]

`mcp` may also be a JSON string. Servers are normalized to plain
command/args/env (stdio) or url/headers (http) mappings, then rendered as
the JSON file read by Claude-style engines or the TOML file read by Codex.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gh_aw.core.exceptions import SemanticError
from gh_aw.core.settings import get_settings

logger = logging.getLogger(__name__)

MCP_TYPES: tuple[str, ...] = ("stdio", "http")

MCP_CONFIG_DIR = "/tmp/mcp-config"
MCP_JSON_PATH = f"{MCP_CONFIG_DIR}/mcp-servers.json"
MCP_TOML_PATH = f"{MCP_CONFIG_DIR}/config.toml"

GITHUB_MCP_IMAGE = "ghcr.io/github/github-mcp-server"

_PROXY_FLAG = "__uses_proxy"


def _parse_mcp_section(tool_name: str, section: Any) -> dict[str, Any]:
    if isinstance(section, dict):
        return dict(section)
    if isinstance(section, str):
        try:
            parsed = json.loads(section)
        except json.JSONDecodeError as e:
            raise SemanticError(
                f"tool '{tool_name}' has invalid JSON in mcp configuration: {e}"
            ) from e
        if isinstance(parsed, dict):
            return parsed
    raise SemanticError(f"tool '{tool_name}' has invalid mcp configuration format")


def mcp_section(tool_config: Any) -> dict[str, Any]:
    """The `mcp` mapping of a tool (decoding a JSON string), or {}."""
    if not isinstance(tool_config, dict):
        return {}
    section = tool_config.get("mcp")
    if isinstance(section, str):
        try:
            section = json.loads(section)
        except json.JSONDecodeError:
            return {}
    return dict(section) if isinstance(section, dict) else {}


def mcp_type(tool_config: Any) -> str | None:
    """Return the MCP transport of a tool, or None if it is not an MCP tool."""
    section = mcp_section(tool_config)
    if section.get("type") in MCP_TYPES:
        return str(section["type"])
    return None


def network_allowed_domains(tool_config: Any) -> list[str]:
    """Domains from `permissions.network.allowed` of a tool (or its mcp section)."""
    if not isinstance(tool_config, dict):
        return []
    candidates = [tool_config.get("permissions")]
    if isinstance(tool_config.get("mcp"), dict):
        candidates.append(tool_config["mcp"].get("permissions"))
    for permissions in candidates:
        if not isinstance(permissions, dict):
            continue
        network = permissions.get("network")
        if not isinstance(network, dict) or not isinstance(network.get("allowed"), list):
            continue
        domains = [d for d in network["allowed"] if isinstance(d, str)]
        if domains:
            return domains
    return []


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, str):
        return "string"
    return "unknown"


def _require_string(tool_name: str, config: dict[str, Any], name: str) -> None:
    if name not in config:
        raise SemanticError(f"tool '{tool_name}' mcp configuration missing property '{name}'")
    if not isinstance(config[name], str):
        raise SemanticError(
            f"tool '{tool_name}' mcp configuration '{name}' got "
            f"{_type_name(config[name])}, want string"
        )


def validate_mcp_configs(tools: dict[str, Any]) -> None:
    """Check every tool with an `mcp` section.

    Raises:
        SemanticError: On the first invalid MCP configuration.

    """
    for tool_name, tool_config in tools.items():
        if not isinstance(tool_config, dict) or "mcp" not in tool_config:
            continue
        config = _parse_mcp_section(tool_name, tool_config["mcp"])

        _require_string(tool_name, config, "type")
        server_type = config["type"]
        if server_type not in MCP_TYPES:
            raise SemanticError(
                f"tool '{tool_name}' mcp configuration 'type' value must be one of: "
                f"{', '.join(MCP_TYPES)}"
            )

        has_network = bool(
            network_allowed_domains(tool_config) or network_allowed_domains({"mcp": config})
        )
        if has_network and server_type == "http":
            raise SemanticError(
                f"tool '{tool_name}' has network permissions configured, but network "
                "egress permissions do not apply to remote 'type: http' servers"
            )
        if has_network and "container" not in config:
            raise SemanticError(
                f"tool '{tool_name}' has network permissions configured, but network "
                "egress permissions only apply to stdio MCP servers that specify a 'container'"
            )

        if server_type == "http":
            if "container" in config:
                raise SemanticError(
                    f"tool '{tool_name}' mcp configuration with type 'http' cannot use "
                    "'container' field"
                )
            _require_string(tool_name, config, "url")
            continue

        if "command" in config and "container" in config:
            raise SemanticError(
                f"tool '{tool_name}' mcp configuration cannot specify both 'container' and 'command'"
            )
        if "command" in config:
            _require_string(tool_name, config, "command")
        elif "container" in config:
            _require_string(tool_name, config, "container")
        else:
            raise SemanticError(
                f"tool '{tool_name}' mcp configuration must specify either 'command' or 'container'"
            )


def server_config(tool_name: str, tool_config: dict[str, Any]) -> dict[str, Any]:
    """Normalize a custom MCP tool to the fields engines render.

    A `container` becomes a `docker run` command. Containers with network
    permissions run through the tool's docker compose file instead, so that
    their egress passes the proxy.

    Returns:
        command/args/env for stdio servers, url/headers for http servers.

    """
    config = _parse_mcp_section(tool_name, tool_config.get("mcp"))
    if "container" in config and network_allowed_domains(tool_config):
        config[_PROXY_FLAG] = True
    _container_to_docker(tool_name, config)

    if config.get("type", "stdio") == "http":
        keys: tuple[str, ...] = ("url", "headers")
    else:
        keys = ("command", "args", "env")
    return {key: config[key] for key in keys if key in config}


def _container_to_docker(tool_name: str, config: dict[str, Any]) -> None:
    if "container" not in config:
        return
    container = config.pop("container")
    if not isinstance(container, str):
        raise SemanticError(f"tool '{tool_name}': 'container' must be a string")
    if "command" in config:
        raise SemanticError(
            f"tool '{tool_name}': cannot specify both 'container' and 'command' fields"
        )

    config["command"] = "docker"
    if config.pop(_PROXY_FLAG, False):
        config["args"] = [
            "compose",
            "-f",
            f"docker-compose-{tool_name}.yml",
            "run",
            "--rm",
            tool_name,
        ]
        return

    args = ["run", "--rm", "-i"]
    env = config.get("env")
    if isinstance(env, dict):
        for key in sorted(env):
            args += ["-e", key]
    args.append(container)
    config["args"] = args


def github_image_version(github_tool: Any) -> str:
    """Image tag of the GitHub MCP server, from `docker_image_version` or settings."""
    if isinstance(github_tool, dict) and isinstance(github_tool.get("docker_image_version"), str):
        return github_tool["docker_image_version"]
    return get_settings().github_mcp_version


def github_server(github_tool: Any) -> dict[str, Any]:
    """Built-in containerized GitHub MCP server with the workflow token injected."""
    return {
        "command": "docker",
        "args": [
            "run",
            "-i",
            "--rm",
            "-e",
            "GITHUB_PERSONAL_ACCESS_TOKEN",
            f"{GITHUB_MCP_IMAGE}:{github_image_version(github_tool)}",
        ],
        "env": {"GITHUB_PERSONAL_ACCESS_TOKEN": "${{ secrets.GITHUB_TOKEN }}"},
    }


def collect_servers(
    tools: dict[str, Any],
    mcp_tools: list[str],
    http_supported: bool = True,
) -> dict[str, dict[str, Any]]:
    """Build the server table for the given MCP tool names, in order.

    Args:
        tools: Normalized tools section.
        mcp_tools: Names to render; "github" is built in.
        http_supported: Whether the target format can express http servers.

    """
    servers: dict[str, dict[str, Any]] = {}
    for name in mcp_tools:
        if name == "github":
            servers[name] = github_server(tools.get("github"))
        elif (kind := mcp_type(tools.get(name))) is not None:
            if kind == "http" and not http_supported:
                logger.warning(
                    "Custom MCP server '%s' has type 'http', but only 'stdio' is supported "
                    "by this engine. Ignoring this server.",
                    name,
                )
                continue
            servers[name] = server_config(name, tools[name])
    return servers


def render_json_config(
    servers: dict[str, dict[str, Any]],
    indent: str = "          ",
    path: str = MCP_JSON_PATH,
) -> list[str]:
    """Render a heredoc writing `{"mcpServers": {...}}` to path."""
    body = json.dumps({"mcpServers": servers}, indent=2, ensure_ascii=False)
    lines = [f"{indent}cat > {path} << 'EOF'"]
    lines += [indent + line for line in body.split("\n")]
    lines.append(f"{indent}EOF")
    return lines


def _toml_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    if isinstance(value, dict):
        pairs = ", ".join(f"{json.dumps(str(k))} = {_toml_value(v)}" for k, v in value.items())
        return "{ " + pairs + " }" if pairs else "{}"
    return json.dumps(str(value))


def render_toml_config(servers: dict[str, dict[str, Any]], indent: str = "          ") -> list[str]:
    """Render a heredoc writing config.toml with one [mcp_servers.<name>] table each."""
    lines = [
        f"{indent}cat > {MCP_TOML_PATH} << EOF",
        f"{indent}[history]",
        f'{indent}persistence = "none"',
    ]
    for name, server in servers.items():
        lines.append(indent.rstrip())
        lines.append(f"{indent}[mcp_servers.{name}]")
        for key, value in server.items():
            lines.append(f"{indent}{key} = {_toml_value(value)}")
    lines.append(f"{indent}EOF")
    return lines

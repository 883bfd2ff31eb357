"""Egress proxy for network-restricted MCP containers.

A containerized MCP server with `permissions.network.allowed` runs next to a
Squid proxy on a private docker network. Each tool gets its own /24 subnet,
derived from the CRC32 of the tool name so that it is stable across
compilations, and iptables rules on the DOCKER-USER chain reject any traffic
from that subnet that does not go through the proxy.
"""

from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass
from typing import Any

from gh_aw.engines.base import FIELD_INDENT, STEP_INDENT, VALUE_INDENT, GitHubActionStep
from gh_aw.engines.mcp import mcp_section, mcp_type, network_allowed_domains
from gh_aw.templates import render_template

logger = logging.getLogger(__name__)

SQUID_IMAGE = "ubuntu/squid:latest"


@dataclass(frozen=True)
class ProxyNetwork:
    name: str
    subnet: str
    squid_ip: str


def proxy_network(tool_name: str) -> ProxyNetwork:
    """Network of a tool: 172.28.<100..199>.0/24 with Squid at .10."""
    octet = 100 + zlib.crc32(tool_name.encode("utf-8")) % 100
    return ProxyNetwork(
        name=f"awproxy-{tool_name}",
        subnet=f"172.28.{octet}.0/24",
        squid_ip=f"172.28.{octet}.10",
    )


def needs_proxy(tool_config: Any) -> bool:
    """Containerized stdio tools with a network allow-list run behind the proxy."""
    return (
        mcp_type(tool_config) == "stdio"
        and "container" in mcp_section(tool_config)
        and bool(network_allowed_domains(tool_config))
    )


def proxy_tool_names(tools: dict[str, Any]) -> list[str]:
    return sorted(name for name, config in tools.items() if needs_proxy(config))


def _heredoc(path: str, content: str) -> list[str]:
    lines = [f"{VALUE_INDENT}cat > {path} << 'EOF'"]
    lines += [VALUE_INDENT + line if line else "" for line in content.split("\n")]
    lines.append(f"{VALUE_INDENT}EOF")
    return lines


def proxy_config_lines(tool_name: str, tool_config: dict[str, Any]) -> list[str]:
    """Shell lines writing the Squid config, domain list and compose file of a tool."""
    mcp = mcp_section(tool_config)
    env = mcp.get("env") if isinstance(mcp.get("env"), dict) else {}
    proxy_args = [arg for arg in mcp.get("proxy_args") or () if isinstance(arg, str)]

    lines = [f"{VALUE_INDENT}# Squid proxy configuration for {tool_name}"]
    lines += _heredoc(f"squid-{tool_name}.conf", render_template("squid.conf.j2", tool_name=tool_name))
    lines.append(f"{VALUE_INDENT}# Allowed domains for {tool_name}")
    lines += _heredoc(
        f"allowed_domains-{tool_name}.txt",
        render_template("allowed_domains.txt.j2", domains=network_allowed_domains(tool_config)),
    )
    lines.append(f"{VALUE_INDENT}# Docker Compose configuration for {tool_name}")
    lines += _heredoc(
        f"docker-compose-{tool_name}.yml",
        render_template(
            "docker-compose.yml.j2",
            tool_name=tool_name,
            container=mcp["container"],
            env=sorted((str(k), str(v)) for k, v in env.items()),
            proxy_args=proxy_args,
            network=proxy_network(tool_name),
        ),
    )
    return lines


def iptables_lines(tool_name: str) -> list[str]:
    """Rules allowing established traffic and the proxy port, rejecting the rest."""
    net = proxy_network(tool_name)
    chain = "$SUDO iptables"
    rules = (
        ("-m conntrack --ctstate ESTABLISHED,RELATED -j ACCEPT", "-I DOCKER-USER 1"),
        (f"-s {net.squid_ip} -j ACCEPT", "-I DOCKER-USER 2"),
        (f"-s {net.subnet} -d {net.squid_ip} -p tcp --dport 3128 -j ACCEPT", "-I DOCKER-USER 3"),
        (f"-s {net.subnet} -j REJECT", "-A DOCKER-USER"),
    )
    lines = [
        f"{VALUE_INDENT}echo 'Enforcing egress to proxy for {tool_name} "
        f"(subnet {net.subnet}, squid {net.squid_ip})'",
        f"{VALUE_INDENT}if command -v sudo >/dev/null 2>&1; then SUDO=sudo; else SUDO=; fi",
    ]
    for rule, insert in rules:
        lines.append(
            f"{VALUE_INDENT}{chain} -C DOCKER-USER {rule} 2>/dev/null || {chain} {insert} {rule}"
        )
    return lines


def proxy_setup_steps(tools: dict[str, Any]) -> list[GitHubActionStep]:
    """Configuration and startup steps for every proxied tool, or []."""
    names = proxy_tool_names(tools)
    if not names:
        return []
    logger.debug("Proxying network-restricted MCP tools: %s", ", ".join(names))

    config = [
        f"{STEP_INDENT}- name: Setup Proxy Configuration for MCP Network Restrictions",
        f"{FIELD_INDENT}run: |",
        f'{VALUE_INDENT}echo "Generating proxy configuration files for MCP tools with network restrictions..."',
    ]
    for name in names:
        config += proxy_config_lines(name, tools[name])
    config.append(f'{VALUE_INDENT}echo "Proxy configuration files generated."')

    start = [
        f"{STEP_INDENT}- name: Pre-pull images and start Squid proxy",
        f"{FIELD_INDENT}run: |",
        f"{VALUE_INDENT}set -e",
        f"{VALUE_INDENT}echo 'Pre-pulling Docker images for proxy-enabled MCP tools...'",
        f"{VALUE_INDENT}docker pull {SQUID_IMAGE}",
    ]
    for name in names:
        container = mcp_section(tools[name])["container"]
        start += [
            f"{VALUE_INDENT}echo 'Pulling {container} for tool {name}'",
            f"{VALUE_INDENT}docker pull {container}",
            f"{VALUE_INDENT}echo 'Starting squid-proxy service for {name}'",
            f"{VALUE_INDENT}docker compose -f docker-compose-{name}.yml up -d squid-proxy",
        ]
        start += iptables_lines(name)
    return [config, start]

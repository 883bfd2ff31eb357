"""Jinja2 templates for files generated inside workflow steps.

Available templates:
- squid.conf.j2: Squid egress proxy configuration
- allowed_domains.txt.j2: Proxy domain allow-list
- docker-compose.yml.j2: Proxied MCP container plus its Squid sidecar
- network_permissions.py.j2: Claude Code PreToolUse network hook
- safety_checks.sh.j2: Stop-time check that disables an expired workflow
- generate_git_patch.sh.j2: Exports the agent's commits as a patch file
- safe_outputs_prompt.md.j2: Safe output instructions appended to the prompt
"""

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

__all__ = ["render_template"]

_env: Environment | None = None


def _environment() -> Environment:
    global _env
    if _env is None:
        template_dir = Path(__file__).parent
        _env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=StrictUndefined,
        )
    return _env


def render_template(name: str, **context: Any) -> str:
    """Render a bundled template.

    Args:
        name: Template file name, e.g. "squid.conf.j2".
        **context: Template variables.

    Returns:
        Rendered text without a trailing newline.

    Raises:
        FileNotFoundError: If the template is missing from the installation.

    """
    try:
        template = _environment().get_template(name)
    except TemplateNotFound as e:
        raise FileNotFoundError(
            f"Template {name} not found. "
            "This may indicate a broken installation. "
            "Please reinstall gh-aw."
        ) from e
    return template.render(**context).rstrip("\n")

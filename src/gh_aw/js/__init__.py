"""JavaScript run by actions/github-script inside generated workflows.

These scripts are bundled as package resources and loaded via
importlib.resources. The compiler embeds them in `script: |` blocks.

Available scripts:
- setup_agent_output.cjs: Creates the JSONL file the agent writes safe outputs to
- collect_output.cjs: Validates and sanitizes the agent's JSONL output
- compute_text.cjs: Text of the triggering issue, PR or comment
- check_team_member.cjs: Whether the actor has admin or maintain access
- add_reaction.cjs: Adds a reaction to the triggering item
- create_issue.cjs, create_comment.cjs, create_pull_request.cjs,
  add_labels.cjs, update_issue.cjs, push_to_branch.cjs,
  create_discussion.cjs, create_pr_review_comment.cjs, missing_tool.cjs:
  One script per safe output job
- parse_claude_log.cjs, parse_codex_log.cjs, parse_generic_log.cjs:
  Step summary renderers for agent logs

Available functions:
- get_script(): Load a script by name
- format_script(): Indent a script for a `script: |` block
"""

from functools import lru_cache
from importlib import resources

__all__ = ["SCRIPT_INDENT", "format_script", "get_script"]

SCRIPT_INDENT = "            "


@lru_cache(maxsize=None)
def get_script(name: str) -> str:
    """Load a bundled script.

    Args:
        name: Script name without extension, e.g. "create_issue".

    Returns:
        Script source.

    Raises:
        FileNotFoundError: If the script is missing from the installation.

    """
    try:
        script_file = resources.files("gh_aw.js").joinpath(f"{name}.cjs")
        return script_file.read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError) as e:
        raise FileNotFoundError(
            f"Script {name}.cjs not found. "
            "This may indicate a broken installation. "
            "Please reinstall gh-aw."
        ) from e


def format_script(script: str) -> list[str]:
    """Indent script lines for a `script: |` block, dropping blank lines."""
    return [SCRIPT_INDENT + line for line in script.split("\n") if line.strip()]

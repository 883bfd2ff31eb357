"""YAML loading and dumping tuned for GitHub Actions workflows.

PyYAML follows YAML 1.1, where `on`, `off`, `yes` and `no` are booleans.
GitHub Actions reads workflows as YAML 1.2, so the `on:` trigger key must stay
a string both when reading frontmatter and when writing workflow sections.
"""

import re
from typing import Any

import yaml

_BOOL_TAG = "tag:yaml.org,2002:bool"
_BOOL_PATTERN = re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$")


def _strict_bool_resolvers(
    resolvers: dict[str, list[tuple[str, re.Pattern[str]]]],
) -> dict[str, list[tuple[str, re.Pattern[str]]]]:
    return {
        first: [(tag, regexp) for tag, regexp in entries if tag != _BOOL_TAG]
        for first, entries in resolvers.items()
    }


class FrontmatterLoader(yaml.SafeLoader):
    """SafeLoader that only treats true/false as booleans."""


FrontmatterLoader.yaml_implicit_resolvers = _strict_bool_resolvers(
    yaml.SafeLoader.yaml_implicit_resolvers
)
FrontmatterLoader.add_implicit_resolver(_BOOL_TAG, _BOOL_PATTERN, list("tTfF"))


class WorkflowDumper(yaml.SafeDumper):
    """SafeDumper that leaves `on` unquoted and indents block sequences."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)


WorkflowDumper.yaml_implicit_resolvers = _strict_bool_resolvers(
    yaml.SafeDumper.yaml_implicit_resolvers
)
WorkflowDumper.add_implicit_resolver(_BOOL_TAG, _BOOL_PATTERN, list("tTfF"))


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    # Multi-line strings dump as literal blocks
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_str(data)


WorkflowDumper.add_representer(str, _represent_str)


def load_yaml(text: str) -> Any:
    """Parse YAML text with the frontmatter loader.

    Raises:
        yaml.YAMLError: If the text is not valid YAML.

    """
    return yaml.load(text, Loader=FrontmatterLoader)  # noqa: S506 - SafeLoader subclass


def compose_yaml(text: str) -> yaml.Node | None:
    """Compose YAML text into a node tree that keeps source marks."""
    return yaml.compose(text, Loader=FrontmatterLoader)


def dump_yaml(data: Any) -> str:
    """Serialize data as block-style YAML without a trailing newline."""
    text = yaml.dump(
        data,
        Dumper=WorkflowDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=1000,
    )
    return text.rstrip("\n")


def dump_section(key: str, value: Any) -> str:
    """Serialize one top-level workflow section, e.g. `permissions: read-all`."""
    return dump_yaml({key: value})


def indent_block(text: str, indent: str) -> str:
    """Indent every non-empty line of a block of text."""
    return "\n".join(indent + line if line.strip() else line for line in text.split("\n"))


def dump_condition(condition: str) -> str:
    """Serialize an `if:` line, quoting the condition when a bare value would not parse.

    Conditions starting with "!" are wrapped in `${{ }}`, since GitHub Actions
    requires that form for negated expressions.
    """
    if condition.startswith("!"):
        condition = f"${{{{ {condition} }}}}"
    return dump_section("if", condition)

"""Engine configuration from frontmatter.

The `engine` key has two shapes:

    engine: claude

    engine:
      id: claude
      version: v0.0.56
      model: claude-3-5-sonnet-20241022
      max-turns: 5
      env:
        DEBUG: "1"

Turn limits and network policy may also be given at the top level
(`max-turns`, `network`, `allow-domains`). Both shapes are folded into one
EngineConfig; when a setting appears in both places the engine-level value
wins.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from gh_aw.core.exceptions import SemanticError

logger = logging.getLogger(__name__)

# Domains reachable under `network: defaults`
DEFAULT_ALLOWED_DOMAINS: tuple[str, ...] = (
    "api.github.com",
    "github.com",
    "raw.githubusercontent.com",
    "objects.githubusercontent.com",
    "codeload.github.com",
    "registry.npmjs.org",
    "pypi.org",
    "files.pythonhosted.org",
)


@dataclass(frozen=True)
class NetworkPermissions:
    """Egress policy for the agent.

    Attributes:
        mode: "defaults" to allow DEFAULT_ALLOWED_DOMAINS, or None.
        allowed: Extra allowed domains, "*.example.com" for subdomains.

    """

    mode: str | None = None
    allowed: tuple[str, ...] = ()

    def allowed_domains(self) -> list[str]:
        """Effective allow-list; empty means deny all."""
        domains: list[str] = list(DEFAULT_ALLOWED_DOMAINS) if self.mode == "defaults" else []
        for domain in self.allowed:
            if domain not in domains:
                domains.append(domain)
        return domains


@dataclass(frozen=True)
class EngineConfig:
    """Normalized engine selection.

    Attributes:
        id: Engine identifier as written (may be a legacy alias).
        version: Action or package version to install.
        model: Model name passed to the engine.
        max_turns: Turn limit, for engines that support one.
        env: Extra environment for the execution step.
        steps: Custom steps for the custom engine.
        network: Egress policy, or None when unrestricted.

    """

    id: str
    version: str = ""
    model: str = ""
    max_turns: int | None = None
    env: dict[str, str] = field(default_factory=dict)
    steps: tuple[dict[str, Any], ...] = ()
    network: NetworkPermissions | None = None


def parse_network(value: Any) -> NetworkPermissions | None:
    """Parse `network: defaults` or `network: {allowed: [...]}`."""
    if value is None:
        return None
    if value == "defaults":
        return NetworkPermissions(mode="defaults")
    if isinstance(value, dict):
        allowed = value.get("allowed") or []
        return NetworkPermissions(
            mode="defaults" if value.get("mode") == "defaults" else None,
            allowed=tuple(str(d) for d in allowed),
        )
    return None


def engine_id_of(setting: Any) -> str:
    """Identifier of a string or object engine setting, or ""."""
    if isinstance(setting, str):
        return setting
    if isinstance(setting, dict) and isinstance(setting.get("id"), str):
        return setting["id"]
    return ""


def extract_engine_config(frontmatter: dict[str, Any]) -> EngineConfig | None:
    """Build an EngineConfig from the frontmatter, or None when no engine is set.

    Top-level `max-turns`, `network` and `allow-domains` are folded in.
    """
    engine = frontmatter.get("engine")
    top_max_turns = frontmatter.get("max-turns")
    top_network = parse_network(frontmatter.get("network"))
    allow_domains = frontmatter.get("allow-domains")
    if allow_domains:
        base = top_network or NetworkPermissions()
        top_network = NetworkPermissions(
            mode=base.mode, allowed=base.allowed + tuple(str(d) for d in allow_domains)
        )

    if isinstance(engine, str):
        config = EngineConfig(id=engine)
    elif isinstance(engine, dict):
        config = EngineConfig(
            id=engine_id_of(engine),
            version=str(engine.get("version") or ""),
            model=str(engine.get("model") or ""),
            max_turns=_as_int(engine.get("max-turns")),
            env={str(k): str(v) for k, v in (engine.get("env") or {}).items()},
            steps=tuple(s for s in engine.get("steps") or () if isinstance(s, dict)),
            network=parse_network(engine.get("network")),
        )
    elif top_max_turns is None and top_network is None:
        return None
    else:
        config = EngineConfig(id="")

    max_turns = config.max_turns
    if max_turns is None:
        max_turns = _as_int(top_max_turns)
    elif top_max_turns is not None and _as_int(top_max_turns) != max_turns:
        logger.warning(
            "Both engine.max-turns (%s) and max-turns (%s) are set; using engine.max-turns",
            max_turns,
            top_max_turns,
        )

    network = config.network if config.network is not None else top_network
    return EngineConfig(
        id=config.id,
        version=config.version,
        model=config.model,
        max_turns=max_turns,
        env=config.env,
        steps=config.steps,
        network=network,
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def validate_engine_conflicts(main_engine: str, included_engines: Sequence[Any]) -> None:
    """Fail when an included file names a different engine than the main file.

    Raises:
        SemanticError: On the first conflicting included engine.

    """
    if not main_engine:
        return
    for setting in included_engines:
        included = engine_id_of(setting)
        if included and included != main_engine:
            raise SemanticError(
                f"engine conflict: main workflow specifies engine '{main_engine}' but "
                f"included workflow specifies engine '{included}'. Remove the engine "
                "specification from either the main workflow or the included workflow"
            )


def merge_engine_configs(main_engine: str, included_engines: Sequence[Any]) -> str:
    """Return the main engine id, else the first included one, else ""."""
    if main_engine:
        return main_engine
    for setting in included_engines[:1]:
        return engine_id_of(setting)
    return ""

"""Pytest configuration and fixtures for gh-aw tests."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

FIXED_NOW = datetime(2025, 6, 1, 0, 0, 0)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset settings, engine registry and clock before and after each test.

    This ensures tests don't leak settings or a frozen clock between each
    other. Tests that need a fixed time use the fixed_clock fixture.
    """
    from gh_aw.core.settings import reset_settings
    from gh_aw.engines.registry import reset_engine_registry
    from gh_aw.workflow.time_delta import reset_clock

    reset_settings()
    reset_engine_registry()
    reset_clock()
    yield
    reset_settings()
    reset_engine_registry()
    reset_clock()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test from an empty directory so no .gh-aw.yaml is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fixed_clock() -> datetime:
    """Freeze the stop-after clock at FIXED_NOW."""
    from gh_aw.workflow.time_delta import set_clock

    set_clock(lambda: FIXED_NOW)
    return FIXED_NOW


@pytest.fixture
def write_workflow(tmp_path: Path) -> Callable[..., Path]:
    """Write a workflow document under tmp_path and return its path.

    Usage:
        def test_something(write_workflow):
            path = write_workflow("---\\non: push\\n---\\n# Title\\n")
    """

    def _write(content: str, name: str = "workflow.md") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write

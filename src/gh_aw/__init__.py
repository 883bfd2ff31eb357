"""gh-aw - compiler for agentic markdown workflows targeting GitHub Actions."""

from importlib.metadata import version

try:
    __version__ = version("gh-aw")
except Exception:
    __version__ = "0.0.0-dev"

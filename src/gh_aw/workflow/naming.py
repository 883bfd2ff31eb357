"""Job and file names derived from the workflow name."""

from __future__ import annotations

import re

_JOB_NAME_SEPARATORS = re.compile(r"[ :.,()/\\@]")
_FILE_NAME_SEPARATORS = re.compile(r'[ /\\:*?"<>|@]')
_DASH_RUN = re.compile(r"-{2,}")


def generate_job_name(workflow_name: str) -> str:
    """GitHub Actions job id for the main job.

    Examples:
        >>> generate_job_name("Weekly Research (v2)")
        'weekly-research-v2'
        >>> generate_job_name("2024 report")
        'workflow-2024-report'

    """
    name = _JOB_NAME_SEPARATORS.sub("-", workflow_name.lower())
    name = name.replace("'", "").replace('"', "")
    name = _DASH_RUN.sub("-", name).strip("-")
    if not name or not (name[0].isascii() and (name[0].isalpha() or name[0] == "_")):
        name = f"workflow-{name}"
    return name


def safe_file_name(workflow_name: str) -> str:
    """File-system safe stem used for the agent log and its artifact."""
    name = _FILE_NAME_SEPARATORS.sub("-", workflow_name).lower()
    name = _DASH_RUN.sub("-", name).strip("-")
    return name or "workflow"


def log_file_path(workflow_name: str) -> str:
    return f"/tmp/{safe_file_name(workflow_name)}.log"

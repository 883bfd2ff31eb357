"""Workflow compilation.

This module provides:
- Expression AST and renderer for GitHub Actions conditions
- Trigger, concurrency, tool and stop-time normalization
- Step and job builders, including safe output jobs
- Compiler turning workflow documents into `.lock.yml` files
"""

from gh_aw.workflow.compiler import Compiler, WorkflowData
from gh_aw.workflow.expressions import condition_tree, render
from gh_aw.workflow.jobs import Job, JobManager
from gh_aw.workflow.naming import generate_job_name, safe_file_name
from gh_aw.workflow.safe_outputs import build_safe_output_jobs, parse_safe_outputs
from gh_aw.workflow.time_delta import reset_clock, resolve_stop_time, set_clock

__all__ = [
    # Compiler
    "Compiler",
    "WorkflowData",
    # Expressions
    "condition_tree",
    "render",
    # Jobs
    "Job",
    "JobManager",
    "generate_job_name",
    "safe_file_name",
    # Safe outputs
    "build_safe_output_jobs",
    "parse_safe_outputs",
    # Stop time
    "reset_clock",
    "resolve_stop_time",
    "set_clock",
]

"""Job graph of a compiled workflow.

Jobs are added in the order they should appear in the output. Before
rendering, validate() checks that every `needs` edge points at a job in the
graph and that the graph has no cycle.

Usage:
    manager = JobManager()
    manager.add(Job(name="task", steps=(barrier,)))
    manager.add(Job(name="agent", needs=("task",), steps=steps))
    manager.validate()
    text = manager.render()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from gh_aw.core.exceptions import JobGraphError
from gh_aw.core.yamlutil import dump_condition, dump_section, dump_yaml, indent_block
from gh_aw.engines.base import GitHubActionStep

logger = logging.getLogger(__name__)

JOB_INDENT = "    "


@dataclass(frozen=True)
class Job:
    """One job of the workflow.

    Attributes:
        name: Job id.
        runs_on: Runner label, list of labels or runner group mapping.
        if_: Job condition without the `if:` key, or "".
        permissions: `read-all` style string, scope mapping, or None.
        needs: Jobs that must finish first.
        outputs: Job outputs, rendered sorted by name.
        steps: Pre-rendered steps.
        timeout_minutes: Job timeout, or None for the runner default.
        extra: Additional job keys rendered verbatim (custom jobs).

    """

    name: str
    runs_on: Any = "ubuntu-latest"
    if_: str = ""
    permissions: Any = None
    needs: tuple[str, ...] = ()
    outputs: dict[str, str] = field(default_factory=dict)
    steps: tuple[GitHubActionStep, ...] = ()
    timeout_minutes: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class JobManager:
    """Ordered collection of jobs with dependency checks."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def add(self, job: Job) -> None:
        """Add a job at the end.

        Raises:
            JobGraphError: If the name is empty or already taken.

        """
        if not job.name:
            raise JobGraphError("job name cannot be empty")
        if job.name in self._jobs:
            raise JobGraphError(f"job '{job.name}' already exists", job=job.name)
        self._jobs[job.name] = job
        logger.debug("Added job %s (needs: %s)", job.name, ", ".join(job.needs) or "-")

    def get(self, name: str) -> Job | None:
        return self._jobs.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def names(self) -> list[str]:
        """Job names in insertion order."""
        return list(self._jobs)

    def validate(self) -> None:
        """Check dependency edges and acyclicity.

        Raises:
            JobGraphError: On a dependency on a missing job or a cycle.

        """
        for job in self._jobs.values():
            for dep in job.needs:
                if dep not in self._jobs:
                    raise JobGraphError(
                        f"job '{job.name}' depends on non-existent job '{dep}'", job=job.name
                    )
        self._detect_cycles()

    def _detect_cycles(self) -> None:
        # 0 = unvisited, 1 = on the current path, 2 = done
        state = dict.fromkeys(self._jobs, 0)

        def visit(name: str) -> None:
            state[name] = 1
            for dep in self._jobs[name].needs:
                if state[dep] == 1:
                    raise JobGraphError(
                        f"cycle detected in job dependencies: job '{name}' has circular "
                        f"dependency through '{dep}'",
                        job=name,
                    )
                if state[dep] == 0:
                    visit(dep)
            state[name] = 2

        for name in self._jobs:
            if state[name] == 0:
                visit(name)

    def topological_order(self) -> list[str]:
        """Job names with dependencies first; ties broken alphabetically.

        Raises:
            JobGraphError: If the graph is invalid.

        """
        self.validate()
        remaining = {name: set(job.needs) for name, job in self._jobs.items()}
        order: list[str] = []
        while remaining:
            ready = sorted(name for name, deps in remaining.items() if not deps)
            for name in ready:
                order.append(name)
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)
        return order

    def render(self) -> str:
        """The `jobs:` section, jobs in insertion order, each followed by a blank line."""
        if not self._jobs:
            return "jobs:\n"
        return "jobs:\n" + "".join(render_job(job) for job in self._jobs.values())


def _section(key: str, value: Any) -> list[str]:
    return indent_block(dump_section(key, value), JOB_INDENT).split("\n")


def render_job(job: Job) -> str:
    lines = [f"  {job.name}:"]
    if len(job.needs) == 1:
        lines.append(f"{JOB_INDENT}needs: {job.needs[0]}")
    elif job.needs:
        lines.append(f"{JOB_INDENT}needs:")
        lines += [f"{JOB_INDENT}  - {dep}" for dep in job.needs]

    if "\n" in job.if_:
        lines.append(f"{JOB_INDENT}if: |")
        lines += [f"{JOB_INDENT}  {line}" for line in job.if_.split("\n")]
    elif job.if_:
        lines += indent_block(dump_condition(job.if_), JOB_INDENT).split("\n")

    if job.runs_on:
        lines += _section("runs-on", job.runs_on)
    if job.permissions:
        lines += _section("permissions", job.permissions)
    if job.timeout_minutes is not None:
        lines.append(f"{JOB_INDENT}timeout-minutes: {job.timeout_minutes}")
    if job.extra:
        lines += indent_block(dump_yaml(job.extra), JOB_INDENT).split("\n")

    if job.outputs:
        lines.append(f"{JOB_INDENT}outputs:")
        lines += [f"{JOB_INDENT}  {key}: {job.outputs[key]}" for key in sorted(job.outputs)]

    if job.steps:
        lines.append(f"{JOB_INDENT}steps:")
        for step in job.steps:
            lines += step
    return "\n".join(lines) + "\n\n"

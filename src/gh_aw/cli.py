"""Command line interface for gh-aw.

Commands:
    compile  Compile workflow documents into .lock.yml files
    engines  List the registered agentic engines
    metrics  Extract token usage, cost and error counts from an agent log
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from gh_aw import __version__
from gh_aw.core.exceptions import CompilerError, ConfigError, EngineNotFoundError, GhAwError
from gh_aw.core.settings import load_settings, set_settings
from gh_aw.engines.registry import get_engine_registry
from gh_aw.workflow.compiler import Compiler

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2

DEFAULT_WORKFLOWS_DIR = Path(".github/workflows")

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="gh-aw",
    help="Compile agentic markdown workflows into GitHub Actions workflows",
    no_args_is_help=True,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


def _error(message: str) -> None:
    err_console.print(f"[red]✗[/red] {message}", highlight=False)


def _warning(message: str) -> None:
    err_console.print(f"[yellow]⚠[/yellow] {message}", highlight=False)


def _success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}", highlight=False)


def _load_settings(settings_file: Path | None) -> None:
    try:
        set_settings(load_settings(settings_file))
        get_engine_registry().get_default_engine()
    except ConfigError as e:
        _error(f"Config error: {e}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    except EngineNotFoundError as e:
        _error(f"Config error: default_engine: {e}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None


def _collect_markdown_files(paths: list[Path]) -> list[Path]:
    """Expand directories to their `*.md` files, sorted."""
    files: list[Path] = []
    for path in paths or [DEFAULT_WORKFLOWS_DIR]:
        if path.is_dir():
            files.extend(sorted(path.glob("*.md")))
        else:
            files.append(path)
    return files


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"gh-aw {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Compile agentic markdown workflows into GitHub Actions workflows."""


@app.command("compile")
def compile_command(
    paths: list[Path] = typer.Argument(
        None,
        help="Workflow documents or directories (default: .github/workflows)",
    ),
    engine: str = typer.Option(
        "",
        "--engine",
        "-e",
        help="Override the engine of every workflow (e.g., 'claude', 'codex')",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file; only valid with a single workflow",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Warn about write permissions on the agent job",
    ),
    settings_file: Path | None = typer.Option(
        None,
        "--settings",
        help="Settings file (default: ./.gh-aw.yaml)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
) -> None:
    """Compile workflow documents into .lock.yml files.

    Examples:
        gh-aw compile                              # all of .github/workflows
        gh-aw compile triage.md -e codex           # one file, engine override
        gh-aw compile triage.md -o /tmp/out.yml    # custom output path

    """
    _setup_logging(verbose)
    _load_settings(settings_file)

    files = _collect_markdown_files(paths or [])
    if not files:
        _error("No workflow documents found")
        raise typer.Exit(code=EXIT_ERROR)
    if output is not None and len(files) > 1:
        _error("--output can only be used with a single workflow")
        raise typer.Exit(code=EXIT_ERROR)

    failures = 0
    for file in files:
        compiler = Compiler(engine_override=engine, strict=strict or None)
        try:
            lock_file = compiler.compile_file(file, output)
        except CompilerError as e:
            failures += 1
            if e.diagnostics:
                for diagnostic in e.diagnostics:
                    err_console.print(diagnostic.format(), highlight=False, markup=False)
            else:
                _error(f"{file}:1:1: error: {e.message}")
            continue
        except GhAwError as e:
            failures += 1
            _error(f"{file}:1:1: error: {e}")
            continue
        for warning in compiler.warnings:
            _warning(f"{file}: {warning}")
        _success(f"{file} -> {lock_file}")

    if failures:
        _error(f"Compilation failed for {failures} of {len(files)} workflow(s)")
        raise typer.Exit(code=EXIT_ERROR)


@app.command("engines")
def engines_command(
    settings_file: Path | None = typer.Option(
        None,
        "--settings",
        help="Settings file (default: ./.gh-aw.yaml)",
    ),
) -> None:
    """List registered engines and their capabilities."""
    _load_settings(settings_file)
    registry = get_engine_registry()
    default_engine = registry.get_default_engine().id

    table = Table(title="Agentic engines")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Experimental")
    table.add_column("Tool allow-list")
    table.add_column("HTTP MCP")
    table.add_column("Max turns")
    table.add_column("Description", style="dim")

    def flag(value: bool) -> str:
        return "[green]yes[/green]" if value else "no"

    for engine in registry.all_engines():
        engine_id = f"{engine.id} (default)" if engine.id == default_engine else engine.id
        table.add_row(
            engine_id,
            engine.display_name,
            flag(engine.experimental),
            flag(engine.supports_tools_whitelist),
            flag(engine.supports_http_transport),
            flag(engine.supports_max_turns),
            engine.description,
        )
    console.print(table)


@app.command("metrics")
def metrics_command(
    log_file: Path = typer.Argument(..., help="Agent log file"),
    engine: str = typer.Option(
        ...,
        "--engine",
        "-e",
        help="Engine that produced the log",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
) -> None:
    """Print token usage, estimated cost, errors and warnings of an agent log."""
    _setup_logging(verbose)
    try:
        agentic_engine = get_engine_registry().resolve(engine)
    except EngineNotFoundError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None

    try:
        content = log_file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        _error(f"Failed to read {log_file}: {e}")
        raise typer.Exit(code=EXIT_ERROR) from None

    metrics = agentic_engine.parse_log_metrics(content, verbose=verbose)
    table = Table(title=f"{agentic_engine.display_name} metrics: {log_file.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Token usage", str(metrics.token_usage))
    table.add_row("Estimated cost", f"{metrics.estimated_cost:.4f}")
    table.add_row("Errors", str(metrics.error_count))
    table.add_row("Warnings", str(metrics.warning_count))
    console.print(table)


if __name__ == "__main__":
    app()

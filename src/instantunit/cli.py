"""CLI entry point for the InstantUnit test runner.

Provides ``run`` and ``list`` sub-commands using Click and Rich for
output formatting.  Options can also be set from the environment with
the ``INSTANTUNIT_`` prefix (e.g. ``INSTANTUNIT_RUN_VERBOSE=1``); a
``.env`` file in the working directory is loaded first.

Usage::

    instantunit run tests/ -k "Vec::*" --verbose
    instantunit run tests/test_math.py --teardown-on-setup-abort
    instantunit list tests/
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from instantunit.console import ConsoleReporter
from instantunit.loader import load
from instantunit.runner.engine import ExecutionEngine, exit_code, pattern_filter
from instantunit.runner.errors import LoadError
from instantunit.runner.registry import CaseUnit

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group(context_settings={"auto_envvar_prefix": "INSTANTUNIT"})
@click.version_option(package_name="instantunit")
def main() -> None:
    """InstantUnit - run suites and cases with graduated-severity checks."""
    load_dotenv(".env")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--pattern",
    "-k",
    "patterns",
    multiple=True,
    help="Only run cases matching this glob (SUITE::CASE, SUITE or CASE).",
)
@click.option("--verbose", "-v", is_flag=True, help="Print every check and debug logs.")
@click.option("--quiet", "-q", is_flag=True, help="Only print failures and the totals.")
@click.option(
    "--teardown-on-setup-abort",
    is_flag=True,
    help="Run registered suite cleanups even when setup aborted.",
)
@click.option("--session-name", default="", help="Session name (default: from the date).")
@click.pass_context
def run(
    ctx: click.Context,
    paths: tuple[str, ...],
    patterns: tuple[str, ...],
    verbose: bool,
    quiet: bool,
    teardown_on_setup_abort: bool,
    session_name: str,
) -> None:
    """Discover tests in PATHS (files, directories or modules) and run them."""
    _setup_logging(verbose)

    try:
        registry = load(paths)
    except LoadError as exc:
        console.print(f"[red]Failed to load tests:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    engine = ExecutionEngine(
        registry,
        reporter=ConsoleReporter(console=console, verbose=verbose, quiet=quiet),
        case_filter=pattern_filter(patterns) if patterns else None,
        session_name=session_name,
        teardown_on_setup_abort=teardown_on_setup_abort,
    )
    session = engine.run()
    ctx.exit(exit_code(session))


@main.command(name="list")
@click.argument("paths", nargs=-1, required=True)
def list_units(paths: tuple[str, ...]) -> None:
    """List the test units discovered in PATHS without running them."""
    try:
        registry = load(paths)
    except LoadError as exc:
        console.print(f"[red]Failed to load tests:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    if not len(registry):
        console.print("[yellow]No tests found.[/yellow]")
        return

    table = Table(title="Discovered Tests")
    table.add_column("Kind", style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Location", overflow="fold")

    for unit in registry:
        kind = "case" if isinstance(unit, CaseUnit) else "suite"
        name = escape(unit.name)
        if registry.is_duplicate(unit):
            name += " [red](duplicate)[/red]"
        table.add_row(kind, name, escape(str(unit.location)))

    console.print(table)


def run_tests(argv: Sequence[str] | None = None) -> int:
    """Run the ``run`` command with *argv* and return its exit status.

    Args:
        argv: Arguments for ``instantunit run`` (paths and options).

    Returns:
        0 iff every case passed and no fatal error occurred.
    """
    try:
        result = main.main(
            args=["run", *(argv or ())],
            prog_name="instantunit",
            standalone_mode=False,
        )
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    main()

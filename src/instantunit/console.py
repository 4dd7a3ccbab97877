"""Terminal reporter built on ``rich``.

Prints one line per case as it finishes, the failure records of failing
cases, a panel for suite- and session-level faults, and a summary table
when the session ends.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from instantunit.runner.context import (
    CaseContext,
    CheckContext,
    SessionContext,
    StepContext,
    SuiteContext,
)
from instantunit.runner.models import Fault
from instantunit.runner.reporter import NullReporter


class ConsoleReporter(NullReporter):
    """Human-readable progress and summary output.

    Args:
        console: Target console; a new stdout console when omitted.
        verbose: Also print every EXPECT/ASSERT result and every step.
        quiet: Print only failures and the final summary.
    """

    def __init__(
        self,
        console: Console | None = None,
        verbose: bool = False,
        quiet: bool = False,
    ) -> None:
        self._console = console or Console()
        self._verbose = verbose and not quiet
        self._quiet = quiet

    @property
    def console(self) -> Console:
        return self._console

    def on_session_start(self, session: SessionContext) -> None:
        if self._quiet:
            return
        self._console.print(
            f"[bold green]Running session:[/bold green] {escape(session.name)} "
            f"({session.suites_total} suite(s))"
        )

    def on_suite_start(self, suite: SuiteContext) -> None:
        if self._quiet:
            return
        self._console.print(f"[bold cyan]{escape(suite.name)}[/bold cyan]")

    def on_check_end(self, check: CheckContext) -> None:
        if not self._verbose:
            return
        mark = "[green]ok[/green]" if check.passed else "[red]FAILED[/red]"
        self._console.print(
            f"    {mark} {check.severity.value} {escape(check.condition_text)} "
            f"[dim]{escape(str(check.location))}[/dim]"
        )

    def on_step(self, step: StepContext) -> None:
        if not self._verbose:
            return
        self._console.print(
            f"    [blue]step[/blue] {escape(step.text)} "
            f"[dim]{escape(str(step.location))}[/dim]"
        )

    def on_message(self, text: str) -> None:
        if self._quiet:
            return
        self._console.print(f"    {escape(text)}")

    def on_case_end(self, case: CaseContext) -> None:
        if case.error_on_start:
            label = "[bold red]ERROR[/bold red]"
        elif case.passed:
            label = "[green]PASS[/green]"
        else:
            label = "[red]FAIL[/red]"

        if case.passed and self._quiet:
            return
        name = case.full_name if self._quiet else case.name
        self._console.print(f"  {label} {escape(name)}")
        for failure in case.failures:
            self._console.print(
                f"      [red]{failure.kind.value}[/red] {escape(failure.message)} "
                f"[dim]{escape(str(failure.location))}[/dim]"
            )

    def on_suite_end(self, suite: SuiteContext) -> None:
        if suite.error_on_start:
            self._console.print(
                f"  [bold red]Suite '{escape(suite.name)}' failed to start[/bold red]"
            )
        elif suite.aborted:
            self._console.print(
                f"  [yellow]Suite '{escape(suite.name)}' aborted after "
                f"{suite.executed} of {suite.cases_total} case(s)[/yellow]"
            )

    def on_fatal_error(self, fault: Fault) -> None:
        # Case-level faults are printed with the case's failure records.
        if fault.case_name:
            return
        self._console.print(
            Panel(
                f"{escape(fault.message)}\n[dim]{escape(str(fault.location))}[/dim]",
                title=f"{fault.kind.value} in {escape(fault.suite_name or 'session')}",
                border_style="red",
            )
        )

    def on_session_end(self, session: SessionContext) -> None:
        if not self._quiet:
            self._print_summary(session)

        counts = (
            f"{session.executed} executed, {session.passed_count} passed, "
            f"{session.failed_count} failed, {session.error_count} error(s) "
            f"in {session.duration:.2f}s"
        )
        if session.fatal:
            self._console.print(f"[bold red]Session aborted:[/bold red] {counts}")
        elif session.all_passed:
            self._console.print(f"[bold green]All tests passed:[/bold green] {counts}")
        else:
            self._console.print(f"[bold red]Tests failed:[/bold red] {counts}")

    def _print_summary(self, session: SessionContext) -> None:
        if not session.suites:
            return

        table = Table(title=f"Session {escape(session.name)}")
        table.add_column("Suite", style="cyan")
        table.add_column("Cases", justify="right")
        table.add_column("Executed", justify="right")
        table.add_column("Passed", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Errors", justify="right", style="red")
        table.add_column("Status")

        for suite in session.suites:
            if suite.error_on_start:
                status = "[bold red]error[/bold red]"
            elif suite.aborted:
                status = "[yellow]aborted[/yellow]"
            elif suite.passed:
                status = "[green]passed[/green]"
            else:
                status = "[red]failed[/red]"
            table.add_row(
                escape(suite.name),
                str(suite.cases_total),
                str(suite.executed),
                str(suite.passed_count),
                str(suite.failed_count),
                str(suite.error_count),
                status,
            )

        self._console.print(table)

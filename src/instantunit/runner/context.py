"""Context records for every activity level.

Each level (session, suite, case, check) is one flat record; steps
announced inside a case get an identity-only record.  Identity
fields are readable as soon as the engine enters the scope; the
"after" fields (verdict, end timing, totals) are gated by a finalized
flag and raise :class:`UsageError` when read before the engine closes
the scope.  Only the engine mutates these records; reporters receive
them as borrowed references.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime

from instantunit.runner.errors import FailureKind, UsageError
from instantunit.runner.models import (
    CheckInvocation,
    FailureRecord,
    Severity,
    SourceLocation,
    Statistics,
)

DEFAULT_SUITE_NAME = "DEFAULT"


class _Finalizable:
    """Shared gating logic for "after" fields."""

    _finalized: bool

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _require_finalized(self, attribute: str) -> None:
        if not self._finalized:
            raise UsageError(
                f"{type(self).__name__}.{attribute} is only available after "
                f"the activity has finished"
            )

    def _require_open(self, action: str) -> None:
        if self._finalized:
            raise UsageError(
                f"Cannot {action}: {type(self).__name__} is already finalized"
            )


@dataclass(eq=False)
class _Timing(_Finalizable):
    """Wall-clock and monotonic start/end stamps."""

    start_time: datetime = field(default_factory=datetime.now)
    start_monotonic: float = field(default_factory=time.monotonic)
    _end_time: datetime | None = field(default=None, init=False, repr=False)
    _end_monotonic: float = field(default=0.0, init=False, repr=False)

    def _stamp_end(self) -> None:
        self._end_time = datetime.now()
        self._end_monotonic = time.monotonic()

    @property
    def end_time(self) -> datetime:
        self._require_finalized("end_time")
        assert self._end_time is not None
        return self._end_time

    @property
    def duration(self) -> float:
        """Elapsed seconds measured on the monotonic clock."""
        self._require_finalized("duration")
        return self._end_monotonic - self.start_monotonic


@dataclass(eq=False)
class CheckContext(_Finalizable):
    """A single EXPECT/ASSERT evaluation.

    Lives for one ``on_check_start`` / ``on_check_end`` pair.
    """

    case: CaseContext
    severity: Severity
    invocation: CheckInvocation
    _finalized: bool = field(default=False, init=False, repr=False)

    @property
    def condition_text(self) -> str:
        return self.invocation.condition_text

    @property
    def operator(self) -> str | None:
        return self.invocation.operator

    @property
    def location(self) -> SourceLocation:
        return self.invocation.location

    @property
    def passed(self) -> bool:
        self._require_finalized("passed")
        return self.invocation.outcome

    @property
    def failed(self) -> bool:
        self._require_finalized("failed")
        return not self.invocation.outcome

    def finalize(self) -> None:
        self._require_open("finalize check")
        self._finalized = True


@dataclass(eq=False)
class StepContext:
    """A step announced by a case body; has no outcome of its own."""

    case: CaseContext
    text: str
    location: SourceLocation = field(default_factory=SourceLocation)


@dataclass(eq=False)
class CaseContext(_Finalizable):
    """One test case execution inside a suite."""

    name: str
    location: SourceLocation
    suite: SuiteContext
    _failures: list[FailureRecord] = field(default_factory=list, init=False, repr=False)
    _checks_passed: int = field(default=0, init=False, repr=False)
    _checks_failed: int = field(default=0, init=False, repr=False)
    _error_on_start: bool = field(default=False, init=False, repr=False)
    _finalized: bool = field(default=False, init=False, repr=False)

    @property
    def full_name(self) -> str:
        return f"{self.suite.name}::{self.name}"

    # -- mutation (engine and evaluator only) ---------------------------

    def record_check(self, passed: bool) -> None:
        self._require_open("record check")
        if passed:
            self._checks_passed += 1
        else:
            self._checks_failed += 1

    def add_failure(self, record: FailureRecord) -> None:
        self._require_open("add failure")
        self._failures.append(record)
        if record.kind == FailureKind.STARTUP_FAULT:
            self._error_on_start = True

    def finalize(self) -> None:
        self._require_open("finalize case")
        self._finalized = True

    # -- after fields ---------------------------------------------------

    @property
    def passed(self) -> bool:
        self._require_finalized("passed")
        return not self._failures

    @property
    def failed(self) -> bool:
        self._require_finalized("failed")
        return bool(self._failures) and not self._error_on_start

    @property
    def error_on_start(self) -> bool:
        self._require_finalized("error_on_start")
        return self._error_on_start

    @property
    def checks_passed(self) -> int:
        self._require_finalized("checks_passed")
        return self._checks_passed

    @property
    def checks_failed(self) -> int:
        self._require_finalized("checks_failed")
        return self._checks_failed

    @property
    def failures(self) -> list[FailureRecord]:
        self._require_finalized("failures")
        return list(self._failures)


@dataclass(eq=False)
class SuiteContext(_Timing):
    """A named group of cases sharing setup and teardown."""

    name: str = DEFAULT_SUITE_NAME
    location: SourceLocation = field(default_factory=SourceLocation)
    session: SessionContext | None = None
    cases: list[CaseContext] = field(default_factory=list)
    _stats: Statistics = field(default_factory=Statistics, init=False, repr=False)
    _error_on_start: bool = field(default=False, init=False, repr=False)
    _aborted: bool = field(default=False, init=False, repr=False)
    _finalized: bool = field(default=False, init=False, repr=False)

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_SUITE_NAME

    # -- mutation (engine only) -----------------------------------------

    def declare_cases(self, count: int) -> None:
        """Raise the number of known case positions to *count*."""
        self._require_open("declare cases")
        self._stats.total = max(self._stats.total, count)

    def record_case(self, case: CaseContext) -> None:
        """Fold a finalized case into the suite counters."""
        self._require_open("record case")
        self.cases.append(case)
        if case.error_on_start:
            self._stats.errors += 1
        else:
            self._stats.record(case.passed)

    def record_startup_error(self) -> None:
        """Count a position that never reached its case body."""
        self._require_open("record startup error")
        self._stats.errors += 1

    def mark_error_on_start(self) -> None:
        self._require_open("mark error on start")
        self._error_on_start = True
        self._aborted = True

    def mark_aborted(self) -> None:
        self._require_open("mark aborted")
        self._aborted = True

    def finalize(self) -> None:
        self._require_open("finalize suite")
        self._stamp_end()
        self._finalized = True

    @property
    def statistics(self) -> Statistics:
        self._require_finalized("statistics")
        return Statistics(**vars(self._stats))

    @property
    def cases_total(self) -> int:
        self._require_finalized("cases_total")
        return self._stats.total

    @property
    def executed(self) -> int:
        self._require_finalized("executed")
        return self._stats.executed

    @property
    def passed_count(self) -> int:
        self._require_finalized("passed_count")
        return self._stats.passed

    @property
    def failed_count(self) -> int:
        self._require_finalized("failed_count")
        return self._stats.failed

    @property
    def error_count(self) -> int:
        self._require_finalized("error_count")
        return self._stats.errors

    @property
    def error_on_start(self) -> bool:
        """Whether setup failed before any case body could run (StartupFault)."""
        self._require_finalized("error_on_start")
        return self._error_on_start

    @property
    def aborted(self) -> bool:
        """Whether remaining case positions were skipped."""
        self._require_finalized("aborted")
        return self._aborted

    @property
    def passed(self) -> bool:
        self._require_finalized("passed")
        return not self.failed

    @property
    def failed(self) -> bool:
        self._require_finalized("failed")
        return bool(self._stats.failed or self._stats.errors or self._error_on_start)


def default_session_name(when: datetime | None = None) -> str:
    """Build a session name from the start date."""
    when = when or datetime.now()
    return f"session-{when.isoformat(timespec='seconds')}"


@dataclass(eq=False)
class SessionContext(_Timing):
    """The whole run."""

    name: str = ""
    suites_total: int = 0
    suites: list[SuiteContext] = field(default_factory=list)
    _stats: Statistics = field(default_factory=Statistics, init=False, repr=False)
    _fatal: bool = field(default=False, init=False, repr=False)
    _finalized: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = default_session_name(self.start_time)

    def add_suite(self, suite: SuiteContext) -> None:
        self._require_open("add suite")
        self.suites.append(suite)

    def mark_fatal(self) -> None:
        self._require_open("mark fatal")
        self._fatal = True

    def finalize(self) -> None:
        """Close the session; counters become the sum over its suites."""
        self._require_open("finalize session")
        totals = Statistics()
        for suite in self.suites:
            totals.merge(suite._stats)
        self._stats = totals
        self._stamp_end()
        self._finalized = True

    @property
    def statistics(self) -> Statistics:
        self._require_finalized("statistics")
        return Statistics(**vars(self._stats))

    @property
    def cases_total(self) -> int:
        self._require_finalized("cases_total")
        return self._stats.total

    @property
    def executed(self) -> int:
        self._require_finalized("executed")
        return self._stats.executed

    @property
    def passed_count(self) -> int:
        self._require_finalized("passed_count")
        return self._stats.passed

    @property
    def failed_count(self) -> int:
        self._require_finalized("failed_count")
        return self._stats.failed

    @property
    def error_count(self) -> int:
        self._require_finalized("error_count")
        return self._stats.errors

    @property
    def fatal(self) -> bool:
        """Whether a SANITY_SESSION failure stopped the run."""
        self._require_finalized("fatal")
        return self._fatal

    @property
    def all_passed(self) -> bool:
        self._require_finalized("all_passed")
        return self._stats.failed == 0 and self._stats.errors == 0 and not self._fatal

    @property
    def passed(self) -> bool:
        return self.all_passed

    @property
    def failed(self) -> bool:
        self._require_finalized("failed")
        return not self.all_passed

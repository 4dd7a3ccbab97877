"""Runner data models.

Defines severities, control signals, check invocations, statistics
counters and fault records shared by the evaluator, the engine and the
reporters.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from instantunit.runner.errors import FailureKind


class ControlSignal(str, enum.Enum):
    """Tagged result telling the caller which scope must stop.

    Signals travel upward by return value: a case guard returns one to
    the suite loop, the suite loop returns one to the session loop.
    """

    CONTINUE = "continue"
    ABORT_CASE = "abort_case"
    ABORT_SUITE = "abort_suite"
    ABORT_SESSION = "abort_session"

    @property
    def rank(self) -> int:
        return _SIGNAL_RANK[self]

    def escalate(self, other: ControlSignal) -> ControlSignal:
        """Return the more disruptive of ``self`` and *other*."""
        return self if self.rank >= other.rank else other


_SIGNAL_RANK = {
    ControlSignal.CONTINUE: 0,
    ControlSignal.ABORT_CASE: 1,
    ControlSignal.ABORT_SUITE: 2,
    ControlSignal.ABORT_SESSION: 3,
}


class Severity(str, enum.Enum):
    """Escalation level of a check, from least to most disruptive."""

    EXPECT = "expect"
    ASSERT = "assert"
    SANITY_CASE = "sanity_case"
    SANITY_SUITE = "sanity_suite"
    SANITY_SESSION = "sanity_session"

    @property
    def reports(self) -> bool:
        """Whether checks of this severity produce reporter events and stats.

        SANITY checks are silent: they never show up as check events and
        never touch check counters.
        """
        return self in (Severity.EXPECT, Severity.ASSERT)

    @property
    def signal_on_fail(self) -> ControlSignal:
        return _FAIL_SIGNALS[self]

    @property
    def failure_kind(self) -> FailureKind:
        return _FAILURE_KINDS[self]


_FAIL_SIGNALS = {
    Severity.EXPECT: ControlSignal.CONTINUE,
    Severity.ASSERT: ControlSignal.ABORT_CASE,
    Severity.SANITY_CASE: ControlSignal.ABORT_CASE,
    Severity.SANITY_SUITE: ControlSignal.ABORT_SUITE,
    Severity.SANITY_SESSION: ControlSignal.ABORT_SESSION,
}

_FAILURE_KINDS = {
    Severity.EXPECT: FailureKind.EXPECTATION_FAILURE,
    Severity.ASSERT: FailureKind.ASSERTION_FAILURE,
    Severity.SANITY_CASE: FailureKind.SANITY_CASE,
    Severity.SANITY_SUITE: FailureKind.SANITY_SUITE,
    Severity.SANITY_SESSION: FailureKind.SANITY_SESSION,
}


@dataclass(frozen=True)
class SourceLocation:
    """File and line a unit or check was declared at."""

    file: str = ""
    line: int = 0

    def __str__(self) -> str:
        if not self.file:
            return "<unknown>"
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class CheckInvocation:
    """Everything the capture layer knows about a single check call.

    Attributes:
        outcome: The already-computed boolean result.
        condition_text: Raw text of the checked condition.
        operator: Comparison operator, or ``None`` for a plain boolean.
        lhs_text: Source text of the left operand.
        lhs_rendered: ``repr`` of the left operand value.
        rhs_text: Source text of the right operand.
        rhs_rendered: ``repr`` of the right operand value.
        location: Where the check was written.
    """

    outcome: bool
    condition_text: str = ""
    operator: str | None = None
    lhs_text: str = ""
    lhs_rendered: str = ""
    rhs_text: str = ""
    rhs_rendered: str = ""
    location: SourceLocation = field(default_factory=SourceLocation)

    @property
    def is_comparison(self) -> bool:
        return self.operator is not None

    def describe(self) -> str:
        """One-line explanation used in failure records."""
        text = self.condition_text or "<condition>"
        if self.operator == "call":
            return f"{text} returned false"
        if self.operator is not None:
            return (
                f"{text} is false "
                f"(left: {self.lhs_rendered}, right: {self.rhs_rendered})"
            )
        return f"{text} is false"


@dataclass
class Statistics:
    """Case counters for one level of the hierarchy.

    ``errors`` counts startup faults: positions that never reached their
    case body.  They are outside ``executed``.
    """

    total: int = 0
    executed: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0

    def record(self, passed: bool) -> None:
        """Count one executed case."""
        self.executed += 1
        if passed:
            self.passed += 1
        else:
            self.failed += 1

    def merge(self, other: Statistics) -> None:
        """Add *other*'s counters to this one."""
        self.total += other.total
        self.executed += other.executed
        self.passed += other.passed
        self.failed += other.failed
        self.errors += other.errors

    def is_consistent(self) -> bool:
        """Check ``passed + failed <= executed <= total``."""
        return (
            min(self.total, self.executed, self.passed, self.failed, self.errors) >= 0
            and self.passed + self.failed <= self.executed <= self.total
        )


@dataclass(frozen=True)
class FailureRecord:
    """One failure attached to a case.

    Attributes:
        kind: Taxonomy entry.
        message: Human-readable description.
        location: Where the failure originated, when known.
    """

    kind: FailureKind
    message: str
    location: SourceLocation = field(default_factory=SourceLocation)


@dataclass(frozen=True)
class Fault:
    """Payload for :meth:`Reporter.on_fatal_error`.

    Attributes:
        kind: Taxonomy entry.
        message: Human-readable description.
        suite_name: Suite the fault happened in.
        case_name: Case the fault is attributed to, if any.
        location: Where the fault originated, when known.
        exception: The Python exception behind an uncaught fault.
    """

    kind: FailureKind
    message: str
    suite_name: str = ""
    case_name: str = ""
    location: SourceLocation = field(default_factory=SourceLocation)
    exception: BaseException | None = None

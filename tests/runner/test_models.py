"""Tests for runner data models: signals, severities, invocations, statistics."""

import pytest

from instantunit.runner.errors import FailureKind
from instantunit.runner.models import (
    CheckInvocation,
    ControlSignal,
    Severity,
    SourceLocation,
    Statistics,
)


class TestControlSignal:
    def test_escalate_keeps_more_disruptive(self) -> None:
        assert ControlSignal.CONTINUE.escalate(ControlSignal.ABORT_CASE) == ControlSignal.ABORT_CASE
        assert ControlSignal.ABORT_SESSION.escalate(ControlSignal.ABORT_SUITE) == (
            ControlSignal.ABORT_SESSION
        )

    def test_escalate_same_signal(self) -> None:
        assert ControlSignal.ABORT_SUITE.escalate(ControlSignal.ABORT_SUITE) == (
            ControlSignal.ABORT_SUITE
        )

    def test_rank_order(self) -> None:
        ranks = [s.rank for s in ControlSignal]
        assert ranks == sorted(ranks)


class TestSeverity:
    @pytest.mark.parametrize(
        "severity, signal",
        [
            (Severity.EXPECT, ControlSignal.CONTINUE),
            (Severity.ASSERT, ControlSignal.ABORT_CASE),
            (Severity.SANITY_CASE, ControlSignal.ABORT_CASE),
            (Severity.SANITY_SUITE, ControlSignal.ABORT_SUITE),
            (Severity.SANITY_SESSION, ControlSignal.ABORT_SESSION),
        ],
    )
    def test_signal_on_fail(self, severity: Severity, signal: ControlSignal) -> None:
        assert severity.signal_on_fail == signal

    def test_only_expect_and_assert_report(self) -> None:
        assert [s for s in Severity if s.reports] == [Severity.EXPECT, Severity.ASSERT]

    def test_failure_kinds(self) -> None:
        assert Severity.EXPECT.failure_kind == FailureKind.EXPECTATION_FAILURE
        assert Severity.ASSERT.failure_kind == FailureKind.ASSERTION_FAILURE
        assert Severity.SANITY_SUITE.failure_kind.is_sanity
        assert not FailureKind.STARTUP_FAULT.is_sanity


class TestSourceLocation:
    def test_unknown(self) -> None:
        assert str(SourceLocation()) == "<unknown>"

    def test_file_and_line(self) -> None:
        assert str(SourceLocation("tests/test_vec.py", 12)) == "tests/test_vec.py:12"


class TestCheckInvocation:
    def test_describe_boolean(self) -> None:
        inv = CheckInvocation(outcome=False, condition_text="v.empty()")
        assert not inv.is_comparison
        assert inv.describe() == "v.empty() is false"

    def test_describe_comparison(self) -> None:
        inv = CheckInvocation(
            outcome=False,
            condition_text="len(v) == 3",
            operator="==",
            lhs_rendered="2",
            rhs_rendered="3",
        )
        assert inv.is_comparison
        assert inv.describe() == "len(v) == 3 is false (left: 2, right: 3)"

    def test_describe_predicate_call(self) -> None:
        inv = CheckInvocation(outcome=False, condition_text="is_near(1.0, 2.0, 0.1)", operator="call")
        assert inv.describe() == "is_near(1.0, 2.0, 0.1) returned false"

    def test_describe_without_text(self) -> None:
        assert CheckInvocation(outcome=False).describe() == "<condition> is false"


class TestStatistics:
    def test_record(self) -> None:
        stats = Statistics(total=3)
        stats.record(True)
        stats.record(False)
        assert (stats.executed, stats.passed, stats.failed) == (2, 1, 1)
        assert stats.is_consistent()

    def test_merge_sums_counters(self) -> None:
        a = Statistics(total=2, executed=2, passed=1, failed=1)
        b = Statistics(total=3, executed=1, passed=1, errors=1)
        a.merge(b)
        assert a == Statistics(total=5, executed=3, passed=2, failed=1, errors=1)

    def test_inconsistent_when_executed_exceeds_total(self) -> None:
        assert not Statistics(total=1, executed=2, passed=2).is_consistent()

    def test_inconsistent_when_negative(self) -> None:
        assert not Statistics(total=1, errors=-1).is_consistent()

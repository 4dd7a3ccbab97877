"""Tests for the finalized-gated context records."""

from datetime import datetime

import pytest

from instantunit.runner.context import (
    DEFAULT_SUITE_NAME,
    CaseContext,
    CheckContext,
    SessionContext,
    SuiteContext,
    default_session_name,
)
from instantunit.runner.errors import FailureKind, UsageError
from instantunit.runner.models import (
    CheckInvocation,
    FailureRecord,
    Severity,
    SourceLocation,
)


def _case(suite: SuiteContext, name: str = "case") -> CaseContext:
    return CaseContext(name=name, location=SourceLocation("t.py", 1), suite=suite)


def _finished_case(suite: SuiteContext, *failures: FailureKind) -> CaseContext:
    case = _case(suite)
    for kind in failures:
        case.add_failure(FailureRecord(kind=kind, message=kind.value))
    case.finalize()
    return case


class TestCheckContext:
    def test_identity_before_finalize(self) -> None:
        case = _case(SuiteContext(name="S"))
        inv = CheckInvocation(outcome=True, condition_text="x == 1", operator="==")
        check = CheckContext(case=case, severity=Severity.EXPECT, invocation=inv)
        assert check.condition_text == "x == 1"
        assert check.operator == "=="
        with pytest.raises(UsageError):
            _ = check.passed

    def test_verdict_after_finalize(self) -> None:
        case = _case(SuiteContext(name="S"))
        check = CheckContext(
            case=case, severity=Severity.ASSERT, invocation=CheckInvocation(outcome=False)
        )
        check.finalize()
        assert check.failed
        assert not check.passed

    def test_finalize_twice_raises(self) -> None:
        case = _case(SuiteContext(name="S"))
        check = CheckContext(case=case, severity=Severity.EXPECT, invocation=CheckInvocation(outcome=True))
        check.finalize()
        with pytest.raises(UsageError):
            check.finalize()


class TestCaseContext:
    def test_full_name(self) -> None:
        assert _case(SuiteContext(name="Vec"), "size").full_name == "Vec::size"

    def test_verdict_gated(self) -> None:
        case = _case(SuiteContext(name="S"))
        for attr in ("passed", "failed", "error_on_start", "failures", "checks_passed"):
            with pytest.raises(UsageError):
                getattr(case, attr)

    def test_passed_and_failed_exclusive(self) -> None:
        suite = SuiteContext(name="S")
        ok = _finished_case(suite)
        bad = _finished_case(suite, FailureKind.EXPECTATION_FAILURE)
        assert ok.passed and not ok.failed
        assert bad.failed and not bad.passed

    def test_startup_fault_is_error_not_failure(self) -> None:
        case = _finished_case(SuiteContext(name="S"), FailureKind.STARTUP_FAULT)
        assert case.error_on_start
        assert not case.passed
        assert not case.failed

    def test_record_check_counts(self) -> None:
        case = _case(SuiteContext(name="S"))
        case.record_check(True)
        case.record_check(False)
        case.record_check(True)
        case.finalize()
        assert (case.checks_passed, case.checks_failed) == (2, 1)

    def test_no_mutation_after_finalize(self) -> None:
        case = _finished_case(SuiteContext(name="S"))
        with pytest.raises(UsageError):
            case.record_check(True)
        with pytest.raises(UsageError):
            case.add_failure(FailureRecord(kind=FailureKind.ASSERTION_FAILURE, message="late"))


class TestSuiteContext:
    def test_default_suite(self) -> None:
        assert SuiteContext().is_default
        assert SuiteContext().name == DEFAULT_SUITE_NAME
        assert not SuiteContext(name="Vec").is_default

    def test_record_case_rolls_up(self) -> None:
        suite = SuiteContext(name="S")
        suite.declare_cases(3)
        suite.record_case(_finished_case(suite))
        suite.record_case(_finished_case(suite, FailureKind.ASSERTION_FAILURE))
        suite.record_case(_finished_case(suite, FailureKind.STARTUP_FAULT))
        suite.finalize()
        assert suite.cases_total == 3
        assert suite.executed == 2
        assert suite.passed_count == 1
        assert suite.failed_count == 1
        assert suite.error_count == 1
        assert suite.failed
        assert suite.statistics.is_consistent()
        assert len(suite.cases) == 3

    def test_declare_cases_only_grows(self) -> None:
        suite = SuiteContext(name="S")
        suite.declare_cases(4)
        suite.declare_cases(2)
        suite.finalize()
        assert suite.cases_total == 4

    def test_error_on_start_implies_aborted(self) -> None:
        suite = SuiteContext(name="S")
        suite.mark_error_on_start()
        suite.finalize()
        assert suite.error_on_start
        assert suite.aborted
        assert suite.failed

    def test_timing(self) -> None:
        suite = SuiteContext(name="S")
        with pytest.raises(UsageError):
            _ = suite.duration
        suite.finalize()
        assert suite.duration >= 0
        assert suite.end_time >= suite.start_time

    def test_statistics_is_a_copy(self) -> None:
        suite = SuiteContext(name="S")
        suite.finalize()
        suite.statistics.passed = 99
        assert suite.passed_count == 0


class TestSessionContext:
    def test_generated_name(self) -> None:
        assert SessionContext().name.startswith("session-")
        assert SessionContext(name="nightly").name == "nightly"

    def test_default_session_name_format(self) -> None:
        when = datetime(2026, 10, 19, 12, 0, 0)
        assert default_session_name(when) == "session-2026-10-19T12:00:00"

    def test_totals_are_sum_of_suites(self) -> None:
        session = SessionContext(name="s", suites_total=2)
        for failures in ((), (FailureKind.EXPECTATION_FAILURE,)):
            suite = SuiteContext(name=f"S{len(failures)}", session=session)
            suite.declare_cases(1)
            suite.record_case(_finished_case(suite, *failures))
            suite.finalize()
            session.add_suite(suite)
        session.finalize()

        assert session.executed == sum(s.executed for s in session.suites)
        assert session.passed_count + session.failed_count == session.executed
        assert session.cases_total == 2
        assert not session.all_passed
        assert session.failed

    def test_all_passed_requires_no_errors(self) -> None:
        session = SessionContext(name="s")
        suite = SuiteContext(name="S", session=session)
        suite.declare_cases(1)
        suite.record_case(_finished_case(suite, FailureKind.STARTUP_FAULT))
        suite.finalize()
        session.add_suite(suite)
        session.finalize()
        assert session.failed_count == 0
        assert session.error_count == 1
        assert not session.all_passed

    def test_fatal_session_fails(self) -> None:
        session = SessionContext(name="s")
        session.mark_fatal()
        session.finalize()
        assert session.fatal
        assert not session.passed

    def test_after_fields_gated(self) -> None:
        session = SessionContext(name="s")
        with pytest.raises(UsageError):
            _ = session.all_passed
        with pytest.raises(UsageError):
            _ = session.executed

"""Check evaluation: the severity lattice.

The :class:`CheckEvaluator` receives a finished :class:`CheckInvocation`
and a :class:`Severity`, reports it, folds it into the case, and returns
a :class:`ControlSignal` saying which scope (if any) must stop:

============== ===================== ================================ ===============
Severity       On pass               On fail                          Scope aborted
============== ===================== ================================ ===============
EXPECT         record pass           record fail, case failed         none
ASSERT         record pass           record fail, case failed         case
SANITY_CASE    silent                case failed, silent              case
SANITY_SUITE   silent                suite broken                     suite
SANITY_SESSION silent                session fatal                    session
============== ===================== ================================ ===============

:class:`Checker` is the handle a case body receives.  It captures the
invocation, asks the evaluator, and stops the body with
:class:`CaseAborted` when the signal is not ``CONTINUE``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from instantunit.runner.capture import capture_call, capture_condition, caller_location
from instantunit.runner.context import CaseContext, CheckContext, StepContext, SuiteContext
from instantunit.runner.errors import UsageError
from instantunit.runner.models import (
    CheckInvocation,
    ControlSignal,
    FailureRecord,
    Fault,
    Severity,
    SourceLocation,
)
from instantunit.runner.reporter import Reporter

logger = logging.getLogger(__name__)

_SANITY_SCOPES = {
    "case": Severity.SANITY_CASE,
    "suite": Severity.SANITY_SUITE,
    "session": Severity.SANITY_SESSION,
}


def sanity_severity(scope: str | Severity) -> Severity:
    """Map ``"case"``, ``"suite"`` or ``"session"`` to a SANITY severity."""
    if isinstance(scope, Severity):
        if scope.reports:
            raise ValueError(f"{scope.value} is not a SANITY severity")
        return scope
    try:
        return _SANITY_SCOPES[scope]
    except KeyError:
        raise ValueError(
            f"Unknown sanity scope {scope!r}; expected case, suite or session"
        ) from None


class CaseAborted(BaseException):
    """Unwinds a case body after a check returned an abort signal.

    Derives from :class:`BaseException` so ``except Exception`` blocks in
    test code do not swallow it.  Only the engine's case guard and suite
    loop catch it, converting it back into :attr:`signal`.
    """

    def __init__(self, signal: ControlSignal, message: str = "") -> None:
        super().__init__(message or signal.value)
        self.signal = signal


class CheckEvaluator:
    """Applies the severity lattice and drives check notifications."""

    def __init__(self, reporter: Reporter) -> None:
        self._reporter = reporter

    def evaluate(
        self,
        case: CaseContext,
        severity: Severity,
        invocation: CheckInvocation,
    ) -> ControlSignal:
        """Evaluate a check raised inside *case*'s body."""
        if severity.reports:
            check = CheckContext(case=case, severity=severity, invocation=invocation)
            self._reporter.on_check_start(check)
            check.finalize()
            self._reporter.on_check_end(check)
            case.record_check(invocation.outcome)

        if invocation.outcome:
            return ControlSignal.CONTINUE

        logger.debug(
            "%s failed in %s at %s: %s",
            severity.value,
            case.full_name,
            invocation.location,
            invocation.condition_text,
        )
        if not severity.reports:
            self._report_sanity(severity, invocation, case.suite.name, case.name)
        case.add_failure(
            FailureRecord(
                kind=severity.failure_kind,
                message=invocation.describe(),
                location=invocation.location,
            )
        )
        return severity.signal_on_fail

    def evaluate_setup(
        self,
        suite: SuiteContext,
        severity: Severity,
        invocation: CheckInvocation,
        case_name: str = "",
    ) -> ControlSignal:
        """Evaluate a SANITY check written in suite setup or teardown.

        Outside a case there is nothing to record a verdict on, so only
        SANITY severities are accepted.
        """
        if severity.reports:
            raise UsageError(
                f"{severity.value} checks are only allowed inside a case body"
            )
        if invocation.outcome:
            return ControlSignal.CONTINUE
        logger.debug(
            "%s failed in setup of %s at %s: %s",
            severity.value,
            suite.name,
            invocation.location,
            invocation.condition_text,
        )
        self._report_sanity(severity, invocation, suite.name, case_name)
        return severity.signal_on_fail

    def step(self, case: CaseContext, text: str, location: SourceLocation) -> StepContext:
        """Announce the next step of *case*; steps never change a verdict."""
        step = StepContext(case=case, text=text, location=location)
        logger.debug("Step in %s: %s", case.full_name, text)
        self._reporter.on_step(step)
        return step

    def message(self, text: str) -> None:
        """Pass free-form text through to the reporters."""
        self._reporter.on_message(text)

    def _report_sanity(
        self,
        severity: Severity,
        invocation: CheckInvocation,
        suite_name: str,
        case_name: str,
    ) -> None:
        if severity == Severity.SANITY_CASE:
            return
        self._reporter.on_fatal_error(
            Fault(
                kind=severity.failure_kind,
                message=invocation.describe(),
                suite_name=suite_name,
                case_name=case_name,
                location=invocation.location,
            )
        )


class Checker:
    """Check handle passed to every case body (conventionally named ``t``).

    Each check returns its outcome, so EXPECT results can drive further
    logic; failing ASSERT and SANITY checks do not return.

    Example::

        def _(t):
            t.expect(len(v), "==", 3)
            t.assert_that(v, text="vector is not empty")
            t.expect_call(is_near, 0.1 + 0.2, 0.3, 1e-9)
            t.sanity(db.connected, scope="session")
    """

    def __init__(self, evaluator: CheckEvaluator, case: CaseContext) -> None:
        self._evaluator = evaluator
        self._case = case
        self._closed = False

    @property
    def case(self) -> CaseContext:
        return self._case

    def close(self) -> None:
        """Reject further checks; called when the case is finalized."""
        self._closed = True

    def _require_open(self, what: str) -> None:
        if self._closed:
            raise UsageError(
                f"{what} after case '{self._case.full_name}' has finished"
            )

    def _apply(self, severity: Severity, invocation: CheckInvocation) -> bool:
        self._require_open("Check")
        signal = self._evaluator.evaluate(self._case, severity, invocation)
        if signal != ControlSignal.CONTINUE:
            raise CaseAborted(signal, invocation.describe())
        return invocation.outcome

    def _condition(
        self,
        severity: Severity,
        condition: Any,
        op: str | None,
        rhs: Any,
        text: str | None,
        location: SourceLocation,
        arg_offset: int = 0,
    ) -> bool:
        invocation = capture_condition(
            condition, op, rhs, text=text, location=location, arg_offset=arg_offset
        )
        return self._apply(severity, invocation)

    def _call(
        self,
        severity: Severity,
        predicate: Callable[..., Any],
        args: tuple[Any, ...],
        text: str | None,
        location: SourceLocation,
    ) -> bool:
        invocation = capture_call(predicate, args, text=text, location=location)
        return self._apply(severity, invocation)

    # -- condition / comparison checks ----------------------------------

    def check(
        self,
        severity: Severity,
        condition: Any,
        op: str | None = None,
        rhs: Any = None,
        *,
        text: str | None = None,
    ) -> bool:
        """Run a check with an explicit *severity*."""
        return self._condition(
            severity, condition, op, rhs, text, caller_location(), arg_offset=1
        )

    def expect(
        self, condition: Any, op: str | None = None, rhs: Any = None, *, text: str | None = None
    ) -> bool:
        """Record a failure but keep running the case."""
        return self._condition(Severity.EXPECT, condition, op, rhs, text, caller_location())

    def assert_that(
        self, condition: Any, op: str | None = None, rhs: Any = None, *, text: str | None = None
    ) -> bool:
        """Fail and stop the current case."""
        return self._condition(Severity.ASSERT, condition, op, rhs, text, caller_location())

    def sanity(
        self,
        condition: Any,
        op: str | None = None,
        rhs: Any = None,
        *,
        scope: str | Severity = "case",
        text: str | None = None,
    ) -> bool:
        """Silent precondition; a failure aborts *scope*."""
        return self._condition(
            sanity_severity(scope), condition, op, rhs, text, caller_location()
        )

    def fail(self, message: str) -> None:
        """Unconditionally fail and stop the current case."""
        self._apply(
            Severity.ASSERT,
            CheckInvocation(outcome=False, condition_text=message, location=caller_location()),
        )

    # -- progress -------------------------------------------------------

    def step(self, text: str) -> None:
        """Announce the next step of the case body to the reporters."""
        self._require_open("Step")
        self._evaluator.step(self._case, text, caller_location())

    def message(self, text: str) -> None:
        self._require_open("Message")
        self._evaluator.message(text)

    # -- predicate checks -----------------------------------------------

    def expect_call(
        self, predicate: Callable[..., Any], *args: Any, text: str | None = None
    ) -> bool:
        return self._call(Severity.EXPECT, predicate, args, text, caller_location())

    def assert_call(
        self, predicate: Callable[..., Any], *args: Any, text: str | None = None
    ) -> bool:
        return self._call(Severity.ASSERT, predicate, args, text, caller_location())

    def sanity_call(
        self,
        predicate: Callable[..., Any],
        *args: Any,
        scope: str | Severity = "case",
        text: str | None = None,
    ) -> bool:
        return self._call(sanity_severity(scope), predicate, args, text, caller_location())


# ---------------------------------------------------------------------------
# Built-in predicates
# ---------------------------------------------------------------------------


def is_near(value: float, expected: float, precision: float) -> bool:
    """Whether ``|value - expected| <= precision``."""
    return math.fabs(value - expected) <= precision


def is_between(value: Any, low: Any, high: Any) -> bool:
    """Whether ``low <= value <= high`` (both bounds inclusive)."""
    return low <= value <= high

"""Test execution engine.

Walks the registry in discovery order: the DEFAULT suite (standalone
cases) first, then every named suite.  For each suite it:

1. Replays the suite body once per case position (see
   :class:`SuiteCursor`), so setup and teardown written once run fresh
   around every case.
2. Runs the selected case under a guard that turns check aborts and
   uncaught exceptions into a tagged :class:`ControlSignal`.
3. Folds the case verdict into the suite counters and reports it.
4. Stops the suite on ``ABORT_SUITE`` and the session on
   ``ABORT_SESSION``.

The engine is the only component that reads the registry and drives the
reporter.
"""

from __future__ import annotations

import enum
import fnmatch
import logging
import traceback
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from instantunit.runner.capture import capture_call, capture_condition, caller_location
from instantunit.runner.checks import CaseAborted, CheckEvaluator, Checker, sanity_severity
from instantunit.runner.context import (
    DEFAULT_SUITE_NAME,
    CaseContext,
    SessionContext,
    SuiteContext,
)
from instantunit.runner.errors import EngineError, FailureKind, UsageError
from instantunit.runner.models import (
    CheckInvocation,
    ControlSignal,
    FailureRecord,
    Fault,
    Severity,
    SourceLocation,
)
from instantunit.runner.registry import (
    CaseBody,
    CaseUnit,
    SuiteUnit,
    UnitRegistry,
    location_of,
)
from instantunit.runner.reporter import MultiReporter, Reporter

logger = logging.getLogger(__name__)

CaseFilter = Callable[[str, str], bool]


class EngineState(str, enum.Enum):
    """Lifecycle of a single engine run."""

    NOT_STARTED = "not_started"
    SESSION_RUNNING = "session_running"
    SUITE_RUNNING = "suite_running"
    SESSION_FINALIZED = "session_finalized"


def pattern_filter(patterns: Iterable[str]) -> CaseFilter:
    """Build a case filter from ``fnmatch`` globs.

    A pattern containing ``::`` is matched against ``"suite::case"``;
    any other pattern is matched against the suite name and the case
    name separately.  No patterns means everything is accepted.
    """
    compiled = [p for p in patterns if p]

    def accept(suite_name: str, case_name: str) -> bool:
        if not compiled:
            return True
        full = f"{suite_name}::{case_name}"
        for pattern in compiled:
            if "::" in pattern:
                if fnmatch.fnmatchcase(full, pattern):
                    return True
            elif fnmatch.fnmatchcase(suite_name, pattern) or fnmatch.fnmatchcase(
                case_name, pattern
            ):
                return True
        return False

    return accept


def exit_code(session: SessionContext) -> int:
    """Process exit status for a finalized session: 0 iff everything passed."""
    return 0 if session.all_passed else 1


def _exception_location(exc: BaseException) -> SourceLocation:
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return SourceLocation()
    last = frames[-1]
    return SourceLocation(file=last.filename, line=last.lineno or 0)


def _describe_exception(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


@dataclass(frozen=True)
class CaseDeclaration:
    """A case position discovered while replaying a suite body."""

    name: str
    location: SourceLocation


@dataclass
class _Cleanup:
    func: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class SuiteCursor:
    """Per-replay handle passed to a suite body (conventionally ``suite``).

    The body is ordinary sequential code: setup statements, then
    ``@suite.case(name)`` declarations, then teardown statements.  The
    engine calls the body once per case position.  On each call exactly
    one declaration (the *target*) runs its function; the others are
    recorded and skipped.

    Example::

        @test_suite("Vec")
        def _(suite):
            v = [10, 20, 31]                  # setup, fresh each replay
            suite.sanity(len(v), "==", 3)     # SANITY_SUITE by default

            @suite.case("size")
            def _(t):
                t.expect(len(v), "==", 3)

            @suite.case("clear")
            def _(t):
                v.clear()
                t.assert_that(v, "==", [])

            v.clear()                         # teardown, always reached
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        suite: SuiteContext,
        target: int | None,
        start: int = 0,
    ) -> None:
        self._engine = engine
        self._suite = suite
        self._target = target
        self._start = start
        self._declared: list[CaseDeclaration] = []
        self._cleanups: list[_Cleanup] = []
        self._case: CaseContext | None = None
        self._checker: Checker | None = None
        self._signal = ControlSignal.CONTINUE
        self._in_case = False
        # Set by the engine when the body returned normally, i.e. every
        # declaration of this replay was reached.
        self.completed = False

    @property
    def suite(self) -> SuiteContext:
        return self._suite

    @property
    def declared(self) -> list[CaseDeclaration]:
        """Case positions seen so far on this replay."""
        return list(self._declared)

    @property
    def target(self) -> int | None:
        """Selected position; ``None`` until a replay without one picks it."""
        return self._target

    @property
    def case_context(self) -> CaseContext | None:
        return self._case

    @property
    def checker(self) -> Checker | None:
        return self._checker

    @property
    def case_signal(self) -> ControlSignal:
        return self._signal

    def _is_target(self, index: int, name: str) -> bool:
        if self._target is not None:
            return index == self._target
        if self._case is not None or index < self._start:
            return False
        return self._engine.accepts(self._suite.name, name)

    def case(self, name: str | None = None) -> Callable[[CaseBody], CaseBody]:
        """Declare a case; its function runs only on its own replay."""

        def decorator(func: CaseBody) -> CaseBody:
            if self._in_case:
                raise UsageError("Cases cannot be declared inside another case")
            index = len(self._declared)
            declaration = CaseDeclaration(
                name=name or func.__name__, location=location_of(func)
            )
            earlier = {d.name for d in self._declared}
            self._declared.append(declaration)
            if not self._is_target(index, declaration.name):
                return func
            self._target = index

            case = self._engine.open_case(self._suite, declaration.name, declaration.location)
            self._case = case
            if declaration.name in earlier:
                self._engine.startup_fault(
                    case,
                    f"Duplicate case '{declaration.name}' in suite '{self._suite.name}'",
                )
                return func

            self._checker = Checker(self._engine.evaluator, case)
            self._in_case = True
            try:
                self._signal = self._engine.guard(case, func, self._checker)
            finally:
                self._in_case = False
            return func

        return decorator

    def sanity(
        self,
        condition: Any,
        op: str | None = None,
        rhs: Any = None,
        *,
        scope: str | Severity = "suite",
        text: str | None = None,
    ) -> bool:
        """SANITY check usable in setup and teardown (defaults to suite scope)."""
        invocation = capture_condition(
            condition, op, rhs, text=text, location=caller_location()
        )
        return self._apply(sanity_severity(scope), invocation)

    def sanity_call(
        self,
        predicate: Callable[..., Any],
        *args: Any,
        scope: str | Severity = "suite",
        text: str | None = None,
    ) -> bool:
        invocation = capture_call(predicate, args, text=text, location=caller_location())
        return self._apply(sanity_severity(scope), invocation)

    def _apply(self, severity: Severity, invocation: CheckInvocation) -> bool:
        if self._case is not None:
            # Inside the target case or in the teardown that follows it.
            signal = self._engine.evaluator.evaluate(self._case, severity, invocation)
        else:
            signal = self._engine.evaluator.evaluate_setup(
                self._suite, severity, invocation
            )
        if signal != ControlSignal.CONTINUE:
            raise CaseAborted(signal, invocation.describe())
        return True

    def add_cleanup(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Register *func* to run after this replay's body, in LIFO order."""
        self._cleanups.append(_Cleanup(func, args, kwargs))

    def pop_cleanups(self) -> list[_Cleanup]:
        cleanups = list(reversed(self._cleanups))
        self._cleanups.clear()
        return cleanups


class ExecutionEngine:
    """Single-threaded test execution engine.

    Args:
        registry: Source of test units; should be sealed.
        reporter: Observer, or a list or tuple of observers, for run events.
        case_filter: ``(suite_name, case_name) -> bool`` selecting cases.
        session_name: Session name; generated from the date when empty.
        teardown_on_setup_abort: Run cleanups registered with
            :meth:`SuiteCursor.add_cleanup` even when setup did not
            complete.  Defaults to ``False``.
    """

    def __init__(
        self,
        registry: UnitRegistry,
        reporter: Reporter | list[Reporter] | tuple[Reporter, ...] | None = None,
        case_filter: CaseFilter | None = None,
        session_name: str = "",
        teardown_on_setup_abort: bool = False,
    ) -> None:
        self._registry = registry
        if reporter is None:
            self._reporter = MultiReporter()
        elif isinstance(reporter, (list, tuple)):
            self._reporter = MultiReporter(reporter)
        else:
            self._reporter = MultiReporter([reporter])
        self._case_filter = case_filter
        self._session_name = session_name
        self._teardown_on_setup_abort = teardown_on_setup_abort
        self._evaluator = CheckEvaluator(self._reporter)
        self._state = EngineState.NOT_STARTED

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def evaluator(self) -> CheckEvaluator:
        return self._evaluator

    @property
    def reporter(self) -> MultiReporter:
        return self._reporter

    def accepts(self, suite_name: str, case_name: str) -> bool:
        """Whether the configured filter lets this case run."""
        if self._case_filter is None:
            return True
        return bool(self._case_filter(suite_name, case_name))

    # ------------------------------------------------------------------
    # Session level
    # ------------------------------------------------------------------

    def run(self) -> SessionContext:
        """Execute every registered unit and return the finalized session.

        Raises:
            EngineError: If called while a run is already in progress.
        """
        if self._state in (EngineState.SESSION_RUNNING, EngineState.SUITE_RUNNING):
            raise EngineError("Engine is already running a session")
        if not self._registry.sealed:
            logger.debug("Running against an unsealed registry")

        cases: list[CaseUnit] = []
        suites: list[SuiteUnit] = []
        self._registry.for_each_case(cases.append)
        self._registry.for_each_suite(suites.append)
        session = SessionContext(
            name=self._session_name,
            suites_total=len(suites) + (1 if cases else 0),
        )
        self._state = EngineState.SESSION_RUNNING
        logger.info(
            "Starting session '%s' (%d suite(s))", session.name, session.suites_total
        )
        self._reporter.on_session_start(session)

        try:
            signal = ControlSignal.CONTINUE
            if cases:
                signal = self._run_default_suite(session, cases)
            for unit in suites:
                if signal == ControlSignal.ABORT_SESSION:
                    break
                signal = self._run_suite(session, unit)

            if signal == ControlSignal.ABORT_SESSION:
                session.mark_fatal()
                logger.error(
                    "Session '%s' aborted by a session-level sanity failure",
                    session.name,
                )
            session.finalize()
        except BaseException:
            self._state = EngineState.NOT_STARTED
            raise

        self._state = EngineState.SESSION_FINALIZED
        logger.info(
            "Session '%s' finished: %d executed, %d passed, %d failed, %d error(s)",
            session.name,
            session.executed,
            session.passed_count,
            session.failed_count,
            session.error_count,
        )
        self._reporter.on_session_end(session)
        return session

    # ------------------------------------------------------------------
    # Suite level
    # ------------------------------------------------------------------

    def _begin_suite(self, session: SessionContext, suite: SuiteContext) -> None:
        session.add_suite(suite)
        self._state = EngineState.SUITE_RUNNING
        logger.info("Running suite '%s'", suite.name)
        self._reporter.on_suite_start(suite)

    def _end_suite(self, suite: SuiteContext) -> None:
        suite.finalize()
        self._reporter.on_suite_end(suite)
        self._state = EngineState.SESSION_RUNNING

    def _run_default_suite(
        self, session: SessionContext, units: list[CaseUnit]
    ) -> ControlSignal:
        """Run standalone cases; each is its own one-case suite-equivalent."""
        suite = SuiteContext(name=DEFAULT_SUITE_NAME, session=session)
        self._begin_suite(session, suite)
        suite.declare_cases(len(units))

        signal = ControlSignal.CONTINUE
        for unit in units:
            if not self.accepts(suite.name, unit.name):
                logger.debug("Filtered out %s::%s", suite.name, unit.name)
                continue
            case = self.open_case(suite, unit.name, unit.location)
            checker: Checker | None = None
            if self._registry.is_duplicate(unit):
                self.startup_fault(case, f"Duplicate standalone case '{unit.name}'")
                case_signal = ControlSignal.CONTINUE
            else:
                checker = Checker(self._evaluator, case)
                case_signal = self.guard(case, unit.run, checker)
            self._finish_case(suite, case, checker)

            if case_signal == ControlSignal.ABORT_SESSION:
                suite.mark_aborted()
                signal = ControlSignal.ABORT_SESSION
                break
            if case_signal == ControlSignal.ABORT_SUITE:
                logger.warning(
                    "Suite-level sanity failure in standalone case '%s'", unit.name
                )

        self._end_suite(suite)
        return signal

    def _run_suite(self, session: SessionContext, unit: SuiteUnit) -> ControlSignal:
        suite = SuiteContext(name=unit.name, location=unit.location, session=session)
        self._begin_suite(session, suite)

        if self._registry.is_duplicate(unit):
            self._suite_startup_fault(suite, f"Duplicate suite '{unit.name}'")
            signal = ControlSignal.CONTINUE
        else:
            signal = self._replay_suite(unit, suite)

        self._end_suite(suite)
        if signal == ControlSignal.ABORT_SESSION:
            return signal
        return ControlSignal.CONTINUE

    def _replay_suite(self, unit: SuiteUnit, suite: SuiteContext) -> ControlSignal:
        """Replay *unit*'s body once per accepted case position.

        The first replay selects the first accepted case and learns the
        declared positions; later replays target each remaining position.
        Until one replay has returned normally, declarations past the last
        known position may exist, so the body is replayed to look for them.
        """
        signal, cursor = self._replay(unit, suite, target=None)
        positions = cursor.declared
        complete = cursor.completed
        suite.declare_cases(len(positions))
        if cursor.target is None:
            return signal

        index = cursor.target + 1
        while signal not in (ControlSignal.ABORT_SUITE, ControlSignal.ABORT_SESSION):
            if index < len(positions):
                declaration = positions[index]
                if not self.accepts(suite.name, declaration.name):
                    logger.debug("Filtered out %s::%s", suite.name, declaration.name)
                    index += 1
                    continue
                signal, cursor = self._replay(
                    unit, suite, target=index, expected=declaration
                )
            elif not complete:
                logger.debug("Looking for cases of '%s' after position %d", suite.name, index)
                signal, cursor = self._replay(unit, suite, target=None, start=index)
            else:
                break

            if len(cursor.declared) > len(positions):
                positions = cursor.declared
                suite.declare_cases(len(positions))
            complete = complete or cursor.completed
            if cursor.target is None:
                # Nothing selected: the body has no further accepted case.
                break
            index = cursor.target + 1
        return signal

    def _replay(
        self,
        unit: SuiteUnit,
        suite: SuiteContext,
        target: int | None,
        expected: CaseDeclaration | None = None,
        start: int = 0,
    ) -> tuple[ControlSignal, SuiteCursor]:
        """Run the suite body once with *target* selected.

        Without a *target* the first accepted declaration at or after
        *start* is selected.
        """
        cursor = SuiteCursor(self, suite, target, start=start)
        setup_signal = ControlSignal.CONTINUE
        abort_message = ""
        body_error: Exception | None = None
        try:
            unit.run(cursor)
            cursor.completed = True
        except CaseAborted as abort:
            setup_signal = abort.signal
            abort_message = str(abort)
        except Exception as exc:
            body_error = exc

        case = cursor.case_context
        if case is not None or self._teardown_on_setup_abort:
            self._run_cleanups(cursor, case)
        elif cursor.pop_cleanups():
            logger.debug("Skipping cleanups of '%s': setup did not complete", suite.name)

        if case is not None:
            # Target ran; anything raised afterwards came from teardown.
            if body_error is not None:
                self._teardown_fault(case, body_error)
            signal = cursor.case_signal.escalate(setup_signal)
            self._finish_case(suite, case, cursor.checker)
            if signal in (ControlSignal.ABORT_SUITE, ControlSignal.ABORT_SESSION):
                suite.mark_aborted()
            return signal, cursor

        # Target never ran: setup is broken for this position.
        if setup_signal in (ControlSignal.ABORT_SUITE, ControlSignal.ABORT_SESSION):
            self._suite_startup_fault(
                suite, f"Setup sanity check failed: {abort_message}"
            )
            return setup_signal, cursor

        if body_error is None and setup_signal == ControlSignal.CONTINUE:
            if expected is None:
                # End of the body reached without an accepted case.
                return ControlSignal.CONTINUE, cursor
            message = f"Case '{expected.name}' was not declared on replay"
        elif body_error is not None:
            message = f"Setup raised {_describe_exception(body_error)}"
        else:
            message = "Setup failed a case-level sanity check"

        if expected is None and start == 0:
            # First replay: no position is known yet.
            self._suite_startup_fault(suite, message, body_error)
            return ControlSignal.ABORT_SUITE, cursor

        # Setup failures escape to suite scope; remaining positions are dropped.
        if expected is not None:
            case = self.open_case(suite, expected.name, expected.location)
            self.startup_fault(case, message, body_error)
            self._finish_case(suite, case, None)
        else:
            self._unreached_cases_fault(suite, message, start, body_error)
        suite.mark_aborted()
        logger.warning("Suite '%s' aborted by a setup failure", suite.name)
        return ControlSignal.ABORT_SUITE, cursor

    def _run_cleanups(self, cursor: SuiteCursor, case: CaseContext | None) -> None:
        for cleanup in cursor.pop_cleanups():
            try:
                cleanup.func(*cleanup.args, **cleanup.kwargs)
            except Exception as exc:
                if case is not None:
                    self._teardown_fault(case, exc)
                else:
                    logger.error(
                        "Cleanup of suite '%s' raised %s",
                        cursor.suite.name,
                        _describe_exception(exc),
                    )

    # ------------------------------------------------------------------
    # Case level
    # ------------------------------------------------------------------

    def open_case(
        self, suite: SuiteContext, name: str, location: SourceLocation
    ) -> CaseContext:
        """Create a case context and announce it."""
        case = CaseContext(name=name, location=location, suite=suite)
        logger.debug("Running case %s", case.full_name)
        self._reporter.on_case_start(case)
        return case

    def guard(
        self,
        case: CaseContext,
        body: Callable[[Checker], Any],
        checker: Checker,
    ) -> ControlSignal:
        """Run *body* and convert every way it can stop into a signal."""
        try:
            body(checker)
        except CaseAborted as abort:
            return abort.signal
        except Exception as exc:
            logger.exception("Uncaught exception in case %s", case.full_name)
            fault = Fault(
                kind=FailureKind.UNCAUGHT_FAULT,
                message=_describe_exception(exc),
                suite_name=case.suite.name,
                case_name=case.name,
                location=_exception_location(exc),
                exception=exc,
            )
            self._reporter.on_fatal_error(fault)
            case.add_failure(
                FailureRecord(kind=fault.kind, message=fault.message, location=fault.location)
            )
            return ControlSignal.ABORT_CASE
        return ControlSignal.CONTINUE

    def startup_fault(
        self, case: CaseContext, message: str, exc: Exception | None = None
    ) -> None:
        """Mark *case* as never having reached its body."""
        logger.error("Startup fault in %s: %s", case.full_name, message)
        location = _exception_location(exc) if exc is not None else case.location
        self._reporter.on_fatal_error(
            Fault(
                kind=FailureKind.STARTUP_FAULT,
                message=message,
                suite_name=case.suite.name,
                case_name=case.name,
                location=location,
                exception=exc,
            )
        )
        case.add_failure(
            FailureRecord(kind=FailureKind.STARTUP_FAULT, message=message, location=location)
        )

    def _suite_startup_fault(
        self, suite: SuiteContext, message: str, exc: Exception | None = None
    ) -> None:
        logger.error("Startup fault in suite '%s': %s", suite.name, message)
        self._reporter.on_fatal_error(
            Fault(
                kind=FailureKind.STARTUP_FAULT,
                message=message,
                suite_name=suite.name,
                location=_exception_location(exc) if exc is not None else suite.location,
                exception=exc,
            )
        )
        suite.mark_error_on_start()
        suite.record_startup_error()

    def _unreached_cases_fault(
        self, suite: SuiteContext, message: str, start: int, exc: Exception | None = None
    ) -> None:
        """Report cases past position *start* that the body never declared."""
        message = f"{message}; cases after the first {start} were never reached"
        logger.error("Startup fault in suite '%s': %s", suite.name, message)
        self._reporter.on_fatal_error(
            Fault(
                kind=FailureKind.STARTUP_FAULT,
                message=message,
                suite_name=suite.name,
                location=_exception_location(exc) if exc is not None else suite.location,
                exception=exc,
            )
        )
        suite.record_startup_error()

    def _teardown_fault(self, case: CaseContext, exc: Exception) -> None:
        message = f"Teardown raised {_describe_exception(exc)}"
        logger.error("%s after case %s", message, case.full_name)
        fault = Fault(
            kind=FailureKind.UNCAUGHT_FAULT,
            message=message,
            suite_name=case.suite.name,
            case_name=case.name,
            location=_exception_location(exc),
            exception=exc,
        )
        self._reporter.on_fatal_error(fault)
        case.add_failure(
            FailureRecord(kind=fault.kind, message=message, location=fault.location)
        )

    def _finish_case(
        self, suite: SuiteContext, case: CaseContext, checker: Checker | None
    ) -> None:
        case.finalize()
        if checker is not None:
            checker.close()
        logger.debug(
            "Case %s %s",
            case.full_name,
            "errored" if case.error_on_start else ("passed" if case.passed else "failed"),
        )
        self._reporter.on_case_end(case)
        suite.record_case(case)


def run_session(
    registry: UnitRegistry,
    reporter: Reporter | list[Reporter] | tuple[Reporter, ...] | None = None,
    **options: Any,
) -> SessionContext:
    """Convenience wrapper: build an :class:`ExecutionEngine` and run it."""
    return ExecutionEngine(registry, reporter=reporter, **options).run()

"""InstantUnit runner core - registry, checks, contexts and the engine.

Discovers test units into a :class:`UnitRegistry`, runs them through the
:class:`ExecutionEngine` with graduated-severity checks, and streams
session/suite/case/check events to a :class:`Reporter`.
"""

from instantunit.runner.checks import (
    CaseAborted,
    CheckEvaluator,
    Checker,
    is_between,
    is_near,
    sanity_severity,
)
from instantunit.runner.context import (
    DEFAULT_SUITE_NAME,
    CaseContext,
    CheckContext,
    SessionContext,
    StepContext,
    SuiteContext,
)
from instantunit.runner.engine import (
    CaseDeclaration,
    CaseFilter,
    EngineState,
    ExecutionEngine,
    SuiteCursor,
    exit_code,
    pattern_filter,
    run_session,
)
from instantunit.runner.errors import (
    EngineError,
    FailureKind,
    InstantUnitError,
    LoadError,
    RegistrationError,
    UsageError,
)
from instantunit.runner.models import (
    CheckInvocation,
    ControlSignal,
    FailureRecord,
    Fault,
    Severity,
    SourceLocation,
    Statistics,
)
from instantunit.runner.registry import (
    CaseUnit,
    RunnableUnit,
    SuiteUnit,
    UnitRegistry,
    active_registry,
    default_registry,
    registering_into,
    test,
    test_suite,
)
from instantunit.runner.reporter import (
    MultiReporter,
    NullReporter,
    RecordingReporter,
    Reporter,
    ReportEvent,
    ReportEventType,
)

__all__ = [
    "CaseAborted",
    "CaseContext",
    "CaseDeclaration",
    "CaseFilter",
    "CaseUnit",
    "CheckContext",
    "CheckEvaluator",
    "CheckInvocation",
    "Checker",
    "ControlSignal",
    "DEFAULT_SUITE_NAME",
    "EngineError",
    "EngineState",
    "ExecutionEngine",
    "FailureKind",
    "FailureRecord",
    "Fault",
    "InstantUnitError",
    "LoadError",
    "MultiReporter",
    "NullReporter",
    "RecordingReporter",
    "RegistrationError",
    "ReportEvent",
    "ReportEventType",
    "Reporter",
    "RunnableUnit",
    "SessionContext",
    "Severity",
    "SourceLocation",
    "Statistics",
    "StepContext",
    "SuiteContext",
    "SuiteCursor",
    "SuiteUnit",
    "UnitRegistry",
    "UsageError",
    "active_registry",
    "default_registry",
    "exit_code",
    "is_between",
    "is_near",
    "pattern_filter",
    "registering_into",
    "run_session",
    "sanity_severity",
    "test",
    "test_suite",
]

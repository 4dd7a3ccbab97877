"""InstantUnit - a small unit-test execution engine.

Write tests with the :func:`test` and :func:`test_suite` decorators and
run them with ``instantunit run PATH`` or :class:`ExecutionEngine`.
"""

from instantunit.runner import (
    Checker,
    ExecutionEngine,
    RecordingReporter,
    Reporter,
    SessionContext,
    Severity,
    SuiteCursor,
    UnitRegistry,
    exit_code,
    is_between,
    is_near,
    pattern_filter,
    test,
    test_suite,
)

__version__ = "0.1.0"

__all__ = [
    "Checker",
    "ExecutionEngine",
    "RecordingReporter",
    "Reporter",
    "SessionContext",
    "Severity",
    "SuiteCursor",
    "UnitRegistry",
    "exit_code",
    "is_between",
    "is_near",
    "pattern_filter",
    "test",
    "test_suite",
]

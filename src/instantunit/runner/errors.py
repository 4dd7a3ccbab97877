"""Error hierarchy and failure taxonomy for the test runner.

Two separate concerns live here:

- :class:`FailureKind` classifies *test outcomes* (a failed check, a
  crash inside a case body, a broken setup).  These are data, carried
  on context records and :class:`~instantunit.runner.models.Fault`
  objects; they never escape the engine as Python exceptions.
- :class:`InstantUnitError` and its subclasses signal *programming
  errors* by the engine's own clients (reading a verdict too early,
  registering after discovery, re-entering a running engine).
"""

from __future__ import annotations

import enum


class FailureKind(str, enum.Enum):
    """Taxonomy of test failures, ordered roughly by disruption."""

    EXPECTATION_FAILURE = "expectation_failure"
    ASSERTION_FAILURE = "assertion_failure"
    SANITY_CASE = "sanity_case"
    SANITY_SUITE = "sanity_suite"
    SANITY_SESSION = "sanity_session"
    UNCAUGHT_FAULT = "uncaught_fault"
    STARTUP_FAULT = "startup_fault"

    @property
    def is_sanity(self) -> bool:
        """Whether this kind came from a SANITY check."""
        return self in (
            FailureKind.SANITY_CASE,
            FailureKind.SANITY_SUITE,
            FailureKind.SANITY_SESSION,
        )


class InstantUnitError(Exception):
    """Base exception for all runner usage errors."""


class UsageError(InstantUnitError):
    """Raised when a context or handle is used outside its valid window.

    Typical causes: reading an "after" field of a context before the
    activity was finalized, or calling a check on a :class:`Checker`
    whose case already finished.
    """


class RegistrationError(InstantUnitError):
    """Raised when a unit is registered after discovery was sealed."""


class EngineError(InstantUnitError):
    """Raised for engine misuse, such as re-entering a running engine."""


class LoadError(InstantUnitError):
    """Raised when a test file or module cannot be found or imported.

    Attributes:
        target: The path or dotted module name that failed.
    """

    def __init__(self, message: str, target: str = "") -> None:
        super().__init__(message)
        self.target = target

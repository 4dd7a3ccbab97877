"""Reporter protocol and in-core reporter plumbing.

A reporter is a pure observer: the engine calls it synchronously, on its
own thread, with borrowed context records.  Start/end calls nest like a
stack::

    on_session_start
      on_suite_start
        on_case_start
          on_check_start / on_check_end   (zero or more)
          on_step, on_message              (zero or more)
        on_case_end
      on_suite_end
    on_session_end

``on_fatal_error`` may arrive anywhere inside that sequence; it does not
open or close a level.  ``on_step`` and ``on_message`` are single
notifications sent from inside a case body.

The core ships no output formatting.  It provides :class:`NullReporter`
(a base to override selectively), :class:`RecordingReporter` (keeps a
typed event log) and :class:`MultiReporter` (fan-out with error
isolation, used by the engine for every run).
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, Union, runtime_checkable

from instantunit.runner.context import (
    CaseContext,
    CheckContext,
    SessionContext,
    StepContext,
    SuiteContext,
)
from instantunit.runner.models import Fault

logger = logging.getLogger(__name__)


@runtime_checkable
class Reporter(Protocol):
    """Observer interface the engine drives."""

    def on_session_start(self, session: SessionContext) -> None: ...

    def on_session_end(self, session: SessionContext) -> None: ...

    def on_suite_start(self, suite: SuiteContext) -> None: ...

    def on_suite_end(self, suite: SuiteContext) -> None: ...

    def on_case_start(self, case: CaseContext) -> None: ...

    def on_case_end(self, case: CaseContext) -> None: ...

    def on_check_start(self, check: CheckContext) -> None: ...

    def on_check_end(self, check: CheckContext) -> None: ...

    def on_step(self, step: StepContext) -> None: ...

    def on_message(self, text: str) -> None: ...

    def on_fatal_error(self, fault: Fault) -> None: ...


class NullReporter:
    """Reporter that ignores every event; subclass and override as needed."""

    def on_session_start(self, session: SessionContext) -> None:
        pass

    def on_session_end(self, session: SessionContext) -> None:
        pass

    def on_suite_start(self, suite: SuiteContext) -> None:
        pass

    def on_suite_end(self, suite: SuiteContext) -> None:
        pass

    def on_case_start(self, case: CaseContext) -> None:
        pass

    def on_case_end(self, case: CaseContext) -> None:
        pass

    def on_check_start(self, check: CheckContext) -> None:
        pass

    def on_check_end(self, check: CheckContext) -> None:
        pass

    def on_step(self, step: StepContext) -> None:
        pass

    def on_message(self, text: str) -> None:
        pass

    def on_fatal_error(self, fault: Fault) -> None:
        pass


class ReportEventType(str, enum.Enum):
    """Typed event categories, one per reporter method."""

    SESSION_START = "session_start"
    SESSION_END = "session_end"
    SUITE_START = "suite_start"
    SUITE_END = "suite_end"
    CASE_START = "case_start"
    CASE_END = "case_end"
    CHECK_START = "check_start"
    CHECK_END = "check_end"
    STEP = "step"
    MESSAGE = "message"
    FATAL_ERROR = "fatal_error"

    @property
    def is_start(self) -> bool:
        return self.value.endswith("_start")

    @property
    def is_end(self) -> bool:
        return self.value.endswith("_end")

    @property
    def level(self) -> str:
        """Activity level, e.g. ``case``, ``check``, ``step`` or ``fatal``."""
        return self.value.split("_", 1)[0]


Subject = Union[
    SessionContext, SuiteContext, CaseContext, CheckContext, StepContext, Fault, str
]


@dataclass
class ReportEvent:
    """A single reporter notification.

    Attributes:
        type: The event category.
        subject: The context record (or fault) the engine passed.
        timestamp: UNIX epoch when the event was recorded.
    """

    type: ReportEventType
    subject: Subject
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        """Name of the subject, or the fault message."""
        if isinstance(self.subject, CheckContext):
            return self.subject.condition_text
        if isinstance(self.subject, Fault):
            return self.subject.message
        if isinstance(self.subject, StepContext):
            return self.subject.text
        if isinstance(self.subject, str):
            return self.subject
        return self.subject.name


class RecordingReporter(NullReporter):
    """Keeps every notification as a :class:`ReportEvent`.

    Only references are stored; after-fields of the recorded contexts are
    read later, once the run is over.
    """

    def __init__(self) -> None:
        self.events: list[ReportEvent] = []

    def _record(self, event_type: ReportEventType, subject: Subject) -> None:
        self.events.append(ReportEvent(type=event_type, subject=subject))

    def of_type(self, event_type: ReportEventType) -> list[ReportEvent]:
        return [e for e in self.events if e.type == event_type]

    def on_session_start(self, session: SessionContext) -> None:
        self._record(ReportEventType.SESSION_START, session)

    def on_session_end(self, session: SessionContext) -> None:
        self._record(ReportEventType.SESSION_END, session)

    def on_suite_start(self, suite: SuiteContext) -> None:
        self._record(ReportEventType.SUITE_START, suite)

    def on_suite_end(self, suite: SuiteContext) -> None:
        self._record(ReportEventType.SUITE_END, suite)

    def on_case_start(self, case: CaseContext) -> None:
        self._record(ReportEventType.CASE_START, case)

    def on_case_end(self, case: CaseContext) -> None:
        self._record(ReportEventType.CASE_END, case)

    def on_check_start(self, check: CheckContext) -> None:
        self._record(ReportEventType.CHECK_START, check)

    def on_check_end(self, check: CheckContext) -> None:
        self._record(ReportEventType.CHECK_END, check)

    def on_step(self, step: StepContext) -> None:
        self._record(ReportEventType.STEP, step)

    def on_message(self, text: str) -> None:
        self._record(ReportEventType.MESSAGE, text)

    def on_fatal_error(self, fault: Fault) -> None:
        self._record(ReportEventType.FATAL_ERROR, fault)


class MultiReporter:
    """Fan-out reporter with per-callback error isolation.

    Exceptions raised by a reporter are logged but do not prevent the
    other reporters from running, and never reach the engine.  Hooks a
    reporter does not define are skipped.
    """

    def __init__(self, reporters: Iterable[Reporter] = ()) -> None:
        self._reporters: list[Reporter] = list(reporters)

    @property
    def reporters(self) -> list[Reporter]:
        return list(self._reporters)

    def add(self, reporter: Reporter) -> None:
        self._reporters.append(reporter)

    def _dispatch(self, method: str, subject: Subject) -> None:
        for reporter in self._reporters:
            # Duck-typed reporters may implement only some hooks.
            hook = getattr(reporter, method, None)
            if hook is None:
                continue
            try:
                hook(subject)
            except Exception as exc:
                logger.error(
                    "Reporter %s failed in %s: %s",
                    type(reporter).__name__,
                    method,
                    exc,
                )

    def on_session_start(self, session: SessionContext) -> None:
        self._dispatch("on_session_start", session)

    def on_session_end(self, session: SessionContext) -> None:
        self._dispatch("on_session_end", session)

    def on_suite_start(self, suite: SuiteContext) -> None:
        self._dispatch("on_suite_start", suite)

    def on_suite_end(self, suite: SuiteContext) -> None:
        self._dispatch("on_suite_end", suite)

    def on_case_start(self, case: CaseContext) -> None:
        self._dispatch("on_case_start", case)

    def on_case_end(self, case: CaseContext) -> None:
        self._dispatch("on_case_end", case)

    def on_check_start(self, check: CheckContext) -> None:
        self._dispatch("on_check_start", check)

    def on_check_end(self, check: CheckContext) -> None:
        self._dispatch("on_check_end", check)

    def on_step(self, step: StepContext) -> None:
        self._dispatch("on_step", step)

    def on_message(self, text: str) -> None:
        self._dispatch("on_message", text)

    def on_fatal_error(self, fault: Fault) -> None:
        self._dispatch("on_fatal_error", fault)

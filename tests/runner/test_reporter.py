"""Tests for the reporter protocol and the in-core reporters."""

import logging

from instantunit.runner.context import CaseContext, SessionContext, StepContext, SuiteContext
from instantunit.runner.errors import FailureKind
from instantunit.runner.models import Fault, SourceLocation
from instantunit.runner.reporter import (
    MultiReporter,
    NullReporter,
    RecordingReporter,
    Reporter,
    ReportEventType,
)


class ExplodingReporter(NullReporter):
    """Reporter that raises from every suite callback."""

    def on_suite_start(self, suite: SuiteContext) -> None:
        raise RuntimeError("reporter bug")


class TestProtocol:
    def test_in_core_reporters_satisfy_protocol(self) -> None:
        assert isinstance(NullReporter(), Reporter)
        assert isinstance(RecordingReporter(), Reporter)
        assert isinstance(MultiReporter(), Reporter)

    def test_plain_object_is_not_a_reporter(self) -> None:
        assert not isinstance(object(), Reporter)


class TestReportEventType:
    def test_start_end_and_level(self) -> None:
        assert ReportEventType.CASE_START.is_start
        assert ReportEventType.SUITE_END.is_end
        assert not ReportEventType.FATAL_ERROR.is_start
        assert not ReportEventType.FATAL_ERROR.is_end
        assert ReportEventType.CHECK_END.level == "check"
        assert ReportEventType.SESSION_START.level == "session"


class TestRecordingReporter:
    def test_records_in_order(self) -> None:
        rec = RecordingReporter()
        session = SessionContext(name="s")
        suite = SuiteContext(name="S", session=session)
        rec.on_session_start(session)
        rec.on_suite_start(suite)
        rec.on_fatal_error(Fault(kind=FailureKind.STARTUP_FAULT, message="broken"))
        rec.on_suite_end(suite)

        assert [e.type for e in rec.events] == [
            ReportEventType.SESSION_START,
            ReportEventType.SUITE_START,
            ReportEventType.FATAL_ERROR,
            ReportEventType.SUITE_END,
        ]
        assert [e.name for e in rec.events] == ["s", "S", "broken", "S"]
        assert rec.of_type(ReportEventType.SUITE_START)[0].subject is suite


class TestMultiReporter:
    def test_fans_out(self) -> None:
        a, b = RecordingReporter(), RecordingReporter()
        multi = MultiReporter([a])
        multi.add(b)
        multi.on_session_start(SessionContext(name="s"))
        assert len(a.events) == len(b.events) == 1
        assert multi.reporters == [a, b]

    def test_reporter_errors_are_isolated(self, caplog) -> None:
        rec = RecordingReporter()
        multi = MultiReporter([ExplodingReporter(), rec])
        with caplog.at_level(logging.ERROR, logger="instantunit.runner.reporter"):
            multi.on_suite_start(SuiteContext(name="S"))

        assert [e.type for e in rec.events] == [ReportEventType.SUITE_START]
        assert "ExplodingReporter failed in on_suite_start" in caplog.text

    def test_step_and_message_fan_out(self) -> None:
        a, b = RecordingReporter(), RecordingReporter()
        multi = MultiReporter([a, b])
        case = CaseContext(name="c", location=SourceLocation(), suite=SuiteContext(name="S"))
        multi.on_step(StepContext(case=case, text="connect"))
        multi.on_message("hello")

        for rec in (a, b):
            assert [e.type for e in rec.events] == [
                ReportEventType.STEP,
                ReportEventType.MESSAGE,
            ]
            assert [e.name for e in rec.events] == ["connect", "hello"]

    def test_missing_hooks_are_skipped(self, caplog) -> None:
        class SuiteStartOnly:
            def __init__(self) -> None:
                self.suites: list[str] = []

            def on_suite_start(self, suite: SuiteContext) -> None:
                self.suites.append(suite.name)

        partial = SuiteStartOnly()
        multi = MultiReporter([partial])
        with caplog.at_level(logging.ERROR, logger="instantunit.runner.reporter"):
            multi.on_session_start(SessionContext(name="s"))
            multi.on_suite_start(SuiteContext(name="S"))
            multi.on_message("ignored")

        assert partial.suites == ["S"]
        assert caplog.text == ""

"""Tests for the check capture layer."""

import pytest

from instantunit.runner.capture import (
    OPERATORS,
    argument_texts,
    caller_location,
    capture_call,
    capture_condition,
    render,
)
from instantunit.runner.checks import is_near
from instantunit.runner.models import SourceLocation


class TestArgumentTexts:
    def test_splits_positional_arguments(self) -> None:
        assert argument_texts("t.expect(len(v), '==', 3)") == ["len(v)", "'=='", "3"]

    def test_incomplete_line(self) -> None:
        assert argument_texts("t.expect(") == []

    def test_no_call(self) -> None:
        assert argument_texts("x = 1") == []


class TestCallerLocation:
    def test_points_at_calling_line(self) -> None:
        location = caller_location(0)
        assert location.file.endswith("test_capture.py")
        assert location.line > 0


class TestCaptureCondition:
    def test_boolean_uses_source_text(self) -> None:
        v: list[int] = []
        inv = capture_condition(not v, location=caller_location(0))
        assert inv.outcome is True
        assert inv.condition_text == "not v"
        assert inv.operator is None

    def test_comparison_renders_operands(self) -> None:
        v = [10, 20]
        inv = capture_condition(len(v), "==", 3, location=caller_location(0))
        assert inv.outcome is False
        assert inv.condition_text == 'len(v) == 3'
        assert inv.lhs_rendered == "2"
        assert inv.rhs_rendered == "3"
        assert inv.describe() == "len(v) == 3 is false (left: 2, right: 3)"

    def test_explicit_text_wins(self) -> None:
        inv = capture_condition(False, text="vector is empty", location=SourceLocation())
        assert inv.condition_text == "vector is empty"

    def test_unknown_location_falls_back_to_rendering(self) -> None:
        inv = capture_condition(1, "<", 0, location=SourceLocation())
        assert inv.condition_text == "1 < 0"
        assert inv.outcome is False

    @pytest.mark.parametrize("op", sorted(OPERATORS))
    def test_all_operators_supported(self, op: str) -> None:
        inv = capture_condition(2, op, 2, location=SourceLocation())
        assert inv.outcome is (op in ("==", "<=", ">="))

    def test_unknown_operator_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported operator"):
            capture_condition(1, "=~", 1, location=SourceLocation())


class TestCaptureCall:
    def test_predicate_invocation(self) -> None:
        inv = capture_call(is_near, (1.0, 1.5, 0.1), location=SourceLocation())
        assert inv.outcome is False
        assert inv.operator == "call"
        assert inv.condition_text == "is_near(1.0, 1.5, 0.1)"
        assert inv.describe().endswith("returned false")


class TestRender:
    def test_large_containers_are_bounded(self) -> None:
        assert len(render(list(range(10_000)))) < 200

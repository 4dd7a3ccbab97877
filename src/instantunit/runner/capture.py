"""Capture helpers turning a check call into a :class:`CheckInvocation`.

The evaluator only ever sees the finished boolean plus text renderings.
This module produces them: it locates the calling line, recovers the
argument source text from it when the call fits on one line, and
renders operand values with :mod:`reprlib` so large containers stay
readable.
"""

from __future__ import annotations

import ast
import inspect
import linecache
import operator
import reprlib
from collections.abc import Callable
from typing import Any

from instantunit.runner.models import CheckInvocation, SourceLocation

# Supported comparison operators for ``t.expect(lhs, op, rhs)``
OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_repr = reprlib.Repr()
_repr.maxstring = 80
_repr.maxother = 80


def render(value: Any) -> str:
    """Return a bounded ``repr`` of *value*."""
    return _repr.repr(value)


def caller_location(depth: int = 1) -> SourceLocation:
    """Return the location *depth* frames above the caller of this function."""
    frame = inspect.currentframe()
    try:
        target = frame.f_back if frame is not None else None
        for _ in range(depth):
            if target is None:
                break
            target = target.f_back
        if target is None:
            return SourceLocation()
        return SourceLocation(file=target.f_code.co_filename, line=target.f_lineno)
    finally:
        del frame


def source_line(location: SourceLocation) -> str:
    if not location.file:
        return ""
    return linecache.getline(location.file, location.line).strip()


def argument_texts(line: str) -> list[str]:
    """Return the source text of each positional argument of the call on *line*.

    Only the first call found is considered.  Returns ``[]`` when the line
    does not parse on its own (e.g. a call spanning several lines).
    """
    try:
        tree = ast.parse(line)
    except SyntaxError:
        return []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            return [ast.get_source_segment(line, arg) or "" for arg in node.args]
    return []


def capture_condition(
    condition: Any,
    op: str | None = None,
    rhs: Any = None,
    *,
    text: str | None = None,
    location: SourceLocation,
    arg_offset: int = 0,
) -> CheckInvocation:
    """Build an invocation for a boolean or ``lhs <op> rhs`` check.

    *arg_offset* is the number of leading call arguments that precede the
    condition on the source line (e.g. a severity argument).

    Raises:
        ValueError: If *op* is not one of :data:`OPERATORS`.
    """
    line = source_line(location)
    arg_texts = argument_texts(line)[arg_offset:] if line else []

    if op is None:
        outcome = bool(condition)
        lhs_text = arg_texts[0] if arg_texts else ""
        return CheckInvocation(
            outcome=outcome,
            condition_text=text or lhs_text or line,
            lhs_text=lhs_text,
            lhs_rendered=render(condition),
            location=location,
        )

    compare = OPERATORS.get(op)
    if compare is None:
        raise ValueError(
            f"Unsupported operator {op!r}; expected one of {', '.join(OPERATORS)}"
        )
    lhs_text = arg_texts[0] if len(arg_texts) >= 1 else render(condition)
    rhs_text = arg_texts[2] if len(arg_texts) >= 3 else render(rhs)
    return CheckInvocation(
        outcome=bool(compare(condition, rhs)),
        condition_text=text or f"{lhs_text} {op} {rhs_text}",
        operator=op,
        lhs_text=lhs_text,
        lhs_rendered=render(condition),
        rhs_text=rhs_text,
        rhs_rendered=render(rhs),
        location=location,
    )


def capture_call(
    predicate: Callable[..., Any],
    args: tuple[Any, ...],
    *,
    text: str | None = None,
    location: SourceLocation,
) -> CheckInvocation:
    """Build an invocation for ``predicate(*args)``; arguments are rendered."""
    name = getattr(predicate, "__name__", repr(predicate))
    rendered = ", ".join(render(a) for a in args)
    return CheckInvocation(
        outcome=bool(predicate(*args)),
        condition_text=text or f"{name}({rendered})",
        operator="call",
        lhs_text=name,
        lhs_rendered=rendered,
        location=location,
    )

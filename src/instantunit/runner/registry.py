"""Unit registry: discovery-phase collection of test units.

Units register themselves while test modules are imported, through the
:func:`test` and :func:`test_suite` decorators or by calling
:meth:`UnitRegistry.register_case` / :meth:`UnitRegistry.register_suite`
directly.  Registration is append-only and keeps encounter order; the
engine iterates in that order.

Example::

    registry = UnitRegistry()

    @registry.test("empty list is falsy")
    def _(t):
        t.expect(not [])

    @registry.test_suite("Vec")
    def _(suite):
        v = [10, 20, 31]

        @suite.case("size")
        def _(t):
            t.expect(len(v), "==", 3)

        v.clear()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from instantunit.runner.context import DEFAULT_SUITE_NAME
from instantunit.runner.errors import RegistrationError
from instantunit.runner.models import SourceLocation

if TYPE_CHECKING:
    from instantunit.runner.checks import Checker
    from instantunit.runner.engine import SuiteCursor

logger = logging.getLogger(__name__)

CaseBody = Callable[["Checker"], Any]
SuiteBody = Callable[["SuiteCursor"], Any]
F = TypeVar("F", bound=Callable[..., Any])


def location_of(func: Callable[..., Any]) -> SourceLocation:
    """Return the definition site of *func*."""
    code = getattr(func, "__code__", None)
    if code is None:
        return SourceLocation()
    return SourceLocation(file=code.co_filename, line=code.co_firstlineno)


@runtime_checkable
class RunnableUnit(Protocol):
    """Capability set every registered unit provides."""

    name: str
    location: SourceLocation

    def run(self, handle: Any) -> Any: ...


@dataclass(frozen=True)
class CaseUnit:
    """A standalone case; runs inside the DEFAULT suite."""

    name: str
    body: CaseBody
    location: SourceLocation

    @property
    def identity(self) -> tuple[str, str]:
        return (DEFAULT_SUITE_NAME, self.name)

    def run(self, checker: Checker) -> Any:
        return self.body(checker)


@dataclass(frozen=True)
class SuiteUnit:
    """A named suite whose body declares cases through a cursor."""

    name: str
    body: SuiteBody
    location: SourceLocation

    @property
    def identity(self) -> tuple[str, str]:
        return (self.name, "")

    def run(self, cursor: SuiteCursor) -> Any:
        return self.body(cursor)


class UnitRegistry:
    """Append-only, order-preserving collection of test units.

    Two disjoint collections are kept: standalone cases (reported under
    the ``"DEFAULT"`` suite) and named suites.  A unit whose identity was
    already registered is kept in place and reported by
    :meth:`is_duplicate`; the engine turns it into a startup fault.
    """

    def __init__(self) -> None:
        self._cases: list[CaseUnit] = []
        self._suites: list[SuiteUnit] = []
        self._first_seen: dict[tuple[str, str], object] = {}
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """End the discovery phase; later registrations raise."""
        self._sealed = True
        logger.debug(
            "Registry sealed with %d standalone case(s) and %d suite(s)",
            len(self._cases),
            len(self._suites),
        )

    def _check_writable(self, name: str) -> None:
        if self._sealed:
            raise RegistrationError(
                f"Cannot register '{name}': discovery phase is over"
            )

    def register_case(self, unit: CaseUnit) -> None:
        """Append a standalone case."""
        self._check_writable(unit.name)
        self._remember(unit.identity, unit)
        self._cases.append(unit)

    def register_suite(self, unit: SuiteUnit) -> None:
        """Append a named suite."""
        self._check_writable(unit.name)
        self._remember(unit.identity, unit)
        self._suites.append(unit)

    def _remember(self, identity: tuple[str, str], unit: object) -> None:
        if identity in self._first_seen:
            logger.warning(
                "Duplicate registration for %s at %s",
                "::".join(p for p in identity if p),
                getattr(unit, "location", ""),
            )
            return
        self._first_seen[identity] = unit

    def is_duplicate(self, unit: CaseUnit | SuiteUnit) -> bool:
        """Whether an earlier unit already claimed *unit*'s identity."""
        first = self._first_seen.get(unit.identity)
        return first is not None and first is not unit

    def duplicates(self) -> list[CaseUnit | SuiteUnit]:
        """Return every unit that repeats an earlier identity."""
        units: list[CaseUnit | SuiteUnit] = [*self._cases, *self._suites]
        return [u for u in units if self.is_duplicate(u)]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    @property
    def cases(self) -> tuple[CaseUnit, ...]:
        return tuple(self._cases)

    @property
    def suites(self) -> tuple[SuiteUnit, ...]:
        return tuple(self._suites)

    def for_each_case(self, fn: Callable[[CaseUnit], Any]) -> None:
        """Call *fn* for every standalone case in discovery order."""
        for unit in self.cases:
            fn(unit)

    def for_each_suite(self, fn: Callable[[SuiteUnit], Any]) -> None:
        """Call *fn* for every named suite in discovery order."""
        for unit in self.suites:
            fn(unit)

    def __len__(self) -> int:
        return len(self._cases) + len(self._suites)

    def __iter__(self) -> Iterator[CaseUnit | SuiteUnit]:
        yield from self.cases
        yield from self.suites

    # ------------------------------------------------------------------
    # Decorators
    # ------------------------------------------------------------------

    def test(self, name: str | None = None) -> Callable[[F], F]:
        """Decorator registering a standalone case named *name*."""

        def decorator(func: F) -> F:
            self.register_case(
                CaseUnit(
                    name=name or func.__name__,
                    body=func,
                    location=location_of(func),
                )
            )
            return func

        return decorator

    def test_suite(self, name: str | None = None) -> Callable[[F], F]:
        """Decorator registering a suite body named *name*."""

        def decorator(func: F) -> F:
            self.register_suite(
                SuiteUnit(
                    name=name or func.__name__,
                    body=func,
                    location=location_of(func),
                )
            )
            return func

        return decorator


default_registry = UnitRegistry()
_active: list[UnitRegistry] = []


def active_registry() -> UnitRegistry:
    """Registry the module-level decorators currently write to."""
    return _active[-1] if _active else default_registry


@contextmanager
def registering_into(registry: UnitRegistry) -> Iterator[UnitRegistry]:
    """Route module-level :func:`test` / :func:`test_suite` to *registry*."""
    _active.append(registry)
    try:
        yield registry
    finally:
        _active.pop()


def test(name: str | None = None) -> Callable[[F], F]:
    """Register a standalone case in the active registry."""
    return active_registry().test(name)


def test_suite(name: str | None = None) -> Callable[[F], F]:
    """Register a suite in the active registry."""
    return active_registry().test_suite(name)


test.__test__ = False  # type: ignore[attr-defined]
test_suite.__test__ = False  # type: ignore[attr-defined]

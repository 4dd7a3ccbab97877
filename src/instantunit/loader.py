"""Test discovery: import test files and modules into a registry.

A target is either a filesystem path (a ``.py`` file, or a directory
searched recursively for ``test_*.py`` and ``*_test.py``) or a dotted
module name.  Every target is imported with the module-level
:func:`~instantunit.runner.registry.test` and
:func:`~instantunit.runner.registry.test_suite` decorators routed to the
given registry, which is sealed once all targets are loaded.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import re
import sys
from collections.abc import Iterable
from pathlib import Path
from types import ModuleType

from instantunit.runner.errors import LoadError
from instantunit.runner.registry import UnitRegistry, registering_into

logger = logging.getLogger(__name__)

TEST_FILE_PATTERNS = ("test_*.py", "*_test.py")


def discover_files(path: str | Path) -> list[Path]:
    """Return the test files under *path* in a stable order.

    Raises:
        LoadError: If *path* does not exist.
    """
    root = Path(path)
    if root.is_file():
        return [root]
    if not root.is_dir():
        raise LoadError(f"No such file or directory: {root}", target=str(path))

    found: set[Path] = set()
    for pattern in TEST_FILE_PATTERNS:
        found.update(p for p in root.rglob(pattern) if p.is_file())
    return sorted(found)


def _module_name(path: Path) -> str:
    slug = re.sub(r"\W", "_", str(path.resolve().with_suffix("")))
    return f"instantunit_loaded_{slug.strip('_')}"


def load_file(path: str | Path, registry: UnitRegistry) -> ModuleType:
    """Execute the test file at *path*, registering its units into *registry*.

    The file's directory is put on ``sys.path`` so it can import sibling
    helper modules.  A file loaded twice is executed twice.

    Raises:
        LoadError: If the file cannot be read or raises while importing.
    """
    file_path = Path(path)
    name = _module_name(file_path)
    spec = importlib.util.spec_from_file_location(name, file_path)
    if spec is None or spec.loader is None:
        raise LoadError(f"Cannot import {file_path}", target=str(path))

    parent = str(file_path.resolve().parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    logger.debug("Loading test file %s", file_path)
    try:
        with registering_into(registry):
            spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        raise LoadError(
            f"Error while importing {file_path}: {type(exc).__name__}: {exc}",
            target=str(path),
        ) from exc
    return module


def load_module(name: str, registry: UnitRegistry) -> ModuleType:
    """Import the dotted module *name* into *registry*.

    An already-imported module is reloaded so its decorators run again
    against *registry*.

    Raises:
        LoadError: If the module cannot be found or raises while importing.
    """
    logger.debug("Loading test module %s", name)
    try:
        with registering_into(registry):
            if name in sys.modules:
                return importlib.reload(sys.modules[name])
            return importlib.import_module(name)
    except ImportError as exc:
        raise LoadError(f"Cannot import module '{name}': {exc}", target=name) from exc
    except Exception as exc:
        raise LoadError(
            f"Error while importing {name}: {type(exc).__name__}: {exc}",
            target=name,
        ) from exc


def _looks_like_path(target: str) -> bool:
    return target.endswith(".py") or "/" in target or "\\" in target or Path(target).exists()


def load(
    targets: Iterable[str | Path],
    registry: UnitRegistry | None = None,
    seal: bool = True,
) -> UnitRegistry:
    """Load every target into *registry* (a new one when omitted).

    Args:
        targets: Paths and dotted module names, loaded in order.
        registry: Registry to fill.
        seal: Seal the registry once everything is loaded.

    Returns:
        The filled registry.

    Raises:
        LoadError: On the first target that cannot be loaded.
    """
    registry = registry if registry is not None else UnitRegistry()
    for target in targets:
        if isinstance(target, Path) or _looks_like_path(str(target)):
            for file_path in discover_files(target):
                load_file(file_path, registry)
        else:
            load_module(str(target), registry)

    logger.info(
        "Discovered %d standalone case(s) and %d suite(s)",
        len(registry.cases),
        len(registry.suites),
    )
    if seal:
        registry.seal()
    return registry

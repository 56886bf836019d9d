"""Isolation boundary check.

Default (upstream) modules may be imported by fork modules, never the other way
round. Upstream changes therefore never need to know that a fork module
exists, which keeps merges of upstream releases free of fork-specific edits.

The check is static: it parses every module of the package with ``ast``,
collects its imports (absolute, relative, and ``from package import
submodule``), and reports each default module that reaches into the fork
package. It runs in the test suite and behind ``forkline check-boundary``.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from forkline.core.errors import ForklineError

DEFAULT_PACKAGE = "forkline"
DEFAULT_FORK_PACKAGE = "forkline.fork"


@dataclass(frozen=True, order=True)
class BoundaryViolation:
    """A default module importing a fork module."""

    importer: str
    imported: str
    path: str
    lineno: int

    def __str__(self) -> str:
        return f"{self.path}:{self.lineno}: {self.importer} imports {self.imported}"


class IsolationViolation(ForklineError):
    """Raised when one or more default modules import fork modules."""

    def __init__(self, violations: List[BoundaryViolation]) -> None:
        self.violations = violations
        lines = "\n".join(f"  {violation}" for violation in violations)
        super().__init__(f"{len(violations)} isolation boundary violation(s):\n{lines}")


def package_root() -> Path:
    """Directory containing the installed ``forkline`` package."""
    return Path(__file__).resolve().parent


def collect_modules(root: Path, package: str) -> Dict[str, Path]:
    """Map dotted module names to source files under ``root``.

    Args:
        root: Directory of the top-level package.
        package: Dotted name of that package.
    """
    modules: Dict[str, Path] = {}
    for path in sorted(root.rglob("*.py")):
        parts = list(path.relative_to(root).with_suffix("").parts)
        if parts[-1] == "__init__":
            parts = parts[:-1]
        modules[".".join([package, *parts])] = path
    return modules


def _is_package(path: Path) -> bool:
    return path.name == "__init__.py"


def _resolve_relative(module: str, is_package: bool, level: int, target: Optional[str]) -> str:
    base = module.split(".")
    if not is_package:
        base = base[:-1]
    if level > 1:
        base = base[: len(base) - (level - 1)]
    if target:
        base = base + target.split(".")
    return ".".join(base)


def iter_imports(path: Path, module: str) -> Iterator[Tuple[str, int]]:
    """Yield ``(imported module, line number)`` pairs for one source file.

    ``from a import b`` yields both ``a`` and ``a.b`` since ``b`` may be a
    submodule.
    """
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name, node.lineno
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                base = _resolve_relative(module, _is_package(path), node.level, node.module)
            else:
                base = node.module or ""
            if base:
                yield base, node.lineno
            for alias in node.names:
                if alias.name != "*":
                    yield f"{base}.{alias.name}" if base else alias.name, node.lineno


def _within(name: str, package: str) -> bool:
    return name == package or name.startswith(package + ".")


def find_violations(
    root: Optional[Path] = None,
    package: str = DEFAULT_PACKAGE,
    fork_package: str = DEFAULT_FORK_PACKAGE,
) -> List[BoundaryViolation]:
    """Walk the package and report default modules that import fork modules.

    Args:
        root: Directory of the top-level package; the installed ``forkline``
            package by default.
        package: Dotted name of the top-level package.
        fork_package: Dotted name of the fork subpackage.

    Returns:
        Sorted list of violations, empty when the boundary holds.
    """
    root = root or package_root()
    # one violation per import statement, reporting the outermost fork name
    found: Dict[Tuple[str, int], BoundaryViolation] = {}
    for module, path in collect_modules(root, package).items():
        if _within(module, fork_package):
            continue
        for imported, lineno in iter_imports(path, module):
            if not _within(imported, fork_package):
                continue
            previous = found.get((module, lineno))
            if previous is not None and len(previous.imported) <= len(imported):
                continue
            found[(module, lineno)] = BoundaryViolation(
                importer=module,
                imported=imported,
                path=str(path),
                lineno=lineno,
            )
    return sorted(found.values())


def check_isolation_boundary(
    root: Optional[Path] = None,
    package: str = DEFAULT_PACKAGE,
    fork_package: str = DEFAULT_FORK_PACKAGE,
) -> None:
    """Raise ``IsolationViolation`` if any default module imports fork code."""
    violations = find_violations(root, package, fork_package)
    if violations:
        raise IsolationViolation(violations)

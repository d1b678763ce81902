"""Architectural boundary tests enforcing layer dependency rules.

Layer dependency direction (allowed):
  server → session → logic
  server → messaging → session (display snapshots)
  client → session → logic
  prizewheel → shared

Forbidden (runtime imports):
  logic → session, messaging, server, client
  session → server
  shared → prizewheel
"""

import ast
from pathlib import Path

_PACKAGE_ROOT = Path(__file__).resolve().parents[2]
_SHARED_ROOT = _PACKAGE_ROOT.parent / "shared"


def _collect_runtime_import_targets(source_dir: Path) -> list[tuple[str, int, str]]:
    """Parse all non-test .py files and return (filename, lineno, module) for runtime imports.

    Imports inside `if TYPE_CHECKING:` blocks are type-only and skipped.
    """
    results: list[tuple[str, int, str]] = []
    for py_file in source_dir.rglob("*.py"):
        if "tests" in py_file.parts:
            continue
        tree = ast.parse(py_file.read_text(), filename=str(py_file))
        type_checking_ranges = _find_type_checking_ranges(tree)
        for node in ast.walk(tree):
            if not isinstance(node, (ast.Import, ast.ImportFrom)):
                continue
            if any(start <= node.lineno <= end for start, end in type_checking_ranges):
                continue
            if isinstance(node, ast.Import):
                results.extend((py_file.name, node.lineno, alias.name) for alias in node.names)
            elif node.module is not None:
                results.append((py_file.name, node.lineno, node.module))
    return results


def _find_type_checking_ranges(tree: ast.Module) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.If) and isinstance(node.test, ast.Name) and node.test.id == "TYPE_CHECKING":
            start = node.lineno
            end = max(child.lineno for child in ast.walk(node) if hasattr(child, "lineno"))
            ranges.append((start, end))
    return ranges


def test_logic_is_pure():
    """prizewheel.logic must not depend on the layers that drive it."""
    forbidden = ("prizewheel.session", "prizewheel.messaging", "prizewheel.server", "prizewheel.client")
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_PACKAGE_ROOT / "logic")
        if module.startswith(forbidden)
    ]
    assert violations == [], f"prizewheel.logic imports outer layers: {violations}"


def test_shared_does_not_import_prizewheel():
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_SHARED_ROOT)
        if module.startswith("prizewheel")
    ]
    assert violations == [], f"shared imports from prizewheel: {violations}"


def test_session_does_not_import_server():
    """The session layer and the request models it sends must not depend on the HTTP server."""
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_PACKAGE_ROOT / "session")
        if module.startswith("prizewheel.server")
    ]
    assert violations == [], f"prizewheel.session imports the server layer: {violations}"

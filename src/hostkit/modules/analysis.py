"""Static analysis of code unit source.

Everything here works on the AST only; nothing is imported or executed.
"""

from __future__ import annotations

import ast
import importlib.machinery
import importlib.util
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from hostkit.config.constants import DEFAULT_EXPORT, ENTRY_DEFAULT, ENTRY_SCRIPT
from hostkit.core.errors import BundleError


@dataclass
class ImportReport:
    """Module-level imports of a unit, grouped by how they resolve."""

    external: list[str] = field(default_factory=list)  # on sys.path
    local: list[str] = field(default_factory=list)  # next to the source file
    unresolved: list[str] = field(default_factory=list)


def parse_source(name: str, source: str, filename: str = "<unit>") -> ast.Module:
    """Parse unit source, raising BundleError(stage="syntax") on failure."""
    try:
        return ast.parse(source, filename=filename)
    except SyntaxError as e:
        location = f"{e.filename or filename}:{e.lineno or 0}"
        raise BundleError.syntax(name, f"{e.msg} at {location}", line=e.lineno) from e
    except ValueError as e:
        # Source containing null bytes
        raise BundleError.syntax(name, str(e)) from e


def _module_level(body: list[ast.stmt]) -> Iterator[ast.stmt]:
    """Statements executed at module level, descending into compound blocks."""
    for node in body:
        yield node
        if isinstance(node, ast.If | ast.For | ast.While):
            yield from _module_level(node.body)
            yield from _module_level(node.orelse)
        elif isinstance(node, ast.With | ast.AsyncWith):
            yield from _module_level(node.body)
        elif isinstance(node, ast.Try):
            yield from _module_level(node.body)
            for handler in node.handlers:
                yield from _module_level(handler.body)
            yield from _module_level(node.orelse)
            yield from _module_level(node.finalbody)


def _bound_names(node: ast.stmt) -> Iterator[str]:
    if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef):
        yield node.name
    elif isinstance(node, ast.Assign):
        for target in node.targets:
            if isinstance(target, ast.Name):
                yield target.id
    elif isinstance(node, ast.AnnAssign | ast.AugAssign):
        if isinstance(node.target, ast.Name):
            yield node.target.id
    elif isinstance(node, ast.Import | ast.ImportFrom):
        for alias in node.names:
            yield alias.asname or alias.name.split(".")[0]


def _single_dunder_all(node: ast.stmt) -> str | None:
    if not isinstance(node, ast.Assign):
        return None
    if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
        return None
    value = node.value
    if isinstance(value, ast.List | ast.Tuple) and len(value.elts) == 1:
        elt = value.elts[0]
        if isinstance(elt, ast.Constant) and isinstance(elt.value, str):
            return elt.value
    return None


def detect_export(tree: ast.Module) -> str | None:
    """Name of the unit's primary export, or None for a script.

    A module-level ``default`` binding wins; otherwise a literal one-element
    ``__all__`` names the export.
    """
    bound: set[str] = set()
    declared: str | None = None
    for node in _module_level(tree.body):
        bound.update(_bound_names(node))
        declared = _single_dunder_all(node) or declared
    if DEFAULT_EXPORT in bound:
        return DEFAULT_EXPORT
    if declared is not None and declared in bound:
        return declared
    return None


def entry_point_for(export: str | None) -> str:
    return ENTRY_DEFAULT if export is not None else ENTRY_SCRIPT


def detect_entry_point(source: str) -> str:
    """Entry point of raw source; unparsable source is treated as a script."""
    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError):
        return ENTRY_SCRIPT
    return entry_point_for(detect_export(tree))


def _guarded_by_import_error(node: ast.Try) -> bool:
    for handler in node.handlers:
        exc = handler.type
        if exc is None:
            return True
        names = exc.elts if isinstance(exc, ast.Tuple) else [exc]
        for n in names:
            if isinstance(n, ast.Name) and n.id in ("ImportError", "ModuleNotFoundError", "Exception"):
                return True
    return False


def _required_imports(body: list[ast.stmt]) -> Iterator[ast.Import | ast.ImportFrom]:
    """Module-level imports, skipping optional ones inside try/except ImportError."""
    for node in body:
        if isinstance(node, ast.Import | ast.ImportFrom):
            yield node
        elif isinstance(node, ast.Try):
            if not _guarded_by_import_error(node):
                yield from _required_imports(node.body)
            yield from _required_imports(node.orelse)
            yield from _required_imports(node.finalbody)
        elif isinstance(node, ast.If | ast.With | ast.AsyncWith):
            yield from _required_imports(node.body)
            if isinstance(node, ast.If):
                yield from _required_imports(node.orelse)


def _top_level_names(tree: ast.Module) -> list[str]:
    names: list[str] = []
    for node in _required_imports(tree.body):
        if isinstance(node, ast.Import):
            names.extend(alias.name.split(".")[0] for alias in node.names)
        elif node.level > 0:
            names.append("." * node.level + (node.module or ""))
        elif node.module and node.module != "__future__":
            names.append(node.module.split(".")[0])
    return list(dict.fromkeys(names))


def _on_sys_path(top: str) -> bool:
    if top in sys.builtin_module_names or top in sys.modules:
        return True
    try:
        return importlib.util.find_spec(top) is not None
    except (ImportError, ValueError):
        return False


def check_imports(tree: ast.Module, search_dir: Path | None) -> ImportReport:
    """Classify every required module-level import of a unit.

    Relative imports can never resolve for a standalone unit.
    """
    report = ImportReport()
    for top in _top_level_names(tree):
        if top.startswith("."):
            report.unresolved.append(top)
        elif search_dir is not None and importlib.machinery.PathFinder.find_spec(
            top, [str(search_dir)]
        ):
            report.local.append(top)
        elif _on_sys_path(top):
            report.external.append(top)
        else:
            report.unresolved.append(top)
    return report

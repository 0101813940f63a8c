"""Tests for static analysis of code unit source."""

from pathlib import Path

import pytest

from hostkit.core.errors import BundleError
from hostkit.modules.analysis import (
    check_imports,
    detect_entry_point,
    detect_export,
    parse_source,
)


class TestParseSource:
    """Syntax stage."""

    def test_valid_source_parses(self) -> None:
        tree = parse_source("ok", "x = 1\n")

        assert tree.body

    def test_syntax_error_raises_bundle_error_at_syntax_stage(self) -> None:
        with pytest.raises(BundleError) as exc_info:
            parse_source("broken", "def f(:\n")

        assert exc_info.value.stage == "syntax"
        assert exc_info.value.details["line"] == 1

    def test_null_bytes_raise_bundle_error(self) -> None:
        with pytest.raises(BundleError):
            parse_source("nul", "x = 1\x00")


class TestDetectExport:
    """Primary export detection."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("default = lambda n: n * 2\n", "default"),
            ("def default(n):\n    return n\n", "default"),
            ("class default:\n    pass\n", "default"),
            ("from os.path import join as default\n", "default"),
            ("def run():\n    pass\n__all__ = ['run']\n", "run"),
            ("def a(): pass\ndef b(): pass\n__all__ = ['a', 'b']\n", None),
            ("__all__ = ['ghost']\n", None),
            ("print('side effect')\n", None),
            ("if True:\n    default = 1\n", "default"),
        ],
    )
    def test_detects_export(self, source: str, expected: str | None) -> None:
        assert detect_export(parse_source("u", source)) == expected

    def test_default_wins_over_dunder_all(self) -> None:
        source = "def run(): pass\ndefault = run\n__all__ = ['run']\n"

        assert detect_export(parse_source("u", source)) == "default"

    def test_nested_function_default_is_not_module_level(self) -> None:
        source = "def outer():\n    default = 1\n"

        assert detect_export(parse_source("u", source)) is None


class TestDetectEntryPoint:
    """Entry point of raw source."""

    def test_default_export(self) -> None:
        assert detect_entry_point("default = 1\n") == "default"

    def test_script(self) -> None:
        assert detect_entry_point("print(1)\n") == "script"

    def test_unparsable_is_script(self) -> None:
        assert detect_entry_point("def (\n") == "script"


class TestCheckImports:
    """Import resolution stage."""

    def test_stdlib_imports_are_external(self, tmp_path: Path) -> None:
        tree = parse_source("u", "import os\nfrom collections import deque\n")

        report = check_imports(tree, tmp_path)

        assert report.external == ["os", "collections"]
        assert report.local == []
        assert report.unresolved == []

    def test_sibling_module_is_local(self, tmp_path: Path) -> None:
        (tmp_path / "helpers.py").write_text("VALUE = 1\n")
        tree = parse_source("u", "import helpers\n")

        report = check_imports(tree, tmp_path)

        assert report.local == ["helpers"]

    def test_missing_module_is_unresolved(self, tmp_path: Path) -> None:
        tree = parse_source("u", "import definitely_not_a_real_module_xyz\n")

        report = check_imports(tree, tmp_path)

        assert report.unresolved == ["definitely_not_a_real_module_xyz"]

    def test_relative_import_is_unresolved(self, tmp_path: Path) -> None:
        tree = parse_source("u", "from . import sibling\n")

        assert check_imports(tree, tmp_path).unresolved == ["."]

    def test_optional_import_is_skipped(self, tmp_path: Path) -> None:
        """Imports guarded by except ImportError are not required."""
        source = (
            "try:\n"
            "    import definitely_not_a_real_module_xyz\n"
            "except ImportError:\n"
            "    definitely_not_a_real_module_xyz = None\n"
        )

        report = check_imports(parse_source("u", source), tmp_path)

        assert report.unresolved == []

    def test_function_level_imports_are_ignored(self, tmp_path: Path) -> None:
        source = "def f():\n    import definitely_not_a_real_module_xyz\n"

        assert check_imports(parse_source("u", source), tmp_path).unresolved == []

    def test_future_import_is_ignored(self, tmp_path: Path) -> None:
        source = "from __future__ import annotations\n"

        report = check_imports(parse_source("u", source), tmp_path)

        assert report.external == [] and report.unresolved == []

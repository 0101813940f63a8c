"""Tests for the stickytape bundler collaborator."""

from collections.abc import Sequence
from pathlib import Path
from unittest.mock import patch

import pytest

from hostkit.collaborators.process import ProcessResult
from hostkit.core.errors import BundleError
from hostkit.modules.bundler import StickytapeBundler


class TestStickytapeBundler:
    """Bundling through the ProcessRunner."""

    @pytest.mark.asyncio
    async def test_given_success_when_bundle_then_returns_stdout(
        self, tmp_path: Path, make_runner: type
    ) -> None:
        # Given
        runner = make_runner(ProcessResult(stdout="# bundled\n", stderr="", exit_code=0))
        bundler = StickytapeBundler(runner, executable="stickytape")

        # When
        result = await bundler.bundle("unit", tmp_path / "unit.py", tmp_path)

        # Then
        assert result == "# bundled\n"
        assert runner.commands == [
            ["stickytape", str(tmp_path / "unit.py"), "--add-python-path", str(tmp_path)]
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("stderr", "stage"),
        [
            ("Traceback...\nSyntaxError: invalid syntax", "syntax"),
            ("Traceback...\nModuleNotFoundError: No module named 'x'", "import"),
            ("something else went wrong", "bundle"),
        ],
    )
    async def test_given_failure_when_bundle_then_stage_from_stderr(
        self, tmp_path: Path, make_runner: type, stderr: str, stage: str
    ) -> None:
        runner = make_runner(ProcessResult(stdout="", stderr=stderr, exit_code=1))
        bundler = StickytapeBundler(runner)

        with pytest.raises(BundleError) as exc_info:
            await bundler.bundle("unit", tmp_path / "unit.py", tmp_path)

        assert exc_info.value.stage == stage
        assert exc_info.value.details["exit_code"] == 1
        assert stderr.splitlines()[-1] in exc_info.value.message

    @pytest.mark.asyncio
    async def test_given_runner_oserror_when_bundle_then_bundle_stage(self, tmp_path: Path) -> None:
        class BrokenRunner:
            async def run(
                self,
                command: Sequence[str],
                *,
                cwd: Path | None = None,
                timeout: float | None = None,
            ) -> ProcessResult:
                raise FileNotFoundError("stickytape")

        with pytest.raises(BundleError) as exc_info:
            await StickytapeBundler(BrokenRunner()).bundle("unit", tmp_path / "u.py", tmp_path)

        assert exc_info.value.stage == "bundle"

    def test_available_follows_executable_lookup(self, make_runner: type) -> None:
        bundler = StickytapeBundler(make_runner(), executable="stickytape")

        with patch("hostkit.modules.bundler.shutil.which", return_value=None):
            assert bundler.available is False
        with patch("hostkit.modules.bundler.shutil.which", return_value="/usr/bin/stickytape"):
            assert bundler.available is True

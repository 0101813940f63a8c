"""Bundler collaborator: fold a unit and its local imports into one file.

The default bundler shells out to ``stickytape`` through the ProcessRunner.
When the executable is not installed the bundler reports itself unavailable
and the store keeps source unbundled.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol

import structlog

from hostkit.collaborators.process import ProcessRunner
from hostkit.core.errors import BundleError

logger = structlog.get_logger()

_SYNTAX_MARKERS = ("SyntaxError", "invalid syntax")
_IMPORT_MARKERS = ("No module named", "Could not find module", "ModuleNotFoundError")


class Bundler(Protocol):
    """Produces a self-contained unit from an entry file."""

    @property
    def available(self) -> bool: ...

    async def bundle(self, name: str, entry: Path, search_dir: Path) -> str: ...


def _classify_failure(stderr: str) -> str:
    if any(marker in stderr for marker in _SYNTAX_MARKERS):
        return "syntax"
    if any(marker in stderr for marker in _IMPORT_MARKERS):
        return "import"
    return "bundle"


class StickytapeBundler:
    """Bundler running the ``stickytape`` executable."""

    def __init__(
        self,
        runner: ProcessRunner,
        executable: str = "stickytape",
        timeout_sec: float = 30.0,
    ) -> None:
        self._runner = runner
        self._executable = executable
        self._timeout_sec = timeout_sec

    @property
    def available(self) -> bool:
        return shutil.which(self._executable) is not None

    async def bundle(self, name: str, entry: Path, search_dir: Path) -> str:
        """Bundle ``entry`` with modules found in ``search_dir``.

        Raises:
            BundleError: With the stage inferred from the bundler's stderr.
        """
        command = [self._executable, str(entry), "--add-python-path", str(search_dir)]
        try:
            result = await self._runner.run(command, cwd=search_dir, timeout=self._timeout_sec)
        except (OSError, TimeoutError) as e:
            raise BundleError.bundle_failed(name, str(e)) from e

        if not result.ok:
            stderr = result.stderr.strip()
            last_line = stderr.splitlines()[-1] if stderr else f"exit code {result.exit_code}"
            stage = _classify_failure(stderr)
            logger.warning("bundler_failed", name=name, stage=stage, exit_code=result.exit_code)
            raise BundleError.at_stage(stage, name, last_line, exit_code=result.exit_code)  # type: ignore[arg-type]

        logger.debug("bundler_finished", name=name, size=len(result.stdout))
        return result.stdout

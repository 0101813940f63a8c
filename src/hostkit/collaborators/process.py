"""ProcessRunner collaborator: run an external command and capture its output."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProcessResult:
    """Captured outcome of one command."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(Protocol):
    """Runs a command to completion."""

    async def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult: ...


class SubprocessRunner:
    """ProcessRunner backed by ``asyncio.create_subprocess_exec``."""

    async def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``command`` and capture decoded stdout/stderr.

        Raises:
            OSError: If the executable cannot be started.
            TimeoutError: If ``timeout`` elapses; the process is killed.
        """
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            logger.warning("process_timeout", command=list(command), timeout_sec=timeout)
            raise TimeoutError(f"{command[0]} timed out after {timeout}s") from None

        result = ProcessResult(
            stdout=stdout_bytes.decode(errors="replace"),
            stderr=stderr_bytes.decode(errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
        )
        logger.debug("process_finished", command=command[0], exit_code=result.exit_code)
        return result

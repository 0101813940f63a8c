"""FileStore collaborator: text file I/O and live file watches.

``LocalFileStore`` runs blocking filesystem calls in a worker thread so the
event loop is never blocked, and watches files with watchfiles. A watch is a
handle that is both an async iterator of ``FileEvent`` and closable; closing
it is the only way to end the iteration.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

import structlog
from watchfiles import Change, awatch

logger = structlog.get_logger()

FileEventKind = Literal["create", "modify", "remove"]

_CHANGE_KINDS: dict[Change, FileEventKind] = {
    Change.added: "create",
    Change.modified: "modify",
    Change.deleted: "remove",
}


@dataclass(frozen=True)
class FileEvent:
    """A single filesystem change."""

    kind: FileEventKind
    path: Path


class FileWatch(Protocol):
    """Live watch handle: iterate for events, close to stop."""

    def __aiter__(self) -> AsyncIterator[FileEvent]: ...

    def close(self) -> None: ...

    @property
    def closed(self) -> bool: ...


class FileStore(Protocol):
    """Text file storage with change watching."""

    async def read(self, path: Path) -> str: ...

    async def write(self, path: Path, text: str) -> None: ...

    async def exists(self, path: Path) -> bool: ...

    async def remove(self, path: Path) -> bool: ...

    def watch(self, path: Path) -> FileWatch:
        """Open a watch on an existing file. Raises FileNotFoundError otherwise."""
        ...


def _atomic_write(path: Path, text: str) -> None:
    """Write via a sibling temp file and rename, so readers never see partial content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _remove(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


class WatchfilesWatch:
    """FileWatch backed by ``watchfiles.awatch``."""

    def __init__(
        self,
        path: Path,
        *,
        debounce_ms: int = 200,
        step_ms: int = 50,
        force_polling: bool = False,
    ) -> None:
        self.path = path
        self._debounce_ms = debounce_ms
        self._step_ms = step_ms
        self._force_polling = force_polling
        self._stop_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._stop_event.is_set()

    def close(self) -> None:
        self._stop_event.set()

    def __aiter__(self) -> AsyncIterator[FileEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[FileEvent]:
        async for changes in awatch(
            self.path,
            watch_filter=None,
            stop_event=self._stop_event,
            debounce=self._debounce_ms,
            step=self._step_ms,
            force_polling=self._force_polling,
        ):
            for change, raw_path in sorted(changes, key=lambda c: (c[1], c[0].value)):
                yield FileEvent(kind=_CHANGE_KINDS[change], path=Path(raw_path))


class LocalFileStore:
    """FileStore on the local filesystem."""

    def __init__(
        self,
        *,
        debounce_ms: int = 200,
        step_ms: int = 50,
        force_polling: bool = False,
    ) -> None:
        self._debounce_ms = debounce_ms
        self._step_ms = step_ms
        self._force_polling = force_polling

    async def read(self, path: Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write(self, path: Path, text: str) -> None:
        await asyncio.to_thread(_atomic_write, Path(path), text)

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def remove(self, path: Path) -> bool:
        """Delete a file. Returns False if it did not exist."""
        return await asyncio.to_thread(_remove, Path(path))

    def watch(self, path: Path) -> FileWatch:
        if not Path(path).exists():
            raise FileNotFoundError(f"cannot watch missing file: {path}")
        logger.debug("file_watch_opened", path=str(path), force_polling=self._force_polling)
        return WatchfilesWatch(
            Path(path),
            debounce_ms=self._debounce_ms,
            step_ms=self._step_ms,
            force_polling=self._force_polling,
        )

"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides the storage, namespace and collaborator fixtures shared by the suite.
"""

import asyncio
import sys
from collections.abc import AsyncIterator, Iterator, Sequence
from pathlib import Path

# Insert local src directory at the beginning of sys.path
# This ensures that the local hostkit package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of hostkit modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("hostkit"):
        del sys.modules[module_name]

import pytest  # noqa: E402

from hostkit.collaborators.files import FileEvent, LocalFileStore  # noqa: E402
from hostkit.collaborators.process import ProcessResult  # noqa: E402
from hostkit.modules.store import ModuleStore  # noqa: E402
from hostkit.namespace.tree import Namespace  # noqa: E402
from hostkit.storage.database import Database  # noqa: E402


class FakeWatch:
    """FileWatch fed by the test through ``push``/``fail``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._queue: asyncio.Queue[FileEvent | BaseException | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def push(self, kind: str) -> None:
        self._queue.put_nowait(FileEvent(kind=kind, path=self.path))  # type: ignore[arg-type]

    def fail(self, error: BaseException) -> None:
        self._queue.put_nowait(error)

    def __aiter__(self) -> AsyncIterator[FileEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[FileEvent]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeFileStore(LocalFileStore):
    """Local file I/O with scripted watches."""

    def __init__(self) -> None:
        super().__init__()
        self.watches: list[FakeWatch] = []

    def watch(self, path: Path) -> FakeWatch:  # type: ignore[override]
        if not Path(path).exists():
            raise FileNotFoundError(path)
        watch = FakeWatch(path)
        self.watches.append(watch)
        return watch


class FakeRunner:
    """ProcessRunner returning a canned result and recording commands."""

    def __init__(self, result: ProcessResult | None = None) -> None:
        self.result = result or ProcessResult(stdout="", stderr="", exit_code=0)
        self.commands: list[list[str]] = []

    async def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        self.commands.append(list(command))
        return self.result


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """Database with the current schema in a temp directory."""
    database = Database(tmp_path / "hostkit.sqlite")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def root() -> Namespace:
    """Namespace root with an empty module mount point."""
    return Namespace("hk", {"modules": {}})


@pytest.fixture
def files() -> FakeFileStore:
    return FakeFileStore()


@pytest.fixture
def store(db: Database, tmp_path: Path, root: Namespace, files: FakeFileStore) -> ModuleStore:
    """Module store without a bundler."""
    return ModuleStore(db, tmp_path / "modules", root, files)


@pytest.fixture
def make_runner() -> type[FakeRunner]:
    """Factory for ProcessRunners returning a canned result."""
    return FakeRunner

"""Collaborator interfaces the core depends on, with local implementations."""

from hostkit.collaborators.files import (
    FileEvent,
    FileEventKind,
    FileStore,
    FileWatch,
    LocalFileStore,
    WatchfilesWatch,
)
from hostkit.collaborators.process import ProcessResult, ProcessRunner, SubprocessRunner

__all__ = [
    "FileEvent",
    "FileEventKind",
    "FileStore",
    "FileWatch",
    "LocalFileStore",
    "ProcessResult",
    "ProcessRunner",
    "SubprocessRunner",
    "WatchfilesWatch",
]

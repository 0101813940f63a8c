"""SQLite access for the session store.

Reads go through plain ORM sessions. Writes that must not interleave with
another process use BEGIN IMMEDIATE; acquiring that lock is retried with
capped exponential backoff while SQLite reports the file as busy.
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA busy_timeout=30000",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)

_BUSY_MARKERS = ("database is locked", "database is busy")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff applied while BEGIN IMMEDIATE cannot take the write lock."""

    max_retries: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)


def _is_busy(error: OperationalError) -> bool:
    text_ = str(error).lower()
    return any(marker in text_ for marker in _BUSY_MARKERS)


def _apply_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    try:
        for pragma in _PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


class Database:
    """Engine owner for the session database file."""

    def __init__(
        self,
        db_path: Path,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
        retry_max_delay: float = 2.0,
    ) -> None:
        self.db_path = db_path
        self.retry = RetryPolicy(max_retries, retry_base_delay, retry_max_delay)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(self.engine, "connect", _apply_pragmas)

    def create_all(self) -> None:
        SQLModel.metadata.create_all(self.engine)

    def dispose(self) -> None:
        """Fold the WAL back into the main file and drop pooled connections."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
        except OperationalError as e:
            logger.debug("wal_checkpoint_skipped", error=str(e))
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        with Session(self.engine) as session:
            yield session

    def _begin_immediate(self, retries: int) -> Session:
        attempt = 0
        while True:
            session: Session | None = None
            try:
                session = Session(self.engine)
                session.execute(text("BEGIN IMMEDIATE"))
                return session
            except OperationalError as e:
                if session is not None:
                    session.close()
                if not _is_busy(e) or attempt >= retries:
                    raise
                delay = self.retry.delay(attempt)
                logger.warning(
                    "sqlite_busy_retry",
                    attempt=attempt + 1,
                    max_retries=retries,
                    delay_sec=delay,
                )
                time.sleep(delay)
                attempt += 1

    @contextmanager
    def immediate_transaction(
        self, max_retries: int | None = None
    ) -> Generator[Session, None, None]:
        """Write session holding the RESERVED lock for its whole body.

        Commits when the body completes, rolls back when it raises. Only
        lock acquisition is retried; errors from the body propagate as-is.

        Args:
            max_retries: Override the configured retry count.
        """
        session = self._begin_immediate(
            self.retry.max_retries if max_retries is None else max_retries
        )
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def table_columns(self, table: str) -> list[str]:
        """Column names of ``table``; empty when it does not exist."""
        with self.engine.connect() as conn:
            rows = conn.execute(text(f"PRAGMA table_info({table})")).fetchall()
        return [row[1] for row in rows]

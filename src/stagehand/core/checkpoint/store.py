"""Durable local storage for the checkpoint record.

Uses SQLAlchemy Core on a SQLite file. The checkpoints table holds at most
one row: writing replaces it inside a single transaction, so a reader
sees either the previous record or the new one, never a partial write.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Self

from sqlalchemy import (
    Column,
    Connection,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    event,
    inspect,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from stagehand.contracts import Checkpoint, ResumeError

metadata = MetaData()

# Single live checkpoint; slot is always 1
checkpoints_table = Table(
    "checkpoints",
    metadata,
    Column("slot", Integer, primary_key=True),
    Column("checkpoint_name", String(256), nullable=False),
    Column("section", Integer, nullable=False),
    Column("next_priority", Integer, nullable=False),
    Column("role", String(128), nullable=False),
    Column("resume_target", String(1024), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

_SLOT = 1


class CheckpointStore:
    """Checkpoint database connection manager."""

    def __init__(self, connection_string: str) -> None:
        """Initialize database connection.

        Args:
            connection_string: SQLAlchemy connection string
                e.g., "sqlite:///C:/ProgramData/Stagehand/checkpoint.db"
        """
        self.connection_string = connection_string
        self.path: Path | None = None
        self._engine: Engine | None = create_engine(connection_string, echo=False)
        if connection_string.startswith("sqlite"):
            CheckpointStore._configure_sqlite(self._engine)
        # Tables are created on first write; a damaged file must still be
        # reportable by read() instead of failing here.

    @classmethod
    def from_path(cls, path: Path) -> Self:
        """Open (and create if needed) the checkpoint database at path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(f"sqlite:///{path.resolve().as_posix()}")
        store.path = path
        return store

    @classmethod
    def in_memory(cls) -> Self:
        """Create an in-memory store for testing."""
        return cls("sqlite:///:memory:")

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Force synchronous writes so the record survives an abrupt reboot.

        Registers a connection event hook that sets:
        - PRAGMA journal_mode=DELETE (no WAL sidecar to lose on power cut)
        - PRAGMA synchronous=FULL (fsync on every commit)
        """

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA journal_mode=DELETE")
            cursor.execute("PRAGMA synchronous=FULL")
            cursor.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Checkpoint store is closed")
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Connection with automatic commit on success, rollback on exception."""
        with self.engine.begin() as conn:
            yield conn

    # === Record operations ===

    def write(self, checkpoint: Checkpoint) -> None:
        """Replace the live checkpoint with this one.

        Raises:
            SQLAlchemyError: If the write cannot be committed
        """
        metadata.create_all(self.engine)
        with self.connection() as conn:
            conn.execute(delete(checkpoints_table))
            conn.execute(
                checkpoints_table.insert().values(
                    slot=_SLOT,
                    checkpoint_name=checkpoint.checkpoint_name,
                    section=checkpoint.section,
                    next_priority=checkpoint.next_priority,
                    role=checkpoint.role,
                    resume_target=checkpoint.resume_target,
                    created_at=checkpoint.created_at,
                )
            )

    def read(self) -> Checkpoint | None:
        """Read the live checkpoint, if any.

        Returns:
            The checkpoint, or None when no resume is pending

        Raises:
            ResumeError: If the record exists but is unreadable or corrupt
        """
        try:
            with self.engine.connect() as conn:
                if not inspect(conn).has_table(checkpoints_table.name):
                    return None
                rows = conn.execute(select(checkpoints_table)).fetchall()
        except (SQLAlchemyError, sqlite3.Error, ValueError, TypeError) as e:
            # ValueError/TypeError: a stored value the column type cannot parse
            raise ResumeError(f"Checkpoint store unreadable: {e}") from e

        if not rows:
            return None
        if len(rows) > 1:
            raise ResumeError(
                f"Checkpoint store holds {len(rows)} records; expected at most one"
            )
        return _row_to_checkpoint(rows[0]._mapping)

    def clear(self) -> None:
        """Delete the live checkpoint (no-op when none exists)."""
        metadata.create_all(self.engine)
        with self.connection() as conn:
            conn.execute(delete(checkpoints_table))

    def purge(self) -> None:
        """Remove the live checkpoint even when the database file is damaged.

        Falls back to deleting the SQLite file when it cannot be opened.
        """
        try:
            self.clear()
        except (SQLAlchemyError, sqlite3.Error):
            if self.path is None:
                raise
            self.close()
            self.path.unlink(missing_ok=True)
            self._engine = create_engine(self.connection_string, echo=False)
            CheckpointStore._configure_sqlite(self._engine)


def _row_to_checkpoint(row: Any) -> Checkpoint:
    """Convert a database row to a Checkpoint, validating every field."""
    try:
        name = row["checkpoint_name"]
        section = row["section"]
        next_priority = row["next_priority"]
        role = row["role"]
        resume_target = row["resume_target"]
        created_at = row["created_at"]
    except KeyError as e:
        raise ResumeError(f"Checkpoint record missing field: {e}") from e

    # SQLite is loosely typed; a hand-edited or damaged record can hold anything
    problems: list[str] = []
    if not isinstance(name, str) or not name:
        problems.append("checkpoint_name")
    if not isinstance(section, int) or isinstance(section, bool):
        problems.append("section")
    if not isinstance(next_priority, int) or isinstance(next_priority, bool):
        problems.append("next_priority")
    if not isinstance(role, str) or not role:
        problems.append("role")
    if not isinstance(resume_target, str) or not resume_target:
        problems.append("resume_target")
    if not isinstance(created_at, datetime):
        problems.append("created_at")
    if problems:
        raise ResumeError(f"Checkpoint record corrupt: invalid {', '.join(problems)}")

    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)

    return Checkpoint(
        checkpoint_name=name,
        section=section,
        next_priority=next_priority,
        role=role,
        resume_target=resume_target,
        created_at=created_at,
    )

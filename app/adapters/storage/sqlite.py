"""SQLite link store built on SQLAlchemy.

Notes:
- One engine per process; each operation runs in its own short session.
- WAL journal mode plus a busy timeout lets the expiry sweep, inserts and
  reads from request threads interleave without a table-wide lock.
- Short-code uniqueness is enforced by the UNIQUE index, never by a read
  before the insert.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, delete, event, or_, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.adapters.storage.base import AbstractLinkStore, DuplicateShortCodeError
from app.adapters.storage.models import Base, LinkRecord
from app.core.errors import StorageAppError
from app.domain.link import Link

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


def _is_memory_database(database: str | None) -> bool:
    return not database or database == ":memory:" or database.startswith("file::memory:")


def create_sqlite_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create a thread-shareable SQLite engine for ``database_url``.

    File databases get their parent directory created and WAL enabled.
    In-memory databases share a single connection so every session sees
    the same data.
    """

    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        raise StorageAppError(
            code="unsupported_database",
            message="Only SQLite database URLs are supported",
            details={"value": url.get_backend_name()},
        )

    engine_kwargs: dict = {
        "echo": echo,
        "connect_args": {"check_same_thread": False},
    }
    in_memory = _is_memory_database(url.database)
    if in_memory:
        engine_kwargs["poolclass"] = StaticPool
    else:
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode = WAL")
        finally:
            cursor.close()

    return engine


class SQLiteLinkStore(AbstractLinkStore):
    """Link store backed by a single-file SQLite database."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_url(cls, database_url: str) -> "SQLiteLinkStore":
        """Build a store and make sure the schema exists.

        Raises:
            StorageAppError: If the database cannot be opened or migrated.
        """
        store = cls(create_sqlite_engine(database_url))
        store.create_schema()
        return store

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self._engine)
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error(
                "store.init_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StorageAppError(
                code="store_unavailable",
                message="Link store could not be initialised",
            ) from exc
        logger.info("store.ready", extra={"backend": "sqlite"})

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except DuplicateShortCodeError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "store.operation_failed",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StorageAppError(
                code="storage_error",
                message="Link store operation failed",
                details={"context": {"operation": operation}},
            ) from exc
        finally:
            session.close()

    def insert(self, link: Link) -> Link:
        with self._session("insert") as session:
            session.add(LinkRecord.from_link(link))
            try:
                session.flush()
            except IntegrityError as exc:
                if "short_code" in str(exc.orig):
                    raise DuplicateShortCodeError(link.short_code) from exc
                raise
        return link

    def get_by_short_code(self, short_code: str) -> Link | None:
        with self._session("get_by_short_code") as session:
            record = session.execute(
                select(LinkRecord).where(LinkRecord.short_code == short_code)
            ).scalar_one_or_none()
            return record.to_link() if record is not None else None

    def list_active(self, now: datetime) -> list[Link]:
        stmt = (
            select(LinkRecord)
            .where(or_(LinkRecord.expires_at.is_(None), LinkRecord.expires_at > now))
            .order_by(LinkRecord.created_at.desc(), LinkRecord.id)
        )
        with self._session("list_active") as session:
            return [record.to_link() for record in session.execute(stmt).scalars()]

    def delete(self, link_id: str) -> bool:
        with self._session("delete") as session:
            result = session.execute(delete(LinkRecord).where(LinkRecord.id == link_id))
            return result.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        stmt = delete(LinkRecord).where(
            LinkRecord.expires_at.is_not(None),
            LinkRecord.expires_at <= now,
        )
        with self._session("delete_expired") as session:
            result = session.execute(stmt)
            return result.rowcount or 0

    def close(self) -> None:
        self._engine.dispose()

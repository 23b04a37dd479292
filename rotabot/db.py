"""libsql access for the rotation stores.

The ``libsql`` driver is synchronous; every call is pushed onto a worker
thread with ``asyncio.to_thread()``. Where the data lives depends on settings:

- ``TURSO_DATABASE_URL`` (+ ``TURSO_AUTH_TOKEN``) set → hosted Turso database
- otherwise → local SQLite file at ``database_path``

Each store subclasses :class:`SchemaStore`, lists its DDL in ``_SCHEMA`` and
opens connections with ``connect()``; the DDL runs once per store instance.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

from rotabot.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


class Rows:
    """Result of one statement: async row fetches plus the affected row count."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)


class Connection:
    """Async facade over a synchronous libsql connection."""

    def __init__(self, raw: Any) -> None:
        self._raw = raw

    async def execute(self, sql: str, params: tuple = ()) -> Rows:
        return Rows(await asyncio.to_thread(self._raw.execute, sql, params))

    async def commit(self) -> None:
        await asyncio.to_thread(self._raw.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._raw.close)


def _connect_file(path: Path) -> Any:
    path.parent.mkdir(parents=True, exist_ok=True)
    raw = libsql.connect(str(path))
    raw.execute("PRAGMA journal_mode=WAL")
    raw.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return raw


def _connect_remote() -> Any:
    return libsql.connect(
        database=settings.turso_database_url,
        auth_token=settings.turso_auth_token,
    )


async def open_connection(db_path: Path | None = None) -> Connection:
    """Open a connection.

    An explicit *db_path* (used for test isolation) always wins; after that a
    configured Turso URL, and finally the local ``database_path``.
    """
    if db_path is not None:
        raw = await asyncio.to_thread(_connect_file, db_path)
    elif settings.turso_database_url:
        raw = await asyncio.to_thread(_connect_remote)
    else:
        raw = await asyncio.to_thread(_connect_file, settings.database_path)
    return Connection(raw)


class SchemaStore:
    """Base for stores that lazily create their tables on first connect.

    Subclasses set ``_SCHEMA`` to the DDL statements they need.
    """

    _SCHEMA: Sequence[str] = ()

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[Connection]:
        """Yield a connection with the schema applied; always closes it."""
        db = await open_connection(self._db_path)
        try:
            if not self._initialised:
                for statement in self._SCHEMA:
                    await db.execute(statement)
                await db.commit()
                self._initialised = True
                logger.debug("Schema ready for %s", type(self).__name__)
            yield db
        finally:
            await db.close()

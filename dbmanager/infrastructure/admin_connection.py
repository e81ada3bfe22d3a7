"""Administrative Connection — one lazily opened superuser session on the bootstrap database.

Invariants:
    - Target is always the bootstrap database, never the database being created or dropped
    - At most one session exists; concurrent first callers share one connect attempt
    - A connection fault (connect or mid-statement) drops the memoized handle so the
      next call reconnects; statement faults leave the session in place
    - Missing superuser raises ConfigurationError before any network call

Design Decisions:
    - Raw asyncpg instead of the SQLAlchemy pool: CREATE/DROP DATABASE must run
      outside a transaction block, and asyncpg's execute() without arguments
      uses the simple query protocol with no implicit transaction
    - Memoized task (AsyncMemo) over lock + retry: collapse-on-first-call semantics
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import asyncpg

from dbmanager.config import Settings
from dbmanager.core.sql_composer import compose
from dbmanager.infrastructure.memo import AsyncMemo

logger = logging.getLogger(__name__)

CONNECTION_ERRORS = (
    OSError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
)


class AdminConnection:
    """Shared superuser session used only for database-level DDL."""

    def __init__(
        self,
        settings: Settings,
        connect: Callable[[str], Awaitable[Any]] = asyncpg.connect,
    ):
        self._settings = settings
        self._connect = connect
        self._memo: AsyncMemo[asyncpg.Connection] = AsyncMemo(
            self._open, "admin connection",
        )

    @property
    def is_open(self) -> bool:
        return self._memo.is_set

    async def acquire(self) -> asyncpg.Connection:
        """Return the shared session, opening it on first use."""
        return await self._memo.get()

    async def execute(self, sql: str, *args: Any) -> str:
        """Run one statement; args, when given, are composed into sql as %I / %L.

        Returns the engine's command status tag (e.g. 'CREATE DATABASE').
        """
        if args:
            sql = compose(sql, *args)
        connection = await self.acquire()
        logger.debug(f"Admin statement: {sql}")
        try:
            return await connection.execute(sql)
        except CONNECTION_ERRORS:
            self._discard(connection)
            raise

    async def release(self) -> None:
        """Close the session if one was opened; later acquire() reconnects."""
        task = self._memo.reset()
        if task is None:
            return
        try:
            connection = await task
        except CONNECTION_ERRORS as e:
            logger.debug(f"Admin connection never opened, nothing to close: {e}")
            return
        await connection.close()
        logger.info(
            "Admin connection closed",
            extra={"database": self._settings.bootstrap_database},
        )

    async def _open(self) -> asyncpg.Connection:
        dsn = self._settings.admin_dsn()
        logger.info(
            "Opening admin connection",
            extra={"database": self._settings.bootstrap_database},
        )
        return await self._connect(dsn)

    def _discard(self, connection: asyncpg.Connection) -> None:
        """Forget a broken session without waiting on it."""
        if self._memo.holds(connection):
            self._memo.reset()
        connection.terminate()
        logger.warning(
            "Admin connection lost, will reconnect on next use",
            extra={"database": self._settings.bootstrap_database},
        )

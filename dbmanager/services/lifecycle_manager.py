"""Lifecycle Manager — create, reset and tear down a PostgreSQL database for test runs.

Invariants:
    - Database-level DDL (roles, CREATE/DROP/copy DATABASE) goes through the admin
      connection; table-level work goes through the pooled application connection
    - The pooled connection is closed before DROP DATABASE and before copying, since
      the engine refuses both while clients are attached
    - truncate() issues exactly one TRUNCATE, or nothing when every table is ignored
    - resync_id_sequences() issues exactly one batched setval statement, or nothing
    - Engine errors propagate unchanged; only two cases are tolerated: an existing
      owner role, and locale candidates that fail before one succeeds

Design Decisions:
    - Pooled connection is injected or built lazily from a factory, and rebuilt on
      the next table-level call after a database-level operation closed it
    - Locale fallback keeps every failed attempt: DatabaseCreationError lists them all
      and chains the last engine error as its cause
    - close() runs both teardown paths concurrently and waits for both
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

import asyncpg

from dbmanager.config import Settings
from dbmanager.core.catalog_queries import (
    copy_database_statement, create_database_statement, create_role_statement,
    drop_database_statement, resync_sequences_statement, truncate_statement,
)
from dbmanager.core.domain_types import ServerVersion
from dbmanager.core.errors import DatabaseCreationError
from dbmanager.core.repository_protocols import ApplicationConnection
from dbmanager.infrastructure.admin_connection import AdminConnection
from dbmanager.infrastructure.database import SqlAlchemyApplicationConnection
from dbmanager.services.metadata_cache import MetadataCache, read_server_version

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[Settings], ApplicationConnection]


class PostgresDatabaseManager:
    """Provisions, resets and drops one target database."""

    def __init__(
        self,
        settings: Settings,
        connection: ApplicationConnection | None = None,
        connection_factory: ConnectionFactory = SqlAlchemyApplicationConnection.from_settings,
        admin: AdminConnection | None = None,
    ):
        self.settings = settings
        self._connection = connection
        self._connection_factory = connection_factory
        self.admin = admin or AdminConnection(settings)
        self.metadata = MetadataCache(self.application_connection, settings.schema_name)

    # ─── Connections ────────────────────────────────────────────

    def application_connection(self) -> ApplicationConnection:
        """Pooled connection to the target database, built on first use."""
        if self._connection is None:
            self._connection = self._connection_factory(self.settings)
        return self._connection

    async def close_application_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()

    async def close(self) -> None:
        """Close the pooled connection and the admin session, concurrently."""
        await asyncio.gather(
            self.close_application_connection(),
            self.admin.release(),
        )

    # ─── Database-level operations (admin connection) ───────────

    async def create_owner_if_not_exist(self) -> None:
        await self.admin.execute(
            create_role_statement(self.settings.user, self.settings.password),
        )
        logger.info(
            f"Owner role {self.settings.user} ensured",
            extra={"operation": "create_owner"},
        )

    async def create_database(self, name: str | None = None) -> None:
        """CREATE DATABASE, trying each configured collation until one is accepted."""
        database = name or self.settings.database
        owner = self.settings.user

        if not self.settings.collate:
            await self.admin.execute(create_database_statement(database, owner))
            logger.info(
                f"Database {database} created",
                extra={"database": database, "operation": "create_database"},
            )
            return

        attempts: list[tuple[str, BaseException]] = []
        for attempt, locale in enumerate(self.settings.collate, start=1):
            try:
                await self.admin.execute(
                    create_database_statement(database, owner, locale),
                )
            except asyncpg.exceptions.PostgresConnectionError:
                raise
            except asyncpg.PostgresError as e:
                logger.warning(
                    f"CREATE DATABASE {database} rejected collation {locale}: {e}",
                    extra={
                        "database": database, "operation": "create_database",
                        "attempt": attempt, "locale": locale,
                    },
                )
                attempts.append((locale, e))
                continue
            logger.info(
                f"Database {database} created with collation {locale}",
                extra={
                    "database": database, "operation": "create_database",
                    "attempt": attempt, "locale": locale,
                },
            )
            return

        raise DatabaseCreationError(database, attempts) from attempts[-1][1]

    async def drop_database(self, name: str | None = None) -> None:
        """DROP DATABASE IF EXISTS, after detaching the pooled connection."""
        database = name or self.settings.database
        await self.close_application_connection()
        await self.admin.execute(drop_database_statement(database))
        logger.info(
            f"Database {database} dropped",
            extra={"database": database, "operation": "drop_database"},
        )

    async def copy_database(self, from_name: str, to_name: str) -> None:
        """CREATE DATABASE to_name TEMPLATE from_name (no other sessions on from_name)."""
        await self.close_application_connection()
        await self.admin.execute(copy_database_statement(from_name, to_name))
        logger.info(
            f"Database {from_name} copied to {to_name}",
            extra={"database": to_name, "operation": "copy_database"},
        )

    # ─── Table-level operations (pooled connection) ─────────────

    async def truncate(self, ignore_tables: Iterable[str] | None = None) -> None:
        """Empty every table except ignore_tables, restarting identities."""
        ignored = set(ignore_tables or ())
        tables = [t for t in await self.metadata.table_names() if t not in ignored]
        sql = truncate_statement(self.metadata.schema, tables)
        if sql is None:
            logger.debug("Nothing to truncate")
            return
        await self.application_connection().raw_query(sql)
        logger.info(
            f"Truncated {len(tables)} tables",
            extra={
                "database": self.settings.database, "operation": "truncate",
                "table_count": len(tables),
            },
        )

    async def resync_id_sequences(self) -> None:
        """Move every id sequence past max(id), or back to its minimum if the table is empty."""
        descriptors = await self.metadata.id_sequences()
        sql = resync_sequences_statement(self.metadata.schema, descriptors)
        if sql is None:
            logger.debug("No id sequences to resync")
            return
        await self.application_connection().raw_query(sql)
        logger.info(
            f"Resynced {len(descriptors)} id sequences",
            extra={
                "database": self.settings.database, "operation": "resync_id_sequences",
                "table_count": len(descriptors),
            },
        )

    async def server_version(self) -> ServerVersion:
        return await read_server_version(self.application_connection())

    def invalidate_caches(self) -> None:
        self.metadata.invalidate()

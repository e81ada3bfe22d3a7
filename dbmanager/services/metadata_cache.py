"""Metadata Cache — memoized discovery of table names and id sequences.

Invariants:
    - Each discovery runs at most once until invalidate(); concurrent callers share it
    - Id sequences are always a subset of the cached table names (tables with an `id` column)
    - A failed discovery caches nothing: the next call starts over from scratch
    - Every stage is one round trip regardless of table count (union-of-selects)

Design Decisions:
    - Connection looked up per discovery through a provider, not held: the pooled
      connection is closed and rebuilt around database-level operations
    - Server version is read inside the id-sequence discovery and never cached on its
      own, so invalidate() after an engine upgrade picks the right catalog query
"""

import logging
from collections.abc import Callable

from dbmanager.core.catalog_queries import (
    ID_COLUMN, SERVER_VERSION_QUERY,
    build_sequence_min_query, choose_sequence_min_strategy, serial_sequence_query,
)
from dbmanager.core.domain_types import (
    SequenceDescriptor, SequenceName, SerialSequence, ServerVersion, TableName,
)
from dbmanager.core.repository_protocols import ApplicationConnection
from dbmanager.infrastructure.memo import AsyncMemo

logger = logging.getLogger(__name__)


async def read_server_version(connection: ApplicationConnection) -> ServerVersion:
    rows = await connection.raw_query(SERVER_VERSION_QUERY)
    return ServerVersion(int(rows[0]["server_version_num"]))


class MetadataCache:
    """Per-manager cache of schema facts that are slow to query and rarely change."""

    def __init__(
        self,
        connection_provider: Callable[[], ApplicationConnection],
        schema: str = "public",
    ):
        self._connection = connection_provider
        self.schema = schema
        self._table_names: AsyncMemo[list[TableName]] = AsyncMemo(
            self._discover_table_names, "table names",
        )
        self._id_sequences: AsyncMemo[list[SequenceDescriptor]] = AsyncMemo(
            self._discover_id_sequences, "id sequences",
        )

    async def table_names(self) -> list[TableName]:
        return await self._table_names.get()

    async def id_sequences(self) -> list[SequenceDescriptor]:
        return await self._id_sequences.get()

    def invalidate(self) -> None:
        """Forget both discoveries; the next access queries the catalog again."""
        self._table_names.reset()
        self._id_sequences.reset()
        logger.debug("Metadata cache invalidated")

    async def _discover_table_names(self) -> list[TableName]:
        rows = await self._connection().select(
            "pg_tables", ["tablename"], where={"schemaname": self.schema},
        )
        tables = [TableName(row["tablename"]) for row in rows]
        logger.info(
            f"Discovered {len(tables)} tables in schema {self.schema}",
            extra={"table_count": len(tables)},
        )
        return tables

    async def _discover_id_sequences(self) -> list[SequenceDescriptor]:
        tables = await self.table_names()
        connection = self._connection()

        # Stage 1: tables that have an id column
        rows = await connection.select(
            "information_schema.columns", ["table_name"],
            where={"column_name": ID_COLUMN, "table_schema": self.schema},
        )
        with_id = {row["table_name"] for row in rows}
        id_tables = [t for t in tables if t in with_id]

        # Stage 2: sequence backing each id default
        sql = serial_sequence_query(self.schema, id_tables)
        if sql is None:
            return []
        serial = [
            SerialSequence(TableName(row["table_name"]), SequenceName(row["sequence_name"]))
            for row in await connection.raw_query(sql)
            if row["sequence_name"] is not None  # id without a sequence default
        ]

        if not serial:
            return []

        # Stage 3: minimum of each sequence, SQL shape depends on server version
        version = await read_server_version(connection)
        strategy = choose_sequence_min_strategy(version)
        logger.debug(f"Server version {version}: reading minimums via {strategy.value}")
        sql = build_sequence_min_query(strategy, serial)
        descriptors = [
            SequenceDescriptor(
                table=TableName(row["table_name"]),
                sequence=SequenceName(row["sequence_name"]),
                minimum=int(row["min_value"]),
            )
            for row in await connection.raw_query(sql)
        ]
        logger.info(
            f"Discovered {len(descriptors)} id sequences",
            extra={"table_count": len(descriptors)},
        )
        return descriptors

"""Application Connection — SQLAlchemy async engine behind the ApplicationConnection contract.

Invariants:
    - raw_query() sends SQL verbatim (exec_driver_sql): no bind-parameter parsing,
      statements arrive already composed by sql_composer
    - Each call runs in its own short transaction and returns plain dict rows
    - close() disposes the pool; a closed instance is not reused by the manager

Design Decisions:
    - pool_pre_ping for stale connection detection (same as the app's own pool)
    - Engine errors are NOT mapped: callers see the driver's exception unchanged
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import column, select, table as sa_table
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dbmanager.config import Settings

logger = logging.getLogger(__name__)


class SqlAlchemyApplicationConnection:
    """Pooled async connection to the target database."""

    def __init__(self, database_url: str, **engine_kwargs: Any):
        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlAlchemyApplicationConnection":
        return cls(
            settings.application_url(),
            pool_size=settings.pool_size,
            pool_pre_ping=True,
        )

    async def raw_query(self, sql: str) -> list[dict[str, Any]]:
        logger.debug(f"Raw query: {sql}")
        async with self.engine.begin() as conn:
            result = await conn.exec_driver_sql(sql)
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """SELECT columns FROM [schema.]table WHERE col = value AND ..."""
        schema, _, name = table.rpartition(".")
        stmt = select(*(column(c) for c in columns)).select_from(
            sa_table(name, schema=schema or None),
        )
        for key, value in (where or {}).items():
            stmt = stmt.where(column(key) == value)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings()]

    async def close(self) -> None:
        await self.engine.dispose()
        logger.debug("Application connection pool disposed")

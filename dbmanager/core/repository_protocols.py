"""Boundary Protocols — contracts between the lifecycle manager and its connections.

Invariants:
    - The manager never constructs SQL drivers directly for table-level work;
      it talks to an ApplicationConnection supplied from outside
    - Rows come back as mappings keyed by column name

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no base class
    - select() is the minimal query-builder surface the catalog lookups need
      (one table, listed columns, equality filters)
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

Row = Mapping[str, Any]


class ApplicationConnection(Protocol):
    """Pooled connection to the target database, implemented by infrastructure."""
    async def raw_query(self, sql: str) -> list[Row]: ...
    async def select(
        self,
        table: str,
        columns: Sequence[str],
        where: Mapping[str, Any] | None = None,
    ) -> list[Row]: ...
    async def close(self) -> None: ...

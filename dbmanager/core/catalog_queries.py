"""Catalog Queries — every SQL statement the manager sends, as pure builders.

Invariants:
    - All caller-provided names go through sql_composer (no string concatenation of names)
    - Batched builders emit ONE union-of-selects statement, or None for an empty batch
    - Sequence-minimum SQL is selected by SequenceMinStrategy, one builder per strategy
    - Result columns are always named table_name / sequence_name / min_value

Design Decisions:
    - Pure functions, no IO: each template is testable without a database
    - Version threshold in one constant: pg_sequence only exists from PostgreSQL 10
    - Sequence names from pg_get_serial_sequence are re-split and re-quoted before
      being used as a relation, never interpolated raw
"""

from collections.abc import Sequence

from dbmanager.core.domain_types import (
    SequenceDescriptor, SequenceMinStrategy, SerialSequence, ServerVersion,
)
from dbmanager.core.sql_composer import compose, split_qualified_name

SEQUENCE_CATALOG_MIN_VERSION = 100000

SERVER_VERSION_QUERY = "SHOW server_version_num"

ID_COLUMN = "id"


# ─── Database-level DDL (administrative connection) ─────────────

def create_role_statement(user: str, password: str | None) -> str:
    """CREATE ROLE in a DO block that turns 'already exists' into a NOTICE.

    The block body is passed as an ordinary quoted literal, so nothing in the
    role name or password can close it early. A concurrent CREATE ROLE for the
    same name surfaces as unique_violation, handled like duplicate_object.
    """
    body = compose(
        "BEGIN CREATE ROLE %I LOGIN PASSWORD %L; "
        "EXCEPTION WHEN duplicate_object OR unique_violation THEN "
        "RAISE NOTICE 'Role exists, not re-creating'; END",
        user, password,
    )
    return compose("DO %L", body)


def create_database_statement(
    database: str, owner: str, locale: str | None = None,
) -> str:
    """CREATE DATABASE, optionally pinned to one LC_COLLATE candidate.

    A custom collation needs template0; without one template1 is cloned.
    """
    if locale is None:
        return compose(
            "CREATE DATABASE %I OWNER = %I ENCODING = 'UTF-8' TEMPLATE template1",
            database, owner,
        )
    return compose(
        "CREATE DATABASE %I OWNER = %I ENCODING = 'UTF-8' "
        "LC_COLLATE = %L TEMPLATE template0",
        database, owner, locale,
    )


def drop_database_statement(database: str) -> str:
    return compose("DROP DATABASE IF EXISTS %I", database)


def copy_database_statement(from_database: str, to_database: str) -> str:
    return compose("CREATE DATABASE %I TEMPLATE %I", to_database, from_database)


# ─── Table-level statements (pooled connection) ─────────────────

def truncate_statement(schema: str, tables: Sequence[str]) -> str | None:
    """Single TRUNCATE naming every table; None when there is nothing to truncate."""
    if not tables:
        return None
    qualified = ", ".join(["%I.%I"] * len(tables))
    args: list[str] = []
    for table in tables:
        args.extend((schema, table))
    return compose(f"TRUNCATE TABLE {qualified} RESTART IDENTITY", *args)


def serial_sequence_query(schema: str, tables: Sequence[str]) -> str | None:
    """Resolve the sequence behind each table's id column, one row per table."""
    if not tables:
        return None
    selects = [
        compose(
            "SELECT %L AS table_name, "
            "pg_get_serial_sequence(%L, %L) AS sequence_name",
            table, _qualified_relation(schema, table), ID_COLUMN,
        )
        for table in tables
    ]
    return " UNION ALL ".join(selects)


def choose_sequence_min_strategy(version: ServerVersion) -> SequenceMinStrategy:
    if version >= SEQUENCE_CATALOG_MIN_VERSION:
        return SequenceMinStrategy.SEQUENCE_CATALOG
    return SequenceMinStrategy.SEQUENCE_RELATION


def _sequence_catalog_select(entry: SerialSequence) -> str:
    return compose(
        "SELECT %L AS table_name, %L AS sequence_name, "
        "(SELECT seqmin FROM pg_sequence WHERE seqrelid = %L::regclass) AS min_value",
        entry.table, entry.sequence, entry.sequence,
    )


def _sequence_relation_select(entry: SerialSequence) -> str:
    parts = split_qualified_name(entry.sequence)
    relation = ".".join(["%I"] * len(parts))
    return compose(
        f"SELECT %L AS table_name, %L AS sequence_name, min_value FROM {relation}",
        entry.table, entry.sequence, *parts,
    )


_SEQUENCE_MIN_BUILDERS = {
    SequenceMinStrategy.SEQUENCE_CATALOG: _sequence_catalog_select,
    SequenceMinStrategy.SEQUENCE_RELATION: _sequence_relation_select,
}


def build_sequence_min_query(
    strategy: SequenceMinStrategy, entries: Sequence[SerialSequence],
) -> str | None:
    """Read each sequence's minimum with the strategy the server supports."""
    if not entries:
        return None
    build = _SEQUENCE_MIN_BUILDERS[strategy]
    return " UNION ALL ".join(build(entry) for entry in entries)


def resync_sequences_statement(
    schema: str, descriptors: Sequence[SequenceDescriptor],
) -> str | None:
    """setval every id sequence to max(id) + 1, or to its minimum on an empty table."""
    if not descriptors:
        return None
    selects = [
        compose(
            "SELECT setval(%L, GREATEST(COALESCE(MAX(id), 0) + 1, %L), false) "
            "FROM %I.%I",
            d.sequence, d.minimum, schema, d.table,
        )
        for d in descriptors
    ]
    return " UNION ALL ".join(selects)


def _qualified_relation(schema: str, table: str) -> str:
    """Quoted 'schema.table' text, as regclass-parsing functions expect it."""
    return compose("%I.%I", schema, table)


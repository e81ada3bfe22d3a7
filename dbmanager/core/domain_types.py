"""Domain Types — value types shared by the composer, the caches and the manager.

Invariants:
    - SequenceDescriptor.minimum is always an int (engines return it as text or bigint)
    - A SequenceDescriptor exists only for tables that have an `id` column
    - SequenceMinStrategy is chosen per resync call from the live server version

Design Decisions:
    - NewType over wrapper classes: zero runtime cost, full type-checker support
    - str Enum for the strategy: readable in logs without custom formatting
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

TableName = NewType("TableName", str)
SequenceName = NewType("SequenceName", str)   # schema-qualified, already quoted
ServerVersion = NewType("ServerVersion", int)  # server_version_num, e.g. 100005


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class SerialSequence:
    """Id sequence resolved for a table, before its minimum is known."""
    table: TableName
    sequence: SequenceName


@dataclass(frozen=True)
class SequenceDescriptor:
    """Id sequence with the engine-enforced lower bound it must never go under."""
    table: TableName
    sequence: SequenceName
    minimum: int


# ─── Enums ───────────────────────────────────────────────────────

class SequenceMinStrategy(str, Enum):
    """How sequence minimums are read from the catalog."""
    SEQUENCE_CATALOG = "pg_sequence"       # PostgreSQL 10+
    SEQUENCE_RELATION = "sequence_relation"  # SELECT min_value FROM <sequence>

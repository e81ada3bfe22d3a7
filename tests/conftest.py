"""Root conftest — shared settings and connection fakes.

Invariants:
    - No test touches a real PostgreSQL server: both connections are faked at
      their boundary (ApplicationConnection protocol, asyncpg.connect)
    - Every fake appends to one shared event log so tests can assert ordering

Design Decisions:
    - Fakes answer by recognising the catalog query shape (pg_get_serial_sequence,
      seqmin, min_value) rather than matching exact SQL text, so the tests pin
      behaviour and the SQL builders are tested separately in tests/core
"""

import asyncio
import os

import pytest

from dbmanager.config import Settings
from dbmanager.infrastructure.admin_connection import AdminConnection

# Ensure tests never pick up a developer's real superuser from the environment
for _key in list(os.environ):
    if _key.startswith("DBMANAGER_"):
        del os.environ[_key]


def make_settings(**overrides) -> Settings:
    values = dict(
        host="db", port=5432, database="app_test",
        user="app", password="secret",
        superuser="postgres", superuser_password="postgres",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeApplicationConnection:
    """In-memory stand-in for the pooled application connection."""

    def __init__(
        self,
        log: list,
        tables=(),
        id_tables=(),
        sequences=None,
        minimums=None,
        version=100005,
    ):
        self.log = log
        self.tables = list(tables)
        self.id_tables = list(id_tables)
        self.sequences = sequences or {}
        self.minimums = minimums or {}
        self.version = version
        self.selects: list[str] = []
        self.queries: list[str] = []
        self.closed = False

    def _sequence_for(self, table):
        return self.sequences.get(table, f"public.{table}_id_seq")

    async def select(self, table, columns, where=None):
        await asyncio.sleep(0)
        self.selects.append(table)
        self.log.append(("select", table))
        if table == "pg_tables":
            return [{"tablename": t} for t in self.tables]
        if table == "information_schema.columns":
            return [{"table_name": t} for t in self.id_tables]
        return []

    async def raw_query(self, sql):
        await asyncio.sleep(0)
        self.queries.append(sql)
        self.log.append(("raw", sql))
        if sql.startswith("SHOW server_version_num"):
            return [{"server_version_num": str(self.version)}]
        # rows come back in UNION ALL order
        mentioned = sorted(
            (t for t in self.id_tables if f"SELECT '{t}' AS table_name" in sql),
            key=lambda t: sql.index(f"SELECT '{t}' AS table_name"),
        )
        if "pg_get_serial_sequence" in sql:
            return [
                {"table_name": t, "sequence_name": self._sequence_for(t)}
                for t in mentioned
            ]
        if "AS sequence_name" in sql and ("seqmin" in sql or "min_value FROM" in sql):
            return [
                {
                    "table_name": t,
                    "sequence_name": self._sequence_for(t),
                    "min_value": self.minimums.get(t, 1),
                }
                for t in mentioned
            ]
        return []

    async def close(self):
        self.closed = True
        self.log.append(("close", "application"))


class FakeAdminSession:
    """Stand-in for an asyncpg.Connection on the bootstrap database."""

    def __init__(self, log: list, failures=None):
        self.log = log
        self.failures = failures or {}
        self.statements: list[str] = []
        self.closed = False
        self.terminated = False

    async def execute(self, sql):
        await asyncio.sleep(0)
        self.statements.append(sql)
        self.log.append(("admin", sql))
        for fragment, error in self.failures.items():
            if fragment in sql:
                raise error
        return sql.split(" ")[0]

    async def close(self):
        self.closed = True
        self.log.append(("close", "admin"))

    def terminate(self):
        self.terminated = True


class FakeConnector:
    """Replaces asyncpg.connect: counts attempts, can fail the first N of them."""

    def __init__(self, log: list, failures=None, connect_errors=()):
        self.log = log
        self.failures = failures or {}
        self.connect_errors = list(connect_errors)
        self.dsns: list[str] = []
        self.sessions: list[FakeAdminSession] = []

    @property
    def calls(self) -> int:
        return len(self.dsns)

    async def __call__(self, dsn):
        self.dsns.append(dsn)
        await asyncio.sleep(0)
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        session = FakeAdminSession(self.log, self.failures)
        self.sessions.append(session)
        return session


@pytest.fixture
def event_log():
    return []


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def connector(event_log):
    return FakeConnector(event_log)


@pytest.fixture
def admin(settings, connector):
    return AdminConnection(settings, connect=connector)


@pytest.fixture
def make_app_connection(event_log):
    """Build a FakeApplicationConnection sharing the test's event log."""
    def _make(**kwargs):
        return FakeApplicationConnection(event_log, **kwargs)
    return _make


@pytest.fixture
def make_connector(event_log):
    """Build a FakeConnector whose sessions fail statements matching `failures`."""
    def _make(failures=None, connect_errors=()):
        return FakeConnector(event_log, failures, connect_errors)
    return _make

"""
Pytest Configuration and Shared Fixtures for Performance Tracker Tests.

This module provides fixtures for all perftracker tests:
- FakeWarehouse: in-memory stand-in for WarehouseClient that answers the
  period and monthly-average queries from canned rows
- Mock asyncpg pool and team query runner for the team mapping store
- Sample merged records covering new, lost and existing entities
- In-memory SQLite metrics table for executing compiled predicates with
  the ansi dialect

Async tests use pytest-asyncio via @pytest.mark.asyncio.
"""

import sqlite3
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from perftracker.core.exceptions import DataSourceError
from perftracker.models.enums import SqlDialect
from perftracker.models.records import MergedEntityRecord


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - sqlite: tests executing compiled predicates against SQLite
    """
    config.addinivalue_line(
        'markers',
        'sqlite: tests executing compiled predicates against an in-memory SQLite table'
    )


# ============================================================
# WAREHOUSE FIXTURES
# ============================================================

class FakeWarehouse:
    """
    WarehouseClient stand-in.

    Period queries are matched on their `DATE >= '<start>'` bound; the
    monthly-average query is recognised by its CTE name. Every executed
    query is recorded in `queries`.
    """

    def __init__(
        self,
        period_rows: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        monthly_rows: Optional[List[Dict[str, Any]]] = None,
        fail_on: Optional[str] = None,
        table_ref: str = '`proj.ds.metrics`',
        dialect: SqlDialect = SqlDialect.BIGQUERY,
        distinct_values: Optional[Dict[str, List[Any]]] = None,
    ):
        self.period_rows = period_rows or {}
        self.monthly_rows = monthly_rows or []
        self.fail_on = fail_on
        self.table_ref = table_ref
        self.dialect = dialect
        self.distinct_values = distinct_values or {}
        self.queries: List[str] = []

    async def fetch(self, sql: str) -> List[Dict[str, Any]]:
        self.queries.append(sql)
        if self.fail_on is not None and self.fail_on in sql:
            raise DataSourceError('bigquery', 'Simulated query failure')
        if 'monthly_revenue' in sql:
            return list(self.monthly_rows)
        if 'SELECT DISTINCT' in sql and 'AS value' in sql:
            for column, values in self.distinct_values.items():
                if f'SELECT DISTINCT {column} AS value' in sql:
                    return [{'value': v} for v in values]
            return []
        for start, rows in self.period_rows.items():
            if f"DATE >= '{start}'" in sql:
                return list(rows)
        return []

    def close(self) -> None:
        pass


@pytest.fixture
def fake_warehouse_factory():
    """Build FakeWarehouse instances with custom rows."""
    return FakeWarehouse


@pytest.fixture
def pid_warehouse() -> FakeWarehouse:
    """
    Publisher rows for two months.

    - 101: existing, revenue up
    - 102: existing, requests collapsed (critical)
    - 103: lost in period 2
    - 104: new in period 2
    """
    return FakeWarehouse(
        period_rows={
            '2025-08-01': [
                {'entity_key': 101, 'name': 'Alpha News', 'media_count': 3,
                 'revenue': 6000.0, 'requests': 1_000_000, 'paid_requests': 800_000},
                {'entity_key': 102, 'name': 'Beta Sports', 'media_count': 2,
                 'revenue': 3000.0, 'requests': 500_000, 'paid_requests': 400_000},
                {'entity_key': 103, 'name': 'Gamma Blog', 'media_count': 1,
                 'revenue': 500.0, 'requests': 100_000, 'paid_requests': 50_000},
            ],
            '2025-09-01': [
                {'entity_key': 101, 'name': 'Alpha News', 'media_count': 4,
                 'revenue': 7000.0, 'requests': 1_100_000, 'paid_requests': 900_000},
                {'entity_key': 102, 'name': 'Beta Sports', 'media_count': 2,
                 'revenue': 1500.0, 'requests': 200_000, 'paid_requests': 160_000},
                {'entity_key': 104, 'name': 'Delta Games', 'media_count': 1,
                 'revenue': 1500.0, 'requests': 300_000, 'paid_requests': 200_000},
            ],
        },
        monthly_rows=[
            {'entity_key': 103, 'avg_monthly_revenue': 450.0, 'months_with_data': 6},
        ],
    )


# ============================================================
# DATABASE FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields a mock connection.

    Usage:
        mock_db_pool.acquire.return_value.__aenter__.return_value.fetch.return_value = rows
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)
    pool.close = AsyncMock(return_value=None)

    return pool


TEAM_ROWS = [
    {'team_id': 'alpha', 'team_name': 'Team Alpha', 'display_order': 1},
    {'team_id': 'beta', 'team_name': 'Team Beta', 'display_order': 2},
    {'team_id': 'empty', 'team_name': 'Team Empty', 'display_order': 3},
]

TEAM_PIC_ROWS = [
    {'team_id': 'alpha', 'pic_name': 'alice'},
    {'team_id': 'alpha', 'pic_name': 'bob'},
    {'team_id': 'beta', 'pic_name': "o'neil"},
]


@pytest.fixture
def team_query_runner() -> AsyncMock:
    """Query runner answering the two team mapping queries."""
    async def run(query: str, *args: Any) -> List[Dict[str, Any]]:
        if 'team_configurations' in query:
            return list(TEAM_ROWS)
        if 'team_pic_mappings' in query:
            return list(TEAM_PIC_ROWS)
        return []

    return AsyncMock(side_effect=run)


@pytest.fixture
def failing_query_runner() -> AsyncMock:
    """Query runner simulating an unreachable relational store."""
    return AsyncMock(side_effect=DataSourceError('postgres', 'DATABASE_URL is not configured'))


# ============================================================
# RECORD FIXTURES
# ============================================================

@pytest.fixture
def sample_records() -> List[MergedEntityRecord]:
    """Mixed population: existing, new and lost entities with int keys."""
    return [
        MergedEntityRecord(entity_key=1, rev_p1=500.0, rev_p2=600.0,
                           req_p1=10_000, req_p2=11_000, paid_p1=8_000, paid_p2=9_000),
        MergedEntityRecord(entity_key=2, rev_p1=300.0, rev_p2=250.0,
                           req_p1=8_000, req_p2=7_500, paid_p1=6_000, paid_p2=5_500),
        MergedEntityRecord(entity_key=3, rev_p1=0.0, rev_p2=100.0,
                           req_p1=0, req_p2=2_000, paid_p1=0, paid_p2=1_500),
        MergedEntityRecord(entity_key=4, rev_p1=80.0, rev_p2=0.0,
                           req_p1=1_000, req_p2=0, paid_p1=700, paid_p2=0,
                           avg_monthly_revenue=90.0, months_with_data=6),
        MergedEntityRecord(entity_key=5, rev_p1=40.0, rev_p2=30.0,
                           req_p1=900, req_p2=850, paid_p1=600, paid_p2=580),
    ]


# ============================================================
# SQLITE FIXTURES
# ============================================================

SQLITE_ROWS = [
    # (DATE, pid, mid, zid, pic, product, pubname, rev, req, paid)
    ('2025-09-01', 1, 10, 100, 'alice', 'video', "O'Brien Media", 10.0, 100, 80),
    ('2025-09-01', 1, 10, 101, 'alice', 'banner', "O'Brien Media", 5.0, 50, 40),
    ('2025-09-01', 2, 20, 200, 'bob', 'video', 'Two_Percent%', 7.0, 70, 60),
    ('2025-09-01', 3, 30, 300, 'carol', 'banner', 'Back\\slash', 3.0, 30, 20),
    ('2025-09-01', 3, 30, 301, 'carol', 'native', 'Back\\slash', 2.0, 20, 10),
    ('2025-09-01', 4, 40, 400, None, 'video', 'Orphan', 1.0, 10, 5),
    ('2025-09-01', 4, 40, 401, None, 'banner', 'Orphan', 1.0, 10, 5),
    ('2025-09-01', 5, 50, 500, 'dave', None, 'NullProduct', 1.0, 10, 5),
]


@pytest.fixture
def sqlite_metrics() -> Generator[sqlite3.Connection, None, None]:
    """
    In-memory SQLite copy of the metrics table schema with a few rows
    exercising quotes, LIKE wildcards, backslashes and NULLs.
    """
    conn = sqlite3.connect(':memory:')
    conn.execute(
        'CREATE TABLE metrics ('
        ' DATE TEXT, pid INTEGER, mid INTEGER, zid INTEGER, pic TEXT,'
        ' product TEXT, pubname TEXT, rev REAL, req INTEGER, paid INTEGER)'
    )
    conn.executemany('INSERT INTO metrics VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)', SQLITE_ROWS)
    conn.commit()
    yield conn
    conn.close()

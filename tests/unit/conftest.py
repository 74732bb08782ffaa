"""Shared test fixtures."""

import sqlite3
from collections.abc import Iterator

import pytest

from confluence_search.core.database.schema import create_schema
from confluence_search.models.result import Result
from tests.unit.fakes import BASE_URL, SAMPLE_ITEMS


@pytest.fixture
def sample_results() -> list[Result]:
    return [Result.from_api(item, BASE_URL) for item in SAMPLE_ITEMS]


@pytest.fixture
def cache_db() -> Iterator[sqlite3.Connection]:
    """Return an in-memory cache database with the schema applied."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    yield conn
    conn.close()

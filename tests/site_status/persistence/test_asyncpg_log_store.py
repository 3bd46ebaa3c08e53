"""
Unit tests for the PostgresStatusLogStore class.

This module contains tests ensuring that the store issues the expected
statements, returns connections to the pool, and translates database and
pool errors into PersistenceFailure.

The tests follow the Arrange-Act-Assert (AAA) pattern and use proper mocking
of all external dependencies to ensure true unit testing.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from asyncpg import Pool, exceptions

from site_status.errors import PersistenceFailure
from site_status.persistence.asyncpg_log_store import (
    CREATE_TABLE_SQL,
    DELETE_SQL,
    INSERT_SQL,
    LATEST_PER_ROUTE_SQL,
    PostgresStatusLogStore,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def mock_conn() -> AsyncMock:
    """
    Creates a mock asyncpg connection.

    Returns:
        AsyncMock: A connection with async execute and fetch methods.
    """
    return AsyncMock()


@pytest_asyncio.fixture
async def mock_pool(mock_conn: AsyncMock) -> MagicMock:
    """
    Creates a mock asyncpg Pool whose acquire() yields mock_conn.

    Returns:
        MagicMock: The mock pool.
    """
    pool = MagicMock(spec=Pool)
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=mock_conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    return pool


@pytest.fixture
def store(mock_pool: MagicMock) -> PostgresStatusLogStore:
    """
    Creates the store under test with a fixed clock.

    Returns:
        PostgresStatusLogStore: The store.
    """
    return PostgresStatusLogStore(mock_pool, acquire_timeout=2.0, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_ensure_schema_should_create_table(store, mock_pool, mock_conn) -> None:
    """
    Tests that the schema bootstrap runs the idempotent DDL.
    """
    # Act
    await store.ensure_schema()

    # Assert
    mock_conn.execute.assert_awaited_once_with(CREATE_TABLE_SQL)
    assert "CREATE TABLE IF NOT EXISTS status_logs" in CREATE_TABLE_SQL


@pytest.mark.asyncio
async def test_insert_status_log_should_write_row_and_release_connection(
    store, mock_pool, mock_conn
) -> None:
    """
    Tests that an insert writes one row with the clock's timestamp.
    """
    # Act
    await store.insert_status_log("acme", "/", 200, 123)

    # Assert
    mock_pool.acquire.assert_called_once_with(timeout=2.0)
    mock_conn.execute.assert_awaited_once_with(INSERT_SQL, "acme", "/", 200, 123, NOW)
    mock_pool.acquire.return_value.__aexit__.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_logs_should_return_deleted_count(store, mock_conn) -> None:
    """
    Tests that the bulk delete is scoped to the project and returns the row count.
    """
    # Arrange
    mock_conn.execute.return_value = "DELETE 7"

    # Act
    deleted = await store.delete_logs("acme")

    # Assert
    assert deleted == 7
    mock_conn.execute.assert_awaited_once_with(DELETE_SQL, "acme")


@pytest.mark.asyncio
async def test_latest_log_per_route_should_map_routes_to_timestamps(store, mock_conn) -> None:
    """
    Tests that the latest timestamps are returned per route.
    """
    # Arrange
    mock_conn.fetch.return_value = [
        {"route_path": "/", "last_checked": NOW},
        {"route_path": "/about", "last_checked": NOW},
    ]

    # Act
    latest = await store.latest_log_per_route("acme")

    # Assert
    assert latest == {"/": NOW, "/about": NOW}
    mock_conn.fetch.assert_awaited_once_with(LATEST_PER_ROUTE_SQL, "acme")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, message",
    [
        (exceptions.PostgresError("relation does not exist"), "Database error"),
        (asyncio.TimeoutError(), "Timeout"),
        (RuntimeError("boom"), "Unexpected error"),
    ],
)
async def test_insert_status_log_should_raise_persistence_failure(
    store, mock_conn, error, message
) -> None:
    """
    Tests that database, timeout and unexpected errors become PersistenceFailure.
    """
    # Arrange
    mock_conn.execute.side_effect = error

    # Act & Assert
    with pytest.raises(PersistenceFailure, match=message) as exc_info:
        await store.insert_status_log("acme", "/", 200, 10)

    assert exc_info.value.__cause__ is error
    assert "relation" not in str(exc_info.value)


@pytest.mark.asyncio
async def test_delete_logs_should_raise_persistence_failure_when_pool_is_exhausted(
    store, mock_pool
) -> None:
    """
    Tests that a timeout while acquiring a connection becomes PersistenceFailure.
    """
    # Arrange
    mock_pool.acquire.return_value.__aenter__.side_effect = asyncio.TimeoutError()

    # Act & Assert
    with pytest.raises(PersistenceFailure, match="Timeout"):
        await store.delete_logs("acme")

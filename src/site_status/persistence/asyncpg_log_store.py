"""
PostgreSQL implementation of the StatusLogStore interface.

The status log is a single append-only table. Apart from inserts, the only
mutation is a bulk delete scoped to one project. Every connection checked out
of the pool is returned on all exit paths.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict

from asyncpg import Connection, Pool, exceptions

from site_status.config.constants import DEFAULT_DB_ACQUIRE_TIMEOUT
from site_status.contracts import StatusLogStore
from site_status.domain import StatusLogEntry
from site_status.errors import PersistenceFailure

# Module logger
logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS status_logs (
        id               BIGSERIAL PRIMARY KEY,
        project_slug     TEXT        NOT NULL,
        route_path       TEXT        NOT NULL,
        status_code      INTEGER     NOT NULL,
        response_time_ms INTEGER     NOT NULL,
        checked_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE INDEX IF NOT EXISTS status_logs_project_route_idx
        ON status_logs (project_slug, route_path, checked_at DESC);
"""

INSERT_SQL = """
    INSERT INTO status_logs (project_slug, route_path, status_code, response_time_ms, checked_at)
    VALUES ($1, $2, $3, $4, $5);
"""

DELETE_SQL = "DELETE FROM status_logs WHERE project_slug = $1"

LATEST_PER_ROUTE_SQL = """
    SELECT route_path, MAX(checked_at) AS last_checked
    FROM status_logs
    WHERE project_slug = $1
    GROUP BY route_path;
"""


def _deleted_count(command_tag: str) -> int:
    """Extracts the row count from a command tag such as 'DELETE 3'."""
    try:
        return int(command_tag.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresStatusLogStore(StatusLogStore):
    """
    Persists probe outcomes to the 'status_logs' table through an asyncpg pool.

    Database and pool errors are translated into PersistenceFailure so that
    callers can isolate them per route.
    """

    def __init__(
        self,
        pool: Pool,
        acquire_timeout: float = DEFAULT_DB_ACQUIRE_TIMEOUT,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        """
        Args:
            pool: The asyncpg connection pool owned by the process entry point.
            acquire_timeout: Maximum wait in seconds for a free connection.
            clock: Source of the timestamps written with each row.
        """
        self._pool: Pool = pool
        self._acquire_timeout: float = acquire_timeout
        self._clock = clock

    @asynccontextmanager
    async def _connection(self, action: str) -> AsyncIterator[Connection]:
        try:
            async with self._pool.acquire(timeout=self._acquire_timeout) as connection:
                yield connection
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout while trying to {action}.")
            raise PersistenceFailure(f"Timeout while trying to {action}") from e
        except exceptions.PostgresError as e:
            logger.error(f"Database error while trying to {action}: {e}")
            raise PersistenceFailure(f"Database error while trying to {action}") from e
        except Exception as e:
            logger.exception(f"An unexpected error occurred while trying to {action}.")
            raise PersistenceFailure(f"Unexpected error while trying to {action}") from e

    async def ensure_schema(self) -> None:
        """
        Creates the status log table and its index if they do not exist.
        """
        async with self._connection("create the status log schema") as connection:
            await connection.execute(CREATE_TABLE_SQL)
        logger.info("Status log schema verified.")

    async def insert_status_log(
        self, project_slug: str, route_path: str, status_code: int, response_time_ms: int
    ) -> None:
        entry = StatusLogEntry(
            project_slug=project_slug,
            route_path=route_path,
            status_code=status_code,
            response_time_ms=response_time_ms,
            timestamp=self._clock(),
        )
        async with self._connection("insert a status log") as connection:
            await connection.execute(INSERT_SQL, *entry)
        logger.debug(f"Logged {project_slug}{route_path}: {status_code} ({response_time_ms}ms)")

    async def delete_logs(self, project_slug: str) -> int:
        async with self._connection("delete status logs") as connection:
            command_tag = await connection.execute(DELETE_SQL, project_slug)
        deleted = _deleted_count(command_tag)
        logger.info(f"Deleted {deleted} status logs of {project_slug}.")
        return deleted

    async def latest_log_per_route(self, project_slug: str) -> Dict[str, datetime]:
        async with self._connection("read the latest status logs") as connection:
            records = await connection.fetch(LATEST_PER_ROUTE_SQL, project_slug)
        return {record["route_path"]: record["last_checked"] for record in records}

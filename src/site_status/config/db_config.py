"""
Database configuration module for the site status dashboard.

This module provides functionality to create and validate a connection pool
to the PostgreSQL database using the asyncpg library. The pool is created by
the process entry point and handed to whoever needs it; there is no global.
"""

import logging
import ssl
from typing import Optional

import asyncpg

from site_status.config import StatusContext
from site_status.config.constants import DEFAULT_DB_IDLE_LIFETIME

# Module logger
logger = logging.getLogger(__name__)


def build_db_ssl_context(ca_file: str) -> Optional[ssl.SSLContext]:
    """
    Builds the TLS context of database connections from a CA bundle.

    The context verifies both the server certificate and its hostname.

    Args:
        ca_file: Path to a PEM CA bundle, or an empty string.

    Returns:
        Optional[ssl.SSLContext]: The context, or None when no CA file is configured.

    Raises:
        RuntimeError: If the CA file cannot be read or parsed.
    """
    if not ca_file:
        return None

    try:
        context = ssl.create_default_context(cafile=ca_file)
    except (OSError, ssl.SSLError) as e:
        raise RuntimeError(f"Could not load database CA file {ca_file}: {e}") from e

    logger.info(f"Database connections verified against CA file {ca_file}.")
    return context


async def initiate_db_pool(context: StatusContext) -> asyncpg.pool.Pool:
    """
    Create and validate a connection pool to the PostgreSQL database.

    The pool is validated by executing a simple query. If the connection fails,
    the pool is closed and the exception is re-raised.

    Args:
        context: Configuration context containing database connection parameters.

    Returns:
        asyncpg.pool.Pool: A connection pool that can be used to execute database queries.

    Raises:
        RuntimeError: If the configured CA file cannot be loaded.
        Exception: If the database connection cannot be established.
    """
    pool: asyncpg.pool.Pool = await asyncpg.create_pool(
        dsn=context.dsn,
        min_size=0,
        max_size=context.db_pool_size,
        command_timeout=context.db_command_timeout,
        max_inactive_connection_lifetime=DEFAULT_DB_IDLE_LIFETIME,
        ssl=build_db_ssl_context(context.db_ca_file),
    )

    try:
        async with pool.acquire() as connection:
            await connection.fetchval("SELECT 1")
        logger.info("Database connection pool successfully created.")
        return pool
    except Exception as e:
        logger.error(f"Error: Could not connect to the database. {e}")
        await pool.close()
        raise

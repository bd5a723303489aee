"""Database connection pool management."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg
import structlog

from billing_processor.config import Settings, settings as default_settings

logger = structlog.get_logger()


async def create_pool(config: Settings | None = None) -> asyncpg.Pool:
    """Create the connection pool used by the processor repository.

    Args:
        config: Settings to read the DSN and pool sizes from (defaults to
            the global settings)
    """
    config = config or default_settings

    logger.info(
        "creating_database_pool",
        database_url=config.database_url.split("@")[-1],  # Hide credentials
        min_size=config.database_pool_min_size,
        max_size=config.database_pool_max_size,
    )

    pool = await asyncpg.create_pool(
        dsn=config.database_url,
        min_size=config.database_pool_min_size,
        max_size=config.database_pool_max_size,
        command_timeout=30.0,
        server_settings={"application_name": config.service_name},
    )
    if pool is None:
        raise RuntimeError("Failed to create database pool")

    logger.info("database_pool_created")
    return pool


@asynccontextmanager
async def open_pool(config: Settings | None = None) -> AsyncIterator[asyncpg.Pool]:
    """Create a pool for the duration of the block and close it afterwards."""
    pool = await create_pool(config)
    try:
        yield pool
    finally:
        logger.info("closing_database_pool")
        await pool.close()
        logger.info("database_pool_closed")

# wildyak/infra/db_async.py
"""
asyncpg pool shared by the Postgres session store.

Bots that keep sessions in memory never import this module.
"""
from __future__ import annotations
from typing import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
from wildyak.config import Settings, settings
from wildyak.infra.logging_config import get_logger

logger = get_logger(__name__)

_pool: asyncpg.Pool | None = None


async def init_pool(dsn: str | None = None, s: Settings | None = None) -> asyncpg.Pool:
    """Create the pool once; later calls return the existing one"""
    global _pool
    s = s or settings

    if _pool is None:
        _pool = await asyncpg.create_pool(
            dsn=dsn or s.database_url,
            min_size=s.pg_pool_min,
            max_size=s.pg_pool_max,
            command_timeout=s.pg_command_timeout,
            server_settings={"application_name": "wildyak"},
        )
        logger.info(f"asyncpg pool ready: min={s.pg_pool_min}, max={s.pg_pool_max}")

    return _pool


async def close_pool() -> None:
    global _pool

    if _pool is not None:
        pool, _pool = _pool, None
        await pool.close()
        logger.info("asyncpg pool closed")


@asynccontextmanager
async def db_conn() -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow a pooled connection.

        async with db_conn() as conn:
            row = await conn.fetchrow("SELECT ... WHERE id = $1", session_id)
    """
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")

    async with _pool.acquire() as conn:
        yield conn

from __future__ import annotations

import asyncio
from typing import Any, cast
from weakref import WeakKeyDictionary

import asyncpg
import structlog
from dotenv import load_dotenv

from src.config.db_settings import PoolConfig

LOGGER = structlog.get_logger(__name__)

_POOL_LOCKS: "WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = WeakKeyDictionary()
_POOLS: "WeakKeyDictionary[asyncio.AbstractEventLoop, asyncpg.Pool]" = WeakKeyDictionary()
_last_pool: asyncpg.Pool | None = None


async def init_pool(config: PoolConfig | None = None) -> asyncpg.Pool:
    """Initialise the asyncpg pool for the running loop if it does not exist yet.

    Only the process entry point calls this; services receive the pool through
    their constructor.
    """
    global _last_pool
    loop = asyncio.get_running_loop()
    existing = _POOLS.get(loop)
    if existing is not None:
        _last_pool = existing
        return existing

    lock = _get_pool_lock(loop)

    async with lock:
        pool = _POOLS.get(loop)
        if pool is not None:
            return pool

        if config is None:
            load_dotenv(override=False)
            pool_config = PoolConfig.model_validate({})
        else:
            pool_config = config

        _apg = cast(Any, asyncpg)
        pool = await _apg.create_pool(
            dsn=pool_config.dsn,
            min_size=pool_config.min_size,
            max_size=pool_config.max_size,
            timeout=pool_config.timeout,
            server_settings=pool_config.server_settings(),
        )
        _POOLS[loop] = pool
        _last_pool = pool

        # Best-effort: first-run environments may not have been migrated yet.
        try:
            async with pool.acquire() as conn:
                exists = bool(
                    await cast(Any, conn).fetchval(
                        "SELECT to_regclass('public.departments') IS NOT NULL"
                    )
                )
            if not exists:
                await _run_alembic_upgrade()
        except Exception as exc:  # pragma: no cover - non-fatal
            LOGGER.warning("db.pool.schema_check_failed", error=str(exc))

        LOGGER.info(
            "db.pool.initialised",
            min_size=pool_config.min_size,
            max_size=pool_config.max_size,
            statement_timeout_ms=pool_config.db_statement_timeout_ms,
        )
        return pool


async def _run_alembic_upgrade() -> None:
    LOGGER.info("db.pool.auto_migrate.start")
    try:
        proc = await asyncio.create_subprocess_exec("alembic", "upgrade", "head")
        rc = await proc.wait()
    except OSError as exc:
        LOGGER.warning("db.pool.auto_migrate.failed", error=str(exc))
        return
    if rc == 0:
        LOGGER.info("db.pool.auto_migrate.done")
    else:
        LOGGER.warning("db.pool.auto_migrate.failed", code=rc)


def get_pool() -> asyncpg.Pool:
    """Return the active pool or raise if it has not been initialised."""
    loop = _maybe_get_running_loop()
    if loop is not None:
        pool = _POOLS.get(loop)
        if pool is not None:
            return pool
    if _last_pool is not None:
        return _last_pool
    raise RuntimeError("Database pool not initialised. Call init_pool() first.")


async def close_pool() -> None:
    global _last_pool
    loop = asyncio.get_running_loop()
    lock = _get_pool_lock(loop)

    async with lock:
        pool = _POOLS.pop(loop, None)

    if pool is not None:
        await pool.close()
        if _last_pool is pool:
            _last_pool = None
        LOGGER.info("db.pool.closed")


def _get_pool_lock(loop: asyncio.AbstractEventLoop) -> asyncio.Lock:
    lock = _POOL_LOCKS.get(loop)
    if lock is None:
        lock = asyncio.Lock()
        _POOL_LOCKS[loop] = lock
    return lock


def _maybe_get_running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None

from __future__ import annotations

import asyncio
import secrets
from collections.abc import AsyncIterator

import asyncpg
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from faker import Faker

from src.config.db_settings import PoolConfig
from src.db.pool import close_pool, init_pool

_SCHEMA_DDL = """
CREATE TABLE {schema}.departments (
    id integer PRIMARY KEY CHECK (id > 0),
    name varchar(100) NOT NULL,
    parent_id integer REFERENCES {schema}.departments (id) ON DELETE RESTRICT,
    CHECK (parent_id IS NULL OR parent_id <> id)
);
CREATE INDEX ON {schema}.departments (parent_id);
CREATE TABLE {schema}.employees (
    id serial PRIMARY KEY,
    name varchar(100) NOT NULL,
    department_id integer NOT NULL REFERENCES {schema}.departments (id),
    position varchar(100) NOT NULL DEFAULT '',
    hire_date date,
    employee_number varchar(32) NOT NULL UNIQUE
);
CREATE INDEX ON {schema}.employees (department_id, name);
"""


@pytest.fixture
def faker() -> Faker:
    """Provide a Faker instance with Chinese and English locales for test data generation."""
    return Faker(["zh_TW", "en_US"])


@pytest_asyncio.fixture
async def db_pool() -> AsyncIterator[asyncpg.Pool]:
    """Initialise the shared asyncpg pool for database-centric tests."""
    try:
        load_dotenv(override=False)
        config = PoolConfig.model_validate({})  # Load from environment variables
    except (ValueError, RuntimeError) as exc:
        pytest.skip(f"Skipping database tests: {exc}")

    try:
        pool = await init_pool(config)
    except (OSError, asyncpg.PostgresError) as exc:
        pytest.skip(f"Skipping database tests: {exc}")

    try:
        yield pool
    finally:
        await close_pool()
        # Give a small delay to ensure cleanup completes
        await asyncio.sleep(0.1)


@pytest_asyncio.fixture
async def department_schema(db_pool: asyncpg.Pool) -> AsyncIterator[str]:
    """Create a throwaway schema holding empty department/employee tables.

    Writes are committed so that concurrent connections can observe each other;
    the whole schema is dropped afterwards.
    """
    schema = f"deptree_test_{secrets.token_hex(4)}"
    async with db_pool.acquire() as connection:
        await connection.execute(f"CREATE SCHEMA {schema}")
        await connection.execute(_SCHEMA_DDL.format(schema=schema))
    try:
        yield schema
    finally:
        async with db_pool.acquire() as connection:
            await connection.execute(f"DROP SCHEMA {schema} CASCADE")

from __future__ import annotations

from typing import Any

import pytest

from src.config.db_settings import PoolConfig
from src.db import pool as pool_module


class _DummyAcquire:
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def __aenter__(self) -> Any:
        return self._conn

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None


class _DummyConnection:
    def __init__(self, *, exists: bool) -> None:
        self.exists = exists
        self.fetchval_calls: list[str] = []

    async def fetchval(self, query: str) -> bool:
        self.fetchval_calls.append(query)
        # 模擬 `SELECT to_regclass(...) IS NOT NULL` 的回傳值
        return self.exists


class _DummyPool:
    def __init__(self, conn: _DummyConnection) -> None:
        self._conn = conn
        self.closed = False

    def acquire(self) -> _DummyAcquire:
        return _DummyAcquire(self._conn)

    async def close(self) -> None:
        self.closed = True


def _reset_pool_state() -> None:
    # 重置模組層級狀態，避免與其他測試互相干擾
    pool_module._POOL_LOCKS.clear()
    pool_module._POOLS.clear()
    pool_module._last_pool = None


@pytest.mark.asyncio
async def test_init_pool_uses_config_and_reuses_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset_pool_state()

    dummy_conn = _DummyConnection(exists=True)
    created_args: list[dict[str, Any]] = []

    async def fake_create_pool(**kwargs: Any) -> _DummyPool:
        created_args.append(kwargs)
        return _DummyPool(dummy_conn)

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)

    cfg = PoolConfig.model_validate(
        {
            "DATABASE_URL": "postgresql://test-db",
            "DB_POOL_MIN_SIZE": 2,
            "DB_POOL_MAX_SIZE": 4,
            "DB_POOL_TIMEOUT_SECONDS": None,
        }
    )

    pool1 = await pool_module.init_pool(cfg)
    pool2 = await pool_module.init_pool(cfg)

    # create_pool 僅被呼叫一次，第二次呼叫 init_pool 應重用既有 pool
    assert pool1 is pool2
    assert len(created_args) == 1

    args = created_args[0]
    assert args["dsn"] == cfg.dsn
    assert args["min_size"] == cfg.min_size
    assert args["max_size"] == cfg.max_size
    assert args["timeout"] is None
    assert args["server_settings"] == {"application_name": "deptree"}
    assert dummy_conn.fetchval_calls == [
        "SELECT to_regclass('public.departments') IS NOT NULL"
    ]

    await pool_module.close_pool()


@pytest.mark.asyncio
async def test_statement_timeout_is_sent_as_server_setting(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _reset_pool_state()
    created_args: list[dict[str, Any]] = []

    async def fake_create_pool(**kwargs: Any) -> _DummyPool:
        created_args.append(kwargs)
        return _DummyPool(_DummyConnection(exists=True))

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)

    cfg = PoolConfig.model_validate(
        {"DATABASE_URL": "postgresql://test-db", "DB_STATEMENT_TIMEOUT_MS": 1500}
    )
    await pool_module.init_pool(cfg)

    assert created_args[0]["server_settings"]["statement_timeout"] == "1500"
    await pool_module.close_pool()


@pytest.mark.asyncio
async def test_missing_schema_triggers_migration(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset_pool_state()
    upgrades: list[bool] = []

    async def fake_create_pool(**_: Any) -> _DummyPool:
        return _DummyPool(_DummyConnection(exists=False))

    async def fake_upgrade() -> None:
        upgrades.append(True)

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)
    monkeypatch.setattr(pool_module, "_run_alembic_upgrade", fake_upgrade)

    await pool_module.init_pool(PoolConfig.model_validate({"DATABASE_URL": "postgresql://x"}))

    assert upgrades == [True]
    await pool_module.close_pool()


@pytest.mark.asyncio
async def test_get_pool_and_close_pool_lifecycle(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset_pool_state()

    dummy_conn = _DummyConnection(exists=True)
    dummy_pool = _DummyPool(dummy_conn)

    async def fake_create_pool(**_: Any) -> _DummyPool:  # pragma: no cover - trivial wrapper
        return dummy_pool

    monkeypatch.setattr(pool_module.asyncpg, "create_pool", fake_create_pool)

    cfg = PoolConfig.model_validate(
        {
            "DATABASE_URL": "postgresql://test-db",
            "DB_POOL_MIN_SIZE": 1,
            "DB_POOL_MAX_SIZE": 1,
            "DB_POOL_TIMEOUT_SECONDS": None,
        }
    )

    # 建立並取得 pool
    pool = await pool_module.init_pool(cfg)
    assert pool is dummy_pool

    # get_pool 應回傳相同實例
    same_pool = pool_module.get_pool()
    assert same_pool is dummy_pool

    # 關閉 pool 後，_last_pool 也應被清空
    await pool_module.close_pool()
    assert dummy_pool.closed is True
    assert pool_module._last_pool is None

    # 再次呼叫 get_pool 應丟出錯誤
    with pytest.raises(RuntimeError):
        pool_module.get_pool()

"""
Legacy Judge Type Migration Test Suite
"""
import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from hackjudge.migrations.migrate_judge_types import (
    infer_legacy_judge_type,
    migrate_legacy_judge_types,
)
from hackjudge.orm.judge import Judge, JudgeType
from hackjudge.database import build_sessionmaker


class TestInference:

    @pytest.mark.parametrize("code,expected", [
        ("J1", JudgeType.INTERNAL),
        ("J10", JudgeType.INTERNAL),
        ("J11", JudgeType.EXTERNAL),
        ("judge-25-b7", JudgeType.EXTERNAL),
        ("guest", JudgeType.INTERNAL),
        ("", JudgeType.INTERNAL),
    ])
    def test_first_digit_run_decides(self, code, expected):
        assert infer_legacy_judge_type(code) == expected


class TestMigration:

    @pytest.fixture
    async def legacy_engine(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}")
        async with engine.begin() as conn:
            await conn.execute(text(
                "CREATE TABLE judges ("
                "id INTEGER PRIMARY KEY, judge_code VARCHAR(64) NOT NULL UNIQUE, "
                "name VARCHAR(255) NOT NULL, created_at DATETIME)"
            ))
            await conn.execute(text(
                "INSERT INTO judges (id, judge_code, name, created_at) VALUES "
                "(1, 'J3', 'Ada', '2024-01-01 00:00:00'), "
                "(2, 'J12', 'Grace', '2024-01-01 00:00:00')"
            ))
        yield engine
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_backfills_and_orm_reads_types(self, legacy_engine):
        async with legacy_engine.begin() as conn:
            counts = await migrate_legacy_judge_types(conn)

        assert counts == {"internal": 1, "external": 1}
        async with build_sessionmaker(legacy_engine)() as db:
            internal = await db.get(Judge, 1)
            external = await db.get(Judge, 2)
            assert internal.judge_type == JudgeType.INTERNAL
            assert external.judge_type == JudgeType.EXTERNAL

    @pytest.mark.asyncio
    async def test_rerun_is_noop(self, legacy_engine):
        async with legacy_engine.begin() as conn:
            await migrate_legacy_judge_types(conn)
        async with legacy_engine.begin() as conn:
            counts = await migrate_legacy_judge_types(conn)

        assert counts == {"internal": 0, "external": 0}

    @pytest.mark.asyncio
    async def test_missing_table_is_noop(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        try:
            async with engine.begin() as conn:
                counts = await migrate_legacy_judge_types(conn)
        finally:
            await engine.dispose()

        assert counts == {"internal": 0, "external": 0}

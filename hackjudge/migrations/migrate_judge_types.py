"""
Migration: backfill judges.judge_type for legacy rows

Older databases stored judges without a type; the type was guessed from
the judge code wherever it was needed. This one-time migration adds the
column if missing and stores the guess explicitly, so nothing infers it
at runtime any more.

Legacy rule: the first run of digits in the judge code, read as a
number, is >= 11 for External judges. No digits means Internal.
"""
import asyncio
import logging
import re
from typing import Dict

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection

from hackjudge.orm.judge import JudgeType

logger = logging.getLogger(__name__)

EXTERNAL_CODE_THRESHOLD = 11

_DIGITS = re.compile(r"\d+")


def infer_legacy_judge_type(judge_code: str) -> JudgeType:
    match = _DIGITS.search(judge_code or "")
    numeric = int(match.group(0)) if match else 0
    return JudgeType.EXTERNAL if numeric >= EXTERNAL_CODE_THRESHOLD else JudgeType.INTERNAL


def _judge_columns(sync_conn) -> list:
    inspector = inspect(sync_conn)
    if not inspector.has_table("judges"):
        return []
    return [col["name"] for col in inspector.get_columns("judges")]


async def migrate_legacy_judge_types(conn: AsyncConnection) -> Dict[str, int]:
    """
    Add and backfill judges.judge_type. Safe to run repeatedly.

    Values are written as enum names, which is how the ORM Enum column
    stores them.
    """
    columns = await conn.run_sync(_judge_columns)
    if not columns:
        logger.info("No judges table found; nothing to migrate")
        return {"internal": 0, "external": 0}

    if "judge_type" not in columns:
        logger.info("Adding judge_type column to judges table...")
        await conn.execute(text("ALTER TABLE judges ADD COLUMN judge_type VARCHAR(8)"))
    else:
        logger.info("judge_type column already exists in judges")

    result = await conn.execute(
        text("SELECT id, judge_code FROM judges WHERE judge_type IS NULL OR judge_type = ''")
    )
    counts = {"internal": 0, "external": 0}
    for judge_id, judge_code in result.all():
        judge_type = infer_legacy_judge_type(judge_code)
        await conn.execute(
            text("UPDATE judges SET judge_type = :judge_type WHERE id = :id"),
            {"judge_type": judge_type.name, "id": judge_id}
        )
        counts[judge_type.name.lower()] += 1

    logger.info(
        f"Backfilled judge types: {counts['internal']} internal, {counts['external']} external"
    )
    return counts


async def run_migration_async(database_url: str = None) -> Dict[str, int]:
    from sqlalchemy.ext.asyncio import create_async_engine
    from hackjudge.config.settings import settings

    engine = create_async_engine(database_url or settings.DATABASE_URL)
    try:
        async with engine.begin() as conn:
            return await migrate_legacy_judge_types(conn)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    asyncio.run(run_migration_async())

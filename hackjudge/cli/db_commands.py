"""
Database CLI Commands

Database operations: init, seed, migrate-judge-types
"""
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class DbCommand:
    """Database CLI command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute database command."""
        if args.db_action == "init":
            return self._run("Database Init", self._async_init)
        elif args.db_action == "seed":
            return self._run("Seed Domains", self._async_seed)
        elif args.db_action == "migrate-judge-types":
            return self._run("Migrate Judge Types", self._async_migrate_judge_types)
        else:
            print("Error: Unknown database action")
            return 1

    def _run(self, title: str, action) -> int:
        print(f"=== {title} ===")

        if self.dry_run:
            print(f"[DRY RUN] Would run: {title.lower()}")
            return 0

        try:
            asyncio.run(action())
            return 0
        except SQLAlchemyError as e:
            logger.error(f"{title} failed: {e}")
            print(f"Error: {e}")
            return 1

    async def _async_init(self) -> None:
        from hackjudge.database import init_db, close_db

        await init_db()
        await close_db()
        print("✓ Tables created")

    async def _async_seed(self) -> None:
        from hackjudge.database import AsyncSessionLocal, init_db, close_db
        from hackjudge.seed.seed_domains import seed_domains

        await init_db()
        async with AsyncSessionLocal() as db:
            created = await seed_domains(db)
        await close_db()
        print(f"✓ {len(created)} domain(s) added")

    async def _async_migrate_judge_types(self) -> None:
        from hackjudge.database import engine, close_db
        from hackjudge.migrations.migrate_judge_types import migrate_legacy_judge_types

        async with engine.begin() as conn:
            counts = await migrate_legacy_judge_types(conn)
        await close_db()
        print(f"✓ Backfilled {counts['internal']} internal, {counts['external']} external judge(s)")

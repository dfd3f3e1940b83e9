"""
Results CLI Commands

Results operations: calculate, status, export, rubric
"""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from hackjudge.errors import JudgingError

logger = logging.getLogger(__name__)


class ResultsCommand:
    """Results CLI command handler."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute results command."""
        if args.results_action == "calculate":
            return self._calculate(args)
        elif args.results_action == "status":
            return self._status(args)
        elif args.results_action == "export":
            return self._export(args)
        elif args.results_action == "rubric":
            return self._rubric(args)
        else:
            print("Error: Unknown results action")
            return 1

    def _guarded(self, coro) -> int:
        try:
            asyncio.run(coro)
            return 0
        except JudgingError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}")
            print(f"Error: {e}")
            return 1

    def _calculate(self, args) -> int:
        """Recalculate one round's snapshot."""
        print(f"=== Calculate Round {args.round} ===")

        if self.dry_run:
            print(f"[DRY RUN] Would recalculate round {args.round}")
            return 0

        return self._guarded(self._async_calculate(args.round))

    async def _async_calculate(self, round_number: int) -> None:
        from hackjudge.database import AsyncSessionLocal, close_db
        from hackjudge.services import results_service

        calculate = (
            results_service.calculate_round_one
            if round_number == 1
            else results_service.calculate_round_two
        )
        try:
            async with AsyncSessionLocal() as db:
                outcome = await calculate(db)
        finally:
            await close_db()
        print(f"✓ {outcome['count']} result(s) written (version {outcome['version']})")

    def _status(self, args) -> int:
        """Show calculation status of a round."""
        print(f"=== Round {args.round} Status ===")
        return self._guarded(self._async_status(args.round))

    async def _async_status(self, round_number: int) -> None:
        from hackjudge.database import AsyncSessionLocal, close_db
        from hackjudge.services import results_service

        try:
            async with AsyncSessionLocal() as db:
                state = await results_service.status(db, round_number)
        finally:
            await close_db()

        print(f"  Calculated: {'yes' if state['calculated'] else 'no'}")
        print(f"  Results:    {state['count']}")
        print(f"  Version:    {state['version']}")
        if state["stale"]:
            print("  ⚠ Scores were submitted after the last calculation")

    def _export(self, args) -> int:
        """Export a round's snapshot as CSV."""
        return self._guarded(self._async_export(args.round, args.output))

    async def _async_export(self, round_number: int, output: Optional[str]) -> None:
        from hackjudge.database import AsyncSessionLocal, close_db
        from hackjudge.services.export_service import export_results_csv

        try:
            async with AsyncSessionLocal() as db:
                content = await export_results_csv(db, round_number)
        finally:
            await close_db()

        if output:
            Path(output).write_text(content, encoding="utf-8")
            print(f"✓ Round {round_number} results written to {output}")
        else:
            print(content, end="")

    def _rubric(self, args) -> int:
        """Show the scoring rubric under current settings."""
        from hackjudge.schemas.rubric import describe_rubric

        description = describe_rubric()
        print("=== Scoring Rubric ===")
        for name, bounds in description["criteria"].items():
            print(f"  {name:<30} {bounds['min']}-{bounds['max']:g}  {bounds['description']}")
        bonus = description["bonus"]
        print(f"  {'bonus':<30} {bonus['min']}-{bonus['max']:g}")
        print(f"  Max total per score: {description['max_total']:g}")
        return 0

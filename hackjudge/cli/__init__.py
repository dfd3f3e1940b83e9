#!/usr/bin/env python3
"""
Hackathon Judging CLI

Usage:
    python -m hackjudge.cli <command> [options]

Commands:
    db          Database operations (init, seed, migrate-judge-types)
    results     Results operations (calculate, status, export, rubric)

Environment:
    DATABASE_URL    Async SQLAlchemy connection string
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from hackjudge import __version__
from hackjudge.cli.db_commands import DbCommand
from hackjudge.cli.results_commands import ResultsCommand
from hackjudge.config.settings import settings


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="hackjudge",
        description="Hackathon Judging CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s db seed
  %(prog)s results calculate --round 1
  %(prog)s results export --round 2 --output round2.csv
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without executing"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")
    db_subparsers.add_parser("init", help="Create all tables")
    db_subparsers.add_parser("seed", help="Seed configured domains (idempotent)")
    db_subparsers.add_parser("migrate-judge-types", help="Backfill judge types on legacy rows")

    # Results commands
    results_parser = subparsers.add_parser("results", help="Results operations")
    results_subparsers = results_parser.add_subparsers(dest="results_action")

    # results calculate
    calculate_parser = results_subparsers.add_parser("calculate", help="Recalculate a round")
    calculate_parser.add_argument("--round", "-r", type=int, choices=[1, 2], required=True, help="Round number")

    # results status
    status_parser = results_subparsers.add_parser("status", help="Show calculation status")
    status_parser.add_argument("--round", "-r", type=int, choices=[1, 2], required=True, help="Round number")

    # results export
    export_parser = results_subparsers.add_parser("export", help="Export results as CSV")
    export_parser.add_argument("--round", "-r", type=int, choices=[1, 2], required=True, help="Round number")
    export_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # results rubric
    results_subparsers.add_parser("rubric", help="Show rubric criteria and bounds")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(parsed.log_level)

    # Route to appropriate command handler
    command_map = {
        "db": DbCommand,
        "results": ResultsCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command](dry_run=parsed.dry_run)
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

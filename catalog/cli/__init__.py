#!/usr/bin/env python3
"""
Course Catalog CLI

Usage:
    python -m catalog.cli <command> [options]

Commands:
    db          Database operations (init)
    trending    Trending score operations (recompute)
    enrollment  Offline enrollment status operations (refresh)

Environment:
    DATABASE_URL    Database connection string
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from catalog.cli.catalog_commands import DbCommand, EnrollmentCommand, TrendingCommand
from catalog.orm.course import CourseVariant


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="catalog",
        description="Course Catalog CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s trending recompute --variant online --id 42 --force
  %(prog)s enrollment refresh
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")
    db_subparsers.add_parser("init", help="Create catalog tables and indexes")

    # Trending commands
    trending_parser = subparsers.add_parser("trending", help="Trending score operations")
    trending_subparsers = trending_parser.add_subparsers(dest="trending_action")

    recompute_parser = trending_subparsers.add_parser("recompute", help="Recompute a course's trending score")
    recompute_parser.add_argument(
        "--variant",
        required=True,
        choices=[v.value for v in CourseVariant],
        help="Course variant"
    )
    recompute_parser.add_argument("--id", "-i", type=int, required=True, help="Course ID")
    recompute_parser.add_argument("--force", action="store_true", help="Ignore the staleness window")

    # Enrollment commands
    enrollment_parser = subparsers.add_parser("enrollment", help="Offline enrollment status operations")
    enrollment_subparsers = enrollment_parser.add_subparsers(dest="enrollment_action")
    enrollment_subparsers.add_parser("refresh", help="Recompute enrollment status for all offline courses")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    command_map = {
        "db": DbCommand,
        "trending": TrendingCommand,
        "enrollment": EnrollmentCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command]()
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

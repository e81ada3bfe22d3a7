"""Command Line — run one lifecycle operation against the configured database.

Invariants:
    - Every command closes the manager (pooled + admin connections), even on failure
    - Destructive commands (drop, truncate) need --force or DBMANAGER_CONFIRM=1
    - Exit code 0 on success, 1 on any database or configuration error

Design Decisions:
    - argparse sub-commands: one process per operation, as test harness scripts call it
    - Settings loaded from environment / .env (see config.py), not from flags
"""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence

import asyncpg
from sqlalchemy.exc import SQLAlchemyError

from dbmanager.config import Settings, get_settings
from dbmanager.core.errors import DbManagerError
from dbmanager.infrastructure.observability import setup_logging
from dbmanager.services.lifecycle_manager import PostgresDatabaseManager

logger = logging.getLogger(__name__)

DESTRUCTIVE_COMMANDS = {"drop", "truncate"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbmanager",
        description="Create, reset and drop the configured PostgreSQL database.",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Allow destructive commands without DBMANAGER_CONFIRM=1.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("create-owner", help="Create the owner role if it does not exist.")

    create = sub.add_parser("create", help="Create the database.")
    create.add_argument("--name", help="Database name (default: configured database).")

    drop = sub.add_parser("drop", help="Drop the database if it exists.")
    drop.add_argument("--name", help="Database name (default: configured database).")

    copy = sub.add_parser("copy", help="Copy a database using it as a template.")
    copy.add_argument("from_name")
    copy.add_argument("to_name")

    truncate = sub.add_parser("truncate", help="Empty all tables, keeping the schema.")
    truncate.add_argument(
        "--ignore", action="append", default=[], metavar="TABLE",
        help="Table to leave untouched (repeatable).",
    )

    sub.add_parser("resync-sequences", help="Move id sequences past the current max(id).")
    return parser


def _confirmed(force: bool) -> bool:
    env_force = os.getenv("DBMANAGER_CONFIRM", "").lower() in {"1", "true", "yes"}
    return force or env_force


async def run_command(manager: PostgresDatabaseManager, args: argparse.Namespace) -> None:
    try:
        if args.command == "create-owner":
            await manager.create_owner_if_not_exist()
        elif args.command == "create":
            await manager.create_database(args.name)
        elif args.command == "drop":
            await manager.drop_database(args.name)
        elif args.command == "copy":
            await manager.copy_database(args.from_name, args.to_name)
        elif args.command == "truncate":
            await manager.truncate(args.ignore)
        elif args.command == "resync-sequences":
            await manager.resync_id_sequences()
    finally:
        await manager.close()


def main(argv: Sequence[str] | None = None, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)

    if args.command in DESTRUCTIVE_COMMANDS and not _confirmed(args.force):
        print(
            f"Refusing to {args.command} without --force or DBMANAGER_CONFIRM=1.",
            file=sys.stderr,
        )
        return 1

    manager = PostgresDatabaseManager(settings)
    try:
        asyncio.run(run_command(manager, args))
    except DbManagerError as e:
        logger.error(e.message, extra={"error_code": e.code})
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1
    except (asyncpg.PostgresError, SQLAlchemyError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

"""Management CLI: inspect and expire stored last commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import timedelta

import structlog

from hashbot.app import build_persistence, configure_logging
from hashbot.core.commands import CommandStore
from hashbot.core.config import HashbotConfig

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hashbot", description="Manage the retry engine's stored commands"
    )
    sub = parser.add_subparsers(dest="command")

    show = sub.add_parser("show", help="Print the last stored command of a chat")
    show.add_argument("chat_id", help="Chat identifier")

    cleanup = sub.add_parser("cleanup", help="Delete commands older than the TTL")
    cleanup.add_argument(
        "--ttl-days",
        dest="ttl_days",
        type=float,
        default=None,
        help="Override the configured TTL in days",
    )

    clear = sub.add_parser("clear", help="Delete every stored command")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    return parser


async def _with_store(config: HashbotConfig, action: str, args: argparse.Namespace) -> int:
    persistence = build_persistence(config)
    if config.storage_backend == "memory":
        logger.warning("cli_memory_backend", hint="set HASHBOT_STORAGE_BACKEND=sqlite")
    await persistence.setup()
    store = CommandStore(persistence)
    try:
        if action == "show":
            command = await store.get_last(args.chat_id)
            if command is None:
                print(f"No stored command for {args.chat_id}")
                return 1
            print(json.dumps(command.model_dump(mode="json"), indent=2, ensure_ascii=False))
            return 0
        if action == "cleanup":
            ttl_days = args.ttl_days if args.ttl_days is not None else config.command_ttl_days
            deleted = await store.cleanup(timedelta(days=ttl_days))
            print(f"Deleted {deleted} command(s) older than {ttl_days:g} day(s)")
            return 0
        await store.clear_all()
        print("All stored commands deleted")
        return 0
    finally:
        await persistence.teardown()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = HashbotConfig()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(config)

    if args.command == "clear" and not args.yes:
        answer = input("Delete every stored command? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 1

    return asyncio.run(_with_store(config, args.command, args))


def run() -> None:
    raise SystemExit(main())

"""
CLI (Command Line Interface).

Quick terminal commands for scripting and for testing, e.g.:

    noticeboard list announcements
    noticeboard --admin post events --title "BBQ" --content "Bring food" --date 2026-11-02 \
        --set time=18:00 --set location="Town hall"
    noticeboard --admin edit events <id> --set location=Park
    noticeboard delete events <id>
    noticeboard interactive

Backend selection (see noticeboard.config): --config / NOTICEBOARD_FIREBASE_CONFIG
for Firebase, --local [PATH] / NOTICEBOARD_DATA for the local JSON store.

Note:
- The interactive UI lives in noticeboard/interactive.py
- These commands print plain text (no rich formatting)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from noticeboard.app import NoticeboardApp
from noticeboard.config import Settings, parse_firebase_config
from noticeboard.errors import ConfigurationError
from noticeboard.model import Category, Entry, spec_for
from noticeboard.router import entry_badge
from noticeboard.storage import default_data_path

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _category_arg(value: str) -> Category:
    cat = Category.parse(value)
    if cat is None:
        names = ", ".join(c.value for c in Category)
        raise argparse.ArgumentTypeError(f"unknown category {value!r} (choose from {names})")
    return cat


def _key_value(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {value!r}")
    return key, val


def settings_from_args(args: argparse.Namespace, environ: Optional[dict[str, str]] = None) -> Settings:
    """Environment first, then command line flags on top."""
    settings = Settings.from_env(environ)
    if args.config:
        settings.firebase_config = parse_firebase_config(args.config)
    if args.app_id:
        settings.app_id = args.app_id.strip()
    if args.token:
        settings.auth_token = args.token.strip()
    if args.local is not None:
        settings.local_path = Path(args.local).expanduser()
        # an explicit --local wins over an inherited Firebase config
        if not args.config:
            settings.firebase_config = {}
    if args.no_anonymous:
        settings.allow_anonymous = False
    if args.poll_interval is not None:
        settings.poll_interval = args.poll_interval
    settings.admin = bool(args.admin)
    return settings


def format_entry(category: Category, entry: Entry) -> str:
    bits = [entry.id or "?", entry.date or "", entry.title or "(no title)"]
    badge = entry_badge(category, entry)
    if badge:
        bits.append(badge.text)
    if entry.time:
        bits.append(f"Time: {entry.time}")
    if entry.location:
        bits.append(f"Location: {entry.location}")
    if entry.contact:
        bits.append(f"Contact: {entry.contact}")
    bits.append(f"By: {entry.author or 'Anonymous'}")
    return " | ".join(bits)


def _apply_fields(board: NoticeboardApp, args: argparse.Namespace) -> None:
    if args.title is not None:
        board.form.set_field("title", args.title)
    if args.content is not None:
        board.form.set_field("content", args.content)
    if args.date is not None:
        board.form.set_field("date", args.date)
    for key, value in args.set or []:
        board.form.set_field(key, value)


async def _require_session(board: NoticeboardApp) -> bool:
    if not board.session.is_authenticated:
        print("Not signed in (sign-in failed or disabled).")
        return False
    return True


async def _cmd_list(args: argparse.Namespace, board: NoticeboardApp) -> int:
    """
    Print all entries of one category (newest first).
    """
    if not await _require_session(board):
        return EXIT_FAILED
    category: Category = args.category
    try:
        await board.store.wait_loaded(args.timeout)
        entries = board.store.entries(category)
        if not entries and board.store.updated_at(category) is None and not board.store.failed(category):
            entries = await board.store.next_snapshot(category, args.timeout)
    except asyncio.TimeoutError:
        print("Timed out waiting for data.")
        return EXIT_FAILED

    if board.store.failed(category):
        print(f"Could not load {spec_for(category).title}.")
        return EXIT_FAILED

    if not entries:
        print(f"No {spec_for(category).title.lower()} posted yet.")
        return EXIT_OK

    for entry in entries:
        print(format_entry(category, entry))
    return EXIT_OK


async def _cmd_post(args: argparse.Namespace, board: NoticeboardApp) -> int:
    """
    Create a new entry from --title/--content/--date/--set.
    """
    if not await _require_session(board):
        return EXIT_FAILED
    board.router.select_category(args.category)
    board.router.open_create()
    _apply_fields(board, args)

    doc_id = await board.submit_form()
    if doc_id is None:
        print(board.last_error or "Nothing was posted.")
        return EXIT_FAILED
    print(f"Posted: {doc_id}")
    return EXIT_OK


async def _cmd_edit(args: argparse.Namespace, board: NoticeboardApp) -> int:
    """
    Merge the given fields into an existing entry; other fields stay as they are.
    """
    if not await _require_session(board):
        return EXIT_FAILED
    category: Category = args.category
    try:
        entries = await board.store.wait_for(
            category, lambda es: any(e.id == args.entry_id for e in es), args.timeout
        )
    except asyncio.TimeoutError:
        print(f"Not found: {args.entry_id}")
        return EXIT_FAILED

    entry = next(e for e in entries if e.id == args.entry_id)
    board.router.select_category(category)
    board.router.open_edit(entry)
    _apply_fields(board, args)

    doc_id = await board.submit_form()
    if doc_id is None:
        print(board.last_error or "Nothing was updated.")
        return EXIT_FAILED
    print(f"Updated: {doc_id}")
    return EXIT_OK


async def _cmd_delete(args: argparse.Namespace, board: NoticeboardApp) -> int:
    """
    Delete one entry by id.
    """
    if not await _require_session(board):
        return EXIT_FAILED
    ok = await board.delete_entry(Entry(id=args.entry_id), args.category)
    if not ok:
        print(board.last_error or f"Could not delete: {args.entry_id}")
        return EXIT_FAILED
    print(f"Deleted: {args.entry_id}")
    return EXIT_OK


async def _cmd_interactive(args: argparse.Namespace, board: NoticeboardApp) -> int:
    from noticeboard.interactive import run_interactive

    await run_interactive(board)
    return EXIT_OK


_COMMANDS = {
    "list": _cmd_list,
    "post": _cmd_post,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "interactive": _cmd_interactive,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="noticeboard", description="Community Noticeboard CLI")
    parser.add_argument("--config", type=str, help="Firebase web config (JSON text or path to a JSON file)")
    parser.add_argument("--app-id", type=str, help="Application id (namespace of the collections)")
    parser.add_argument("--token", type=str, help="Custom auth token to sign in with")
    parser.add_argument(
        "--local",
        nargs="?",
        const=str(default_data_path()),
        default=None,
        metavar="PATH",
        help="Use the local JSON store (default file inside the package)",
    )
    parser.add_argument("--admin", action="store_true", help="Start in admin mode")
    parser.add_argument("--no-anonymous", action="store_true", help="Do not sign in anonymously without a token")
    parser.add_argument("--poll-interval", type=float, default=None, help="Firestore polling interval in seconds")
    parser.add_argument("--timeout", type=float, default=15.0, help="Seconds to wait for data")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List entries of a category")
    p_list.add_argument("category", type=_category_arg, help="announcements, events, lostfound or feedback")

    def add_field_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--title", type=str, default=None)
        p.add_argument("--content", type=str, default=None)
        p.add_argument("--date", type=str, default=None, help="YYYY-MM-DD (default: today)")
        p.add_argument(
            "--set",
            type=_key_value,
            action="append",
            metavar="KEY=VALUE",
            help="Any other field, e.g. priority=high, time=18:00, type=found, rating=4",
        )

    p_post = sub.add_parser("post", help="Post a new entry")
    p_post.add_argument("category", type=_category_arg)
    add_field_args(p_post)

    p_edit = sub.add_parser("edit", help="Edit an entry (merge the given fields)")
    p_edit.add_argument("category", type=_category_arg)
    p_edit.add_argument("entry_id", type=str)
    add_field_args(p_edit)

    p_delete = sub.add_parser("delete", help="Delete an entry")
    p_delete.add_argument("category", type=_category_arg)
    p_delete.add_argument("entry_id", type=str)

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


async def _run(args: argparse.Namespace, board: NoticeboardApp) -> int:
    async with board:
        return await _COMMANDS[args.command](args, board)


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, builds the app, dispatches to command
    handlers and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = settings_from_args(args)
        board = NoticeboardApp.from_settings(settings)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}")
        raise SystemExit(EXIT_USAGE)

    try:
        code = asyncio.run(_run(args, board))
    except KeyboardInterrupt:
        print("Bye.")
        raise SystemExit(EXIT_INTERRUPTED)
    raise SystemExit(code)

from __future__ import annotations

import asyncio
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from noticeboard.app import NoticeboardApp
from noticeboard.model import Category, Entry, FieldSpec, spec_for

console = Console()

ICONS = {
    "megaphone": "📣",
    "calendar": "📅",
    "search": "🔍",
    "message-circle": "💬",
}

# how long to wait for our own write to come back through the subscription
ECHO_TIMEOUT = 5.0

MAX_CONTENT = 60


def _println(msg: str = "") -> None:
    console.print(msg)


async def _prompt(msg: str) -> str:
    # input() blocks; run it off the loop so snapshots keep arriving meanwhile
    return await asyncio.to_thread(console.input, msg)


def _safe_str(x: Any) -> str:
    return "" if x is None else str(x)


def _short(text: str, limit: int = MAX_CONTENT) -> str:
    text = " ".join(text.split())
    if len(text) > limit:
        return text[: limit - 1].rstrip() + "…"
    return text


async def run_interactive(board: NoticeboardApp) -> None:
    """
    Interactive menu loop. The board must already be started.
    """
    categories = list(Category)
    while True:
        entries = _render(board)

        admin_items = (
            "[n] Add new\n[e] Edit an entry\n[d] Delete an entry\n" if board.session.is_admin else ""
        )
        section_items = "".join(
            f"[{i}] {spec_for(c).title}\n" for i, c in enumerate(categories, start=1)
        )
        choice = (
            await _prompt(
                "\n"
                + section_items
                + "[v] View an entry\n"
                + admin_items
                + f"[a] {'Exit Admin' if board.session.is_admin else 'Admin Mode'}\n"
                "[r] Refresh\n"
                "[0] Exit\n"
                "Select: "
            )
        ).strip().lower()

        if choice == "0":
            _println("Bye.")
            return

        if choice.isdigit() and 1 <= int(choice) <= len(categories):
            board.router.select_category(categories[int(choice) - 1])
        elif choice == "a":
            if not board.session.toggle_admin():
                board.router.close_form()
        elif choice == "v":
            entry = await _pick_entry(entries, "view")
            if entry:
                _show_entry(board, entry)
                await _prompt("\nPress Enter to go back...")
        elif choice == "n" and board.session.is_admin:
            board.router.open_create()
            await _flow_form(board)
        elif choice == "e" and board.session.is_admin:
            entry = await _pick_entry(entries, "edit")
            if entry:
                board.router.open_edit(entry)
                await _flow_form(board)
        elif choice == "d" and board.session.is_admin:
            await _flow_delete(board, entries)
        elif choice in ("r", ""):
            continue
        else:
            _println("Invalid choice.")


def _print_header(board: NoticeboardApp) -> None:
    meta = board.router.section_meta()
    user = board.session.user_id or ("Authenticating..." if not board.session.ready else "(not signed in)")
    mode = "[bold red]ADMIN[/]" if board.session.is_admin else "viewer"

    _println("\n=== Community Noticeboard ===")
    _println("Stay connected with your community")
    _println(f"User ID: [dim]{user}[/] | Mode: {mode}")
    _println(f"\n{ICONS.get(meta.icon, '')} [bold {meta.accent}]{meta.title}[/]")


def _render(board: NoticeboardApp) -> list[Entry]:
    _print_header(board)

    category = board.router.active_category
    if board.store.loading:
        _println("Loading posts...")
        return []
    if board.store.failed(category):
        _println(f"[red]Could not load {spec_for(category).title.lower()} (live updates stopped).[/]")

    entries = list(board.current_entries())
    if not entries:
        _println(board.router.empty_message())
        if board.session.is_admin:
            _println(f"Use [n] to {board.router.add_first_label()}.")
        return entries

    table = Table(box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Content")
    table.add_column("Details")
    table.add_column("Posted")
    table.add_column("By")

    for i, entry in enumerate(entries, start=1):
        badge = board.router.entry_badge(entry)
        details = []
        if badge:
            details.append(f"[{badge.color}]{badge.text}[/]")
        if entry.time:
            details.append(f"Time: {entry.time}")
        if entry.location:
            details.append(f"Location: {escape(entry.location)}")
        if entry.contact:
            details.append(f"Contact: {escape(entry.contact)}")
        table.add_row(
            str(i),
            escape(entry.title),
            escape(_short(entry.content)),
            "\n".join(details),
            _safe_str(entry.date),
            escape(_safe_str(entry.author)),
        )

    console.print(table)
    return entries


def _show_entry(board: NoticeboardApp, entry: Entry) -> None:
    _println(f"\n[bold]{escape(entry.title)}[/]")
    _println(escape(entry.content))
    badge = board.router.entry_badge(entry)
    if badge:
        _println(f"[{badge.color}]{badge.text}[/]")
    _println(f"Posted: {_safe_str(entry.date)}")
    if entry.time:
        _println(f"Time: {entry.time}")
    if entry.location:
        _println(f"Location: {escape(entry.location)}")
    if entry.contact:
        _println(f"Contact: {escape(entry.contact)}")
    _println(f"By: {escape(_safe_str(entry.author))}")


async def _pick_entry(entries: list[Entry], action: str) -> Optional[Entry]:
    if not entries:
        _println("Nothing to select.")
        return None

    pick = (await _prompt(f"Enter number to {action} (or blank to cancel): ")).strip()
    if not pick:
        return None
    if not pick.isdigit():
        _println("Not a number.")
        return None
    i = int(pick)
    if not (1 <= i <= len(entries)):
        _println("Out of range.")
        return None
    return entries[i - 1]


def _field_hint(spec: FieldSpec) -> str:
    if spec.choices:
        return " (" + "/".join(str(c) for c in spec.choices) + ")"
    if spec.kind == "date":
        return " (YYYY-MM-DD)"
    if spec.kind == "time":
        return " (HH:MM)"
    if spec.placeholder:
        return f" ({spec.placeholder})"
    return ""


async def _fill_fields(board: NoticeboardApp) -> None:
    form = board.form
    assert form.category is not None
    for spec in spec_for(form.category).fields:
        current = form.get_field(spec.name)
        shown = _safe_str(current if current not in (None, "") else spec.default)
        req = "*" if spec.required else ""
        value = (await _prompt(f"{spec.label}{req}{_field_hint(spec)} [{shown}]: ")).strip()
        if value:
            form.set_field(spec.name, value)
        elif current in (None, "") and spec.default is not None:
            form.set_field(spec.name, spec.default)


async def _flow_form(board: NoticeboardApp) -> None:
    """
    Fill in the open form field by field and submit it.

    A failed save keeps the draft, so the user can retry or fix fields.
    """
    category = board.form.category
    _println(f"\n[bold]{board.router.form_heading()}[/]  (blank keeps the value in brackets)")
    await _fill_fields(board)

    while board.form.visible:
        problems = board.form.validate()
        if problems:
            for p in problems:
                _println(f"[red]- {p}[/]")
            again = (await _prompt("Fix fields? [Y/n]: ")).strip().lower()
            if again == "n":
                board.router.close_form()
                _println("Cancelled.")
                return
            await _fill_fields(board)
            continue

        ok = (await _prompt(f"{board.router.submit_label()}? [Y/n]: ")).strip().lower()
        if ok == "n":
            board.router.close_form()
            _println("Cancelled.")
            return

        doc_id = await board.submit_form()
        if doc_id is None:
            _println(f"[red]{escape(board.last_error or '')}[/]")
            retry = (await _prompt("Try again? [Y/n]: ")).strip().lower()
            if retry == "n":
                board.router.close_form()
                _println("Cancelled.")
                return
            continue

        _println(f"Saved: {doc_id}")
        if category is not None:
            try:
                await board.store.wait_for(
                    category, lambda es: any(e.id == doc_id for e in es), ECHO_TIMEOUT
                )
            except asyncio.TimeoutError:
                _println("(waiting for the board to update...)")


async def _flow_delete(board: NoticeboardApp, entries: list[Entry]) -> None:
    entry = await _pick_entry(entries, "delete")
    if not entry:
        return
    sure = (await _prompt(f"Delete '{entry.title}'? [y/N]: ")).strip().lower()
    if sure != "y":
        return
    if await board.delete_entry(entry):
        _println(f"Deleted: {entry.id}")
    else:
        _println(f"[red]{escape(board.last_error or '')}[/]")

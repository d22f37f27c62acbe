"""
Tests for CLI entry points.

These tests focus on:
- Basic CLI argument validation (unknown category, malformed --set)
- A post/list/edit/delete roundtrip against the local store, using a
  temporary file (to avoid touching the real data file during tests)
- Exit code 2 when no backend is configured
"""

import io
import os
import re
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from noticeboard.cli import format_entry, main
from noticeboard.model import Category, Entry


def run_cli(argv: list[str]) -> tuple[int, str]:
    out = io.StringIO()
    with redirect_stdout(out):
        try:
            main(argv)
        except SystemExit as e:
            return int(e.code or 0), out.getvalue()
    return 0, out.getvalue()


class TestCLI(unittest.TestCase):
    def test_cli_rejects_unknown_category(self) -> None:
        with self.assertRaises(SystemExit) as ctx, redirect_stdout(io.StringIO()), mock.patch("sys.stderr", io.StringIO()):
            main(["--local", "board.json", "list", "polls"])
        self.assertEqual(ctx.exception.code, 2)

    def test_cli_rejects_malformed_set(self) -> None:
        with self.assertRaises(SystemExit) as ctx, mock.patch("sys.stderr", io.StringIO()):
            main(["--local", "board.json", "post", "events", "--set", "location"])
        self.assertEqual(ctx.exception.code, 2)

    def test_cli_without_backend_exits_2(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            code, out = run_cli(["list", "events"])
        self.assertEqual(code, 2)
        self.assertIn("Configuration error", out)

    def test_cli_post_list_edit_delete_roundtrip(self) -> None:
        # Do not touch the real data file; use a temporary one instead.
        with tempfile.TemporaryDirectory() as d:
            p = str(Path(d) / "board.json")

            code, out = run_cli(["--local", p, "list", "lost-found"])
            self.assertEqual(code, 0)
            self.assertIn("No lost & found posted yet.", out)

            code, out = run_cli(
                [
                    "--local", p, "--admin", "post", "Lost & Found",
                    "--title", "Blue umbrella", "--content", "Left at the bus stop",
                    "--date", "2026-10-18", "--set", "type=found", "--set", "contact=555-0101",
                ]
            )
            self.assertEqual(code, 0, out)
            m = re.match(r"Posted: (\S+)", out)
            self.assertIsNotNone(m)
            doc_id = m.group(1)

            code, out = run_cli(["--local", p, "list", "lostfound"])
            self.assertEqual(code, 0)
            self.assertIn(
                f"{doc_id} | 2026-10-18 | Blue umbrella | FOUND | Contact: 555-0101 | By: Admin", out
            )

            code, out = run_cli(["--local", p, "edit", "lostfound", doc_id, "--set", "type=lost"])
            self.assertEqual(code, 0, out)
            code, out = run_cli(["--local", p, "list", "lostfound"])
            self.assertIn("| LOST |", out)
            self.assertIn("By: Anonymous", out)

            code, out = run_cli(["--local", p, "delete", "lostfound", doc_id])
            self.assertEqual((code, out.strip()), (0, f"Deleted: {doc_id}"))
            code, out = run_cli(["--local", p, "list", "lostfound"])
            self.assertIn("No lost & found posted yet.", out)

    def test_format_entry_with_foreign_field_types(self) -> None:
        entry = Entry.from_document(
            "x1",
            {"title": "Road works", "date": datetime(2026, 10, 19, tzinfo=timezone.utc), "priority": 2},
        )
        self.assertEqual(format_entry(Category.ANNOUNCEMENTS, entry), "x1 | 2026-10-19 | Road works | 2 | By: Anonymous")

    def test_cli_post_reports_missing_fields(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = str(Path(d) / "board.json")
            code, out = run_cli(["--local", p, "post", "events", "--title", "BBQ"])
            self.assertEqual(code, 1)
            self.assertIn("Description is required", out)
            self.assertFalse(Path(p).exists())


if __name__ == "__main__":
    unittest.main()

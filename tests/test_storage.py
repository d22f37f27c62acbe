"""
Unit tests for the local noticeboard file.

Storage contract:
- Missing/invalid file -> empty mapping
- Datetimes survive a save/load cycle as datetimes
- JSON schema: {"collections": {path: {doc_id: fields}}}
"""

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from noticeboard.storage import load_collections, save_collections


class TestStorage(unittest.TestCase):
    def test_load_missing_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "missing.json"
            self.assertEqual(load_collections(p), {})

    def test_load_corrupt_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "board.json"
            p.write_text("{not json", encoding="utf-8")
            self.assertEqual(load_collections(p), {})

            p.write_text(json.dumps({"collections": ["wrong"]}), encoding="utf-8")
            self.assertEqual(load_collections(p), {})

    def test_save_and_load_keeps_datetimes(self) -> None:
        created = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
        collections = {
            "artifacts/app/public/data/events": {
                "abc": {"title": "BBQ", "createdAt": created, "tags": ["food"]},
            },
            "artifacts/app/public/data/feedback": {},
        }
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "nested" / "board.json"
            save_collections(collections, p)

            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertIn("collections", data)
            # empty collections are not written
            self.assertEqual(list(data["collections"]), ["artifacts/app/public/data/events"])
            self.assertEqual(
                data["collections"]["artifacts/app/public/data/events"]["abc"]["createdAt"],
                {"$date": "2026-10-19T09:30:00+00:00"},
            )

            loaded = load_collections(p)
            doc = loaded["artifacts/app/public/data/events"]["abc"]
            self.assertEqual(doc["createdAt"], created)
            self.assertEqual(doc["tags"], ["food"])


if __name__ == "__main__":
    unittest.main()

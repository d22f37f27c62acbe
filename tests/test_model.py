import unittest
from datetime import datetime, timezone

from noticeboard.model import CATEGORY_SPECS, Category, Entry, collection_path


class TestCategory(unittest.TestCase):
    def test_parse_accepts_values_and_sub_paths(self) -> None:
        self.assertIs(Category.parse("announcements"), Category.ANNOUNCEMENTS)
        self.assertIs(Category.parse(" Events "), Category.EVENTS)
        self.assertIs(Category.parse("lost-found"), Category.LOST_FOUND)
        self.assertIs(Category.parse("Lost & Found"), Category.LOST_FOUND)
        self.assertIs(Category.parse(Category.FEEDBACK), Category.FEEDBACK)

    def test_parse_rejects_unknown(self) -> None:
        self.assertIsNone(Category.parse("polls"))
        self.assertIsNone(Category.parse(None))

    def test_every_category_has_a_descriptor(self) -> None:
        self.assertEqual(set(CATEGORY_SPECS), set(Category))
        for spec in CATEGORY_SPECS.values():
            self.assertIn("title", spec.required_fields)
            self.assertIn("content", spec.required_fields)

    def test_collection_paths(self) -> None:
        self.assertEqual(
            collection_path("my-app", Category.LOST_FOUND),
            "artifacts/my-app/public/data/lost-found",
        )
        self.assertEqual(
            collection_path("my-app", Category.FEEDBACK),
            "artifacts/my-app/public/data/feedback",
        )


class TestEntry(unittest.TestCase):
    def test_from_document_reads_known_and_keeps_extra_fields(self) -> None:
        entry = Entry.from_document(
            "doc1",
            {
                "title": "Lost keys",
                "content": "Blue keyring",
                "type": "lost",
                "contact": "555-0101",
                "createdAt": "2026-10-19T09:30:00Z",
                "pinned": True,
            },
        )
        self.assertEqual(entry.id, "doc1")
        self.assertEqual(entry.type, "lost")
        self.assertEqual(entry.created_at, datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc))
        self.assertEqual(entry.extra, {"pinned": True})

        fields = entry.to_fields()
        self.assertTrue(fields["pinned"])
        self.assertNotIn("id", fields)
        self.assertNotIn("rating", fields)
        self.assertEqual(entry.to_draft()["id"], "doc1")

    def test_rating_is_coerced_to_int(self) -> None:
        self.assertEqual(Entry.from_document("a", {"rating": "4"}).rating, 4)
        self.assertIsNone(Entry.from_document("b", {"rating": "lots"}).rating)

    def test_text_fields_written_by_other_clients_are_coerced(self) -> None:
        entry = Entry.from_document(
            "c",
            {
                "date": datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc),
                "priority": 3,
                "type": True,
                "time": 1800,
            },
        )
        self.assertEqual(entry.date, "2026-10-19")
        self.assertEqual(entry.priority, "3")
        self.assertEqual(entry.type, "True")
        self.assertEqual(entry.time, "1800")
        self.assertIsNone(entry.location)


if __name__ == "__main__":
    unittest.main()

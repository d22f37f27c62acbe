"""
Unit tests for the entry form controller.

Contract:
- start_create clears the draft, start_edit seeds it (id included)
- set_field merges one field
- build_submission normalizes (defaults, stripping, rating as int) and
  refuses drafts with missing or malformed fields
"""

import unittest

from noticeboard.errors import ValidationError
from noticeboard.forms import EntryFormController, FormMode
from noticeboard.model import Category, Entry


class TestEntryFormController(unittest.TestCase):
    def setUp(self) -> None:
        self.form = EntryFormController()

    def test_starts_closed(self) -> None:
        self.assertEqual(self.form.mode, FormMode.CLOSED)
        self.assertFalse(self.form.visible)

    def test_start_create_clears_previous_draft(self) -> None:
        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", "Old")
        self.form.start_create(Category.EVENTS)
        self.assertEqual(self.form.mode, FormMode.CREATE)
        self.assertEqual(self.form.category, Category.EVENTS)
        self.assertEqual(self.form.draft, {})

    def test_set_field_merges(self) -> None:
        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", "Water outage")
        self.form.set_field("content", "Tuesday 9-12")
        self.form.set_field("title", "Water outage (updated)")
        self.assertEqual(self.form.draft, {"title": "Water outage (updated)", "content": "Tuesday 9-12"})

    def test_start_edit_seeds_draft_with_id(self) -> None:
        entry = Entry(id="e1", title="Yard sale", content="Saturday", priority="low")
        self.form.start_edit(Category.ANNOUNCEMENTS, entry)
        self.assertEqual(self.form.mode, FormMode.EDIT)
        self.assertEqual(self.form.editing_id, "e1")
        self.assertEqual(self.form.get_field("id"), "e1")
        self.assertEqual(self.form.get_field("priority"), "low")

    def test_start_edit_requires_id(self) -> None:
        with self.assertRaises(ValueError):
            self.form.start_edit(Category.ANNOUNCEMENTS, Entry(title="x"))

    def test_cancel_clears_everything(self) -> None:
        self.form.start_edit(Category.FEEDBACK, {"id": "f1", "title": "Hi"})
        self.form.cancel()
        self.assertFalse(self.form.visible)
        self.assertIsNone(self.form.editing_id)
        self.assertEqual(self.form.draft, {})

    def test_required_fields_per_category(self) -> None:
        self.form.start_create(Category.EVENTS)
        self.form.set_field("title", "BBQ")
        self.form.set_field("content", "   ")
        problems = self.form.validate()
        self.assertEqual(
            problems,
            ["Description is required", "Date is required", "Time is required", "Location is required"],
        )
        with self.assertRaises(ValidationError) as ctx:
            self.form.build_submission()
        self.assertEqual(len(ctx.exception.problems), 4)

    def test_defaults_applied_for_optional_selects(self) -> None:
        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", " Notice ")
        self.form.set_field("content", "Text")
        sub = self.form.build_submission()
        self.assertEqual(sub.fields, {"title": "Notice", "content": "Text", "priority": "medium"})
        self.assertIsNone(sub.editing_id)

        self.form.start_create(Category.LOST_FOUND)
        for k, v in {"title": "Umbrella", "content": "Black", "contact": "a@b.c"}.items():
            self.form.set_field(k, v)
        self.assertEqual(self.form.build_submission().fields["type"], "lost")

    def test_rating_is_coerced_and_range_checked(self) -> None:
        self.form.start_create(Category.FEEDBACK)
        self.form.set_field("title", "Great!")
        self.form.set_field("content", "Loved it")
        self.form.set_field("rating", "4")
        self.assertEqual(self.form.build_submission().fields["rating"], 4)

        self.form.set_field("rating", "9")
        self.assertEqual(self.form.validate(), ["Rating must be a whole number from 1 to 5"])

        self.form.set_field("rating", None)
        self.assertEqual(self.form.build_submission().fields["rating"], 5)

    def test_bad_choice_date_and_time_are_reported(self) -> None:
        self.form.start_create(Category.EVENTS)
        for k, v in {
            "title": "BBQ",
            "content": "Bring food",
            "date": "19.10.2026",
            "time": "25:00",
            "location": "Park",
        }.items():
            self.form.set_field(k, v)
        self.assertEqual(
            self.form.validate(),
            ["Date must be a date (YYYY-MM-DD)", "Time must be a time (HH:MM)"],
        )

        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", "x")
        self.form.set_field("content", "y")
        self.form.set_field("priority", "urgent")
        self.assertEqual(self.form.validate(), ["Priority must be one of: low, medium, high"])

    def test_submission_drops_id_but_keeps_editing_id(self) -> None:
        self.form.start_edit(
            Category.ANNOUNCEMENTS,
            {"id": "a1", "title": "Old", "content": "Body", "author": "Admin", "date": "2026-01-01"},
        )
        self.form.set_field("title", "New")
        sub = self.form.build_submission()
        self.assertEqual(sub.editing_id, "a1")
        self.assertNotIn("id", sub.fields)
        self.assertEqual(sub.fields["title"], "New")
        self.assertEqual(sub.fields["date"], "2026-01-01")

    def test_no_open_form_is_invalid(self) -> None:
        self.assertEqual(self.form.validate(), ["No form is open"])


if __name__ == "__main__":
    unittest.main()

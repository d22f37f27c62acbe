"""
Unit tests for the CRUD dispatcher.

Contract:
- date defaults to today, author follows the admin flag, createdAt is stamped
- editing merges: untouched fields persist, present fields overwrite
- no signed-in user -> NotAuthenticatedError and nothing is written
- a failed write is raised to the caller and leaves the form open
"""

import unittest

from noticeboard.backend import MemoryDocumentStore
from noticeboard.dispatcher import CrudDispatcher
from noticeboard.errors import BackendError, NotAuthenticatedError
from noticeboard.forms import EntryFormController
from noticeboard.model import Category, collection_path

from tests.helpers import FIXED_NOW, TODAY, FailingDocumentStore, fixed_clock, started_session

APP = "test-app"


class TestCrudDispatcher(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.documents = MemoryDocumentStore()
        self.session = await started_session(admin=True)
        self.form = EntryFormController()
        self.dispatcher = CrudDispatcher(self.documents, self.session, APP, form=self.form, clock=fixed_clock)

    def _stored(self, category: Category) -> dict:
        return {d.id: d.fields for d in self.documents.snapshot(collection_path(APP, category))}

    async def test_missing_date_defaults_to_today_for_all_categories(self) -> None:
        for category in Category:
            doc_id = await self.dispatcher.submit(category, {"title": "t", "content": "c"})
            stored = self._stored(category)[doc_id]
            self.assertEqual(stored["date"], TODAY)
            self.assertEqual(stored["createdAt"], FIXED_NOW)

    async def test_explicit_date_is_kept(self) -> None:
        doc_id = await self.dispatcher.submit(Category.EVENTS, {"title": "t", "content": "c", "date": "2026-12-24"})
        self.assertEqual(self._stored(Category.EVENTS)[doc_id]["date"], "2026-12-24")

    async def test_author_follows_admin_flag_not_draft(self) -> None:
        admin_id = await self.dispatcher.submit(Category.FEEDBACK, {"title": "a", "content": "b", "author": "Mallory"})
        self.session.set_admin(False)
        anon_id = await self.dispatcher.submit(Category.FEEDBACK, {"title": "a", "content": "b", "author": "Admin"})

        stored = self._stored(Category.FEEDBACK)
        self.assertEqual(stored[admin_id]["author"], "Admin")
        self.assertEqual(stored[anon_id]["author"], "Anonymous")

    async def test_edit_merges_fields(self) -> None:
        doc_id = await self.dispatcher.submit(Category.ANNOUNCEMENTS, {"title": "old", "content": "keep me"})
        returned = await self.dispatcher.submit(Category.ANNOUNCEMENTS, {"title": "new"}, editing_id=doc_id)

        self.assertEqual(returned, doc_id)
        stored = self._stored(Category.ANNOUNCEMENTS)
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[doc_id]["title"], "new")
        self.assertEqual(stored[doc_id]["content"], "keep me")

    async def test_draft_id_is_not_written(self) -> None:
        doc_id = await self.dispatcher.submit(Category.EVENTS, {"id": "x", "title": "t", "content": "c"})
        self.assertNotIn("id", self._stored(Category.EVENTS)[doc_id])

    async def test_unknown_category_is_a_no_op(self) -> None:
        self.assertIsNone(await self.dispatcher.submit("polls", {"title": "t", "content": "c"}))
        self.assertFalse(await self.dispatcher.delete("polls", "abc"))
        self.assertEqual(self.documents.listener_count(), 0)
        for category in Category:
            self.assertEqual(self._stored(category), {})

    async def test_write_without_user_is_rejected(self) -> None:
        session = await started_session(anonymous=False)
        self.assertIsNone(session.user_id)
        dispatcher = CrudDispatcher(self.documents, session, APP, clock=fixed_clock)

        with self.assertRaises(NotAuthenticatedError):
            await dispatcher.submit(Category.ANNOUNCEMENTS, {"title": "t", "content": "c"})
        with self.assertRaises(NotAuthenticatedError):
            await dispatcher.delete(Category.ANNOUNCEMENTS, "anything")
        self.assertEqual(self._stored(Category.ANNOUNCEMENTS), {})

    async def test_success_resets_form(self) -> None:
        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", "t")
        await self.dispatcher.submit(Category.ANNOUNCEMENTS, self.form.draft)
        self.assertFalse(self.form.visible)
        self.assertEqual(self.form.draft, {})

    async def test_failure_is_raised_and_keeps_form(self) -> None:
        failing = FailingDocumentStore()
        dispatcher = CrudDispatcher(failing, self.session, APP, form=self.form, clock=fixed_clock)
        self.form.start_create(Category.ANNOUNCEMENTS)
        self.form.set_field("title", "t")
        self.form.set_field("content", "c")

        with self.assertRaises(BackendError) as ctx:
            await dispatcher.submit(Category.ANNOUNCEMENTS, self.form.draft)
        self.assertEqual(ctx.exception.status, 403)
        self.assertTrue(self.form.visible)
        self.assertEqual(self.form.draft, {"title": "t", "content": "c"})

        with self.assertRaises(BackendError):
            await dispatcher.delete(Category.ANNOUNCEMENTS, "abc")
        self.assertEqual(failing.attempts, 2)

    async def test_delete_removes_document(self) -> None:
        doc_id = await self.dispatcher.submit(Category.LOST_FOUND, {"title": "t", "content": "c"})
        self.assertTrue(await self.dispatcher.delete(Category.LOST_FOUND, doc_id))
        self.assertEqual(self._stored(Category.LOST_FOUND), {})


if __name__ == "__main__":
    unittest.main()

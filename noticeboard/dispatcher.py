"""
CRUD dispatcher.

Translates a submitted draft or a delete request into one write against the
category's collection. The dispatcher never touches the realtime store:
the result comes back through the store's subscription.

Writes stamp three fields on a copy of the draft:
    date      -> draft value, or today's date (UTC) if missing
    author    -> "Admin" when admin mode is on, else "Anonymous"
    createdAt -> the submission time
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from noticeboard.backend import DocumentStore
from noticeboard.errors import BackendError, NoticeboardError, NotAuthenticatedError
from noticeboard.forms import EntryFormController
from noticeboard.model import AUTHOR_ADMIN, AUTHOR_ANONYMOUS, Category, collection_path
from noticeboard.session import Session

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrudDispatcher:
    def __init__(
        self,
        documents: DocumentStore,
        session: Session,
        app_id: str,
        form: Optional[EntryFormController] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._documents = documents
        self._session = session
        self._app_id = app_id
        self._form = form
        self._clock = clock

    def stamp(self, draft: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of `draft` with date, author and createdAt filled in."""
        now = self._clock()
        fields = {k: v for k, v in draft.items() if k != "id"}
        date = fields.get("date")
        if date is None or (isinstance(date, str) and not date.strip()):
            fields["date"] = now.date().isoformat()
        fields["author"] = AUTHOR_ADMIN if self._session.is_admin else AUTHOR_ANONYMOUS
        fields["createdAt"] = now
        return fields

    def _require_user(self, action: str) -> None:
        if not self._session.is_authenticated:
            logger.error("Cannot %s: store not ready or user not authenticated.", action)
            raise NotAuthenticatedError(f"cannot {action} without a signed-in user")

    async def submit(
        self, category: Any, draft: dict[str, Any], editing_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Create a new entry, or merge `draft` into `editing_id` if given.

        Returns the id of the written document, or None if `category` is not
        a known category (nothing is written then).
        """
        cat = Category.parse(category)
        if cat is None:
            logger.warning("Ignoring submit for unknown category %r", category)
            return None

        self._require_user("submit")
        path = collection_path(self._app_id, cat)
        fields = self.stamp(draft)

        try:
            if editing_id:
                await self._documents.merge_document(path, editing_id, fields)
                logger.info("Document updated with ID: %s", editing_id)
                doc_id = editing_id
            else:
                doc_id = await self._documents.create_document(path, fields)
                logger.info("Document written with ID: %s", doc_id)
        except NoticeboardError as e:
            logger.error("Error adding/updating document in %s: %s", cat.value, e)
            if isinstance(e, BackendError):
                raise
            raise BackendError(str(e)) from e

        if self._form is not None:
            self._form.reset()
        return doc_id

    async def delete(self, category: Any, entry_id: str) -> bool:
        """
        Delete `entry_id` from the category's collection.

        Returns False if `category` is not a known category.
        """
        cat = Category.parse(category)
        if cat is None:
            logger.warning("Ignoring delete for unknown category %r", category)
            return False

        self._require_user("delete")
        path = collection_path(self._app_id, cat)
        try:
            await self._documents.delete_document(path, entry_id)
        except NoticeboardError as e:
            logger.error("Error deleting document %s from %s: %s", entry_id, cat.value, e)
            if isinstance(e, BackendError):
                raise
            raise BackendError(str(e)) from e

        logger.info("Document with ID %s deleted successfully.", entry_id)
        return True

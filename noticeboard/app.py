"""
Application wiring.

NoticeboardApp builds every component around one identity provider and one
document store, and owns their lifecycle:

    async with NoticeboardApp.from_settings(settings) as board:
        ...

start() signs in and opens the category subscriptions; close() releases
the subscriptions and the backend clients. There are no module-level
clients: everything hangs off the app instance.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from noticeboard.backend import DocumentStore, IdentityProvider, LocalIdentityProvider, MemoryDocumentStore
from noticeboard.config import BACKEND_FIREBASE, BACKEND_LOCAL, DEFAULT_APP_ID, Settings
from noticeboard.dispatcher import CrudDispatcher, utcnow
from noticeboard.errors import ConfigurationError, NoticeboardError, ValidationError
from noticeboard.firebase import FirebaseIdentityProvider, FirestoreRestStore
from noticeboard.forms import EntryFormController
from noticeboard.model import Category, Entry
from noticeboard.router import ViewRouter
from noticeboard.session import Session
from noticeboard.store import EntryList, RealtimeCategoryStore

logger = logging.getLogger(__name__)


def build_backend(settings: Settings) -> tuple[IdentityProvider, DocumentStore]:
    """
    Construct the identity provider and document store named by `settings`.

    Raises ConfigurationError when no backend is configured.
    """
    backend = settings.backend
    if backend == BACKEND_FIREBASE:
        if not settings.api_key:
            raise ConfigurationError("Firebase config has a projectId but no apiKey")
        identity = FirebaseIdentityProvider(settings.api_key)
        documents = FirestoreRestStore(
            settings.project_id or "",
            token_source=identity.id_token,
            poll_interval=settings.poll_interval,
        )
        return identity, documents
    if backend == BACKEND_LOCAL:
        return LocalIdentityProvider(), MemoryDocumentStore(settings.local_path)
    raise ConfigurationError(
        "No backend configured: set NOTICEBOARD_FIREBASE_CONFIG (with a projectId) or use --local."
    )


class NoticeboardApp:
    def __init__(
        self,
        identity: IdentityProvider,
        documents: DocumentStore,
        app_id: str = DEFAULT_APP_ID,
        token: Optional[str] = None,
        allow_anonymous: bool = True,
        admin: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.identity = identity
        self.documents = documents
        self.app_id = app_id

        self.session = Session(identity, token=token, allow_anonymous=allow_anonymous)
        self.session.set_admin(admin)
        self.form = EntryFormController()
        self.router = ViewRouter(self.form)
        self.store = RealtimeCategoryStore(documents, self.session, app_id)
        self.dispatcher = CrudDispatcher(documents, self.session, app_id, form=self.form, clock=clock)

        # message of the last failed submit/delete, for the UI
        self.last_error: Optional[str] = None
        self._started = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "NoticeboardApp":
        identity, documents = build_backend(settings)
        return cls(
            identity,
            documents,
            app_id=settings.app_id,
            token=settings.auth_token,
            allow_anonymous=settings.allow_anonymous,
            admin=settings.admin,
        )

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await self.session.start()
        self.store.start()

    async def close(self) -> None:
        self.store.stop()
        await self.session.close()
        await self.documents.close()
        await self.identity.close()
        self._started = False

    async def __aenter__(self) -> "NoticeboardApp":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- UI actions ----------------------------------------------------------

    def current_entries(self) -> EntryList:
        return self.store.entries(self.router.active_category)

    async def submit_form(self) -> Optional[str]:
        """
        Validate and submit the open form.

        On success the form is reset and the document id is returned. On
        failure the draft is kept, `last_error` is set and None is returned.
        """
        self.last_error = None
        try:
            submission = self.form.build_submission()
            return await self.dispatcher.submit(submission.category, submission.fields, submission.editing_id)
        except ValidationError as e:
            self.last_error = str(e)
        except NoticeboardError as e:
            self.last_error = f"Could not save: {e}"
        return None

    async def delete_entry(self, entry: Entry, category: Optional[Category] = None) -> bool:
        self.last_error = None
        if not entry.id:
            self.last_error = "Entry has no id"
            return False
        try:
            return await self.dispatcher.delete(category or self.router.active_category, entry.id)
        except NoticeboardError as e:
            self.last_error = f"Could not delete: {e}"
            return False

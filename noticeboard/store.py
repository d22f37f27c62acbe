"""
Realtime category store.

Holds one live subscription per category and an in-memory list of entries
that mirrors the backend collection. The list is never edited locally:
every snapshot replaces it wholesale, and writes only show up once the
backend delivers the next snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from noticeboard.backend import Document, DocumentStore, Unsubscribe
from noticeboard.model import DEFAULT_CATEGORY, Category, Entry, collection_path
from noticeboard.session import Session

logger = logging.getLogger(__name__)

# None means "store state changed" (loading flag, subscriptions)
ChangeListener = Callable[[Optional[Category]], None]

EntryList = tuple[Entry, ...]


def _sort_key(entry: Entry) -> tuple[bool, float, str]:
    ts = entry.created_at
    if ts is None:
        return (True, 0.0, entry.id or "")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    # newest first
    return (False, -ts.timestamp(), entry.id or "")


def entries_from_snapshot(docs: list[Document]) -> EntryList:
    entries = [Entry.from_document(d.id, d.fields) for d in docs]
    entries.sort(key=_sort_key)
    return tuple(entries)


class RealtimeCategoryStore:
    def __init__(
        self,
        documents: DocumentStore,
        session: Session,
        app_id: str,
        default_category: Category = DEFAULT_CATEGORY,
    ) -> None:
        self._documents = documents
        self._session = session
        self._app_id = app_id
        self._default_category = default_category

        self._entries: dict[Category, EntryList] = {c: () for c in Category}
        self._updated_at: dict[Category, Optional[datetime]] = {c: None for c in Category}
        self._failed: set[Category] = set()
        self._subscriptions: dict[Category, Unsubscribe] = {}
        self._subscribed_uid: Optional[str] = None
        self._generation = 0
        self._loading = True
        self._listeners: list[ChangeListener] = []
        self._unsubscribe_session: Optional[Unsubscribe] = None

    # -- state ---------------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def subscribed(self) -> tuple[Category, ...]:
        return tuple(self._subscriptions)

    def entries(self, category: Category) -> EntryList:
        return self._entries[category]

    def get(self, category: Category, entry_id: str) -> Optional[Entry]:
        for entry in self._entries[category]:
            if entry.id == entry_id:
                return entry
        return None

    def failed(self, category: Category) -> bool:
        return category in self._failed

    def updated_at(self, category: Category) -> Optional[datetime]:
        return self._updated_at[category]

    def on_change(self, callback: ChangeListener) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, category: Optional[Category]) -> None:
        for cb in list(self._listeners):
            cb(category)

    def _set_loading(self, flag: bool) -> None:
        if flag == self._loading:
            return
        self._loading = flag
        self._notify(None)

    # -- subscriptions -------------------------------------------------------

    def start(self) -> None:
        """
        Follow the session and keep one subscription per category.

        Nothing is subscribed until the session is ready and has a user id;
        a change of user id re-subscribes everything.
        """
        if self._unsubscribe_session is None:
            self._unsubscribe_session = self._session.on_change(lambda _session: self._sync())
        self._sync()

    def stop(self) -> None:
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None
        self._teardown()

    def _teardown(self) -> None:
        self._generation += 1
        for category, unsubscribe in list(self._subscriptions.items()):
            unsubscribe()
            logger.debug("unsubscribed %s", category.value)
        self._subscriptions.clear()
        self._subscribed_uid = None

    def _sync(self) -> None:
        if not self._session.ready:
            return

        uid = self._session.user_id
        # failed categories stay down until the user changes
        if uid is not None and uid == self._subscribed_uid:
            return

        self._teardown()
        if uid is None:
            # nothing will ever arrive; do not leave the UI spinning
            self._set_loading(False)
            return

        self._failed.clear()
        self._set_loading(True)
        generation = self._generation
        for category in Category:
            path = collection_path(self._app_id, category)
            self._subscriptions[category] = self._documents.subscribe(
                path,
                self._snapshot_handler(category, generation),
                self._error_handler(category, generation),
            )
            logger.debug("subscribed %s at %s", category.value, path)
        self._subscribed_uid = uid
        self._notify(None)

    def _snapshot_handler(self, category: Category, generation: int) -> Callable[[list[Document]], None]:
        def on_snapshot(docs: list[Document]) -> None:
            if generation != self._generation:
                return
            self._entries[category] = entries_from_snapshot(docs)
            self._updated_at[category] = datetime.now(timezone.utc)
            logger.debug("snapshot %s: %d entries", category.value, len(docs))
            if category == self._default_category:
                self._set_loading(False)
            self._notify(category)

        return on_snapshot

    def _error_handler(self, category: Category, generation: int) -> Callable[[Exception], None]:
        def on_error(error: Exception) -> None:
            if generation != self._generation:
                return
            logger.error("Error fetching %s: %s", category.value, error)
            self._failed.add(category)
            self._subscriptions.pop(category, None)
            if category == self._default_category:
                self._set_loading(False)
            self._notify(category)

        return on_error

    # -- waiting -------------------------------------------------------------

    async def wait_loaded(self, timeout: Optional[float] = None) -> None:
        """Wait until the initial load of the default category resolved."""
        if not self._loading:
            return
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()

        def check(_category: Optional[Category]) -> None:
            if not self._loading and not fut.done():
                fut.set_result(None)

        unsubscribe = self.on_change(check)
        try:
            await asyncio.wait_for(fut, timeout)
        finally:
            unsubscribe()

    async def wait_for(
        self,
        category: Category,
        predicate: Callable[[EntryList], bool],
        timeout: Optional[float] = None,
    ) -> EntryList:
        """Wait until the entries of `category` satisfy `predicate`."""
        current = self._entries[category]
        if predicate(current):
            return current

        loop = asyncio.get_running_loop()
        fut: asyncio.Future[EntryList] = loop.create_future()

        def check(changed: Optional[Category]) -> None:
            if changed == category and not fut.done() and predicate(self._entries[category]):
                fut.set_result(self._entries[category])

        unsubscribe = self.on_change(check)
        try:
            return await asyncio.wait_for(fut, timeout)
        finally:
            unsubscribe()

    async def next_snapshot(self, category: Category, timeout: Optional[float] = None) -> EntryList:
        """Wait for the next snapshot (or error) delivered for `category`."""
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[EntryList] = loop.create_future()

        def check(changed: Optional[Category]) -> None:
            if changed == category and not fut.done():
                fut.set_result(self._entries[category])

        unsubscribe = self.on_change(check)
        try:
            return await asyncio.wait_for(fut, timeout)
        finally:
            unsubscribe()

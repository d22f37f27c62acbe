"""
Backend interfaces and the local (in-process) implementation.

Two collaborators sit behind the noticeboard components:

- an IdentityProvider that signs the user in and reports identity changes
- a DocumentStore that exposes live collection subscriptions and
  create / merge / delete writes

The local implementations below keep everything in memory (optionally
persisted to a JSON file through noticeboard.storage) and deliver snapshots
on the running asyncio loop, exactly like a remote store would: a write
never touches a subscriber's list directly, it schedules a fresh snapshot.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import logging
import secrets
import string
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from noticeboard import storage
from noticeboard.errors import AuthenticationError, BackendError

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list["Document"]], None]
ErrorCallback = Callable[[Exception], None]
IdentityCallback = Callable[[Optional[str]], None]
Unsubscribe = Callable[[], None]

_ID_ALPHABET = string.ascii_letters + string.digits


@dataclass
class Document:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)


def generate_document_id(length: int = 20) -> str:
    """Random alphanumeric id, same shape as Firestore auto-ids."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class IdentityProvider:
    """
    Base class for identity providers.

    Subclasses implement the two sign-in coroutines and call _set_user()
    when the signed-in identity changes.
    """

    def __init__(self) -> None:
        self._user_id: Optional[str] = None
        self._identity_listeners: list[IdentityCallback] = []

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id

    async def sign_in_with_token(self, token: str) -> str:
        raise NotImplementedError

    async def sign_in_anonymously(self) -> str:
        raise NotImplementedError

    async def sign_out(self) -> None:
        self._set_user(None)

    async def close(self) -> None:
        self._identity_listeners.clear()

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        self._identity_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._identity_listeners:
                self._identity_listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user_id: Optional[str]) -> None:
        if user_id == self._user_id:
            return
        self._user_id = user_id
        for cb in list(self._identity_listeners):
            cb(user_id)


class DocumentStore:
    """Live collections addressed by slash-separated paths."""

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        raise NotImplementedError

    async def create_document(self, path: str, fields: dict[str, Any]) -> str:
        raise NotImplementedError

    async def merge_document(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        raise NotImplementedError

    async def delete_document(self, path: str, doc_id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Local implementation
# ---------------------------------------------------------------------------


class LocalIdentityProvider(IdentityProvider):
    """
    Identity provider that never leaves the process.

    A token signs in as a stable id derived from the token; anonymous
    sign-in gets a fresh random id.
    """

    async def sign_in_with_token(self, token: str) -> str:
        token = (token or "").strip()
        if not token:
            raise AuthenticationError("empty sign-in token")
        uid = "local-" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        self._set_user(uid)
        return uid

    async def sign_in_anonymously(self) -> str:
        uid = "anon-" + uuid.uuid4().hex[:16]
        self._set_user(uid)
        return uid


class _Listener:
    def __init__(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        self.path = path
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True


class MemoryDocumentStore(DocumentStore):
    """
    In-process realtime document store.

    If `path` is given, every write is saved to that JSON file and the
    store is seeded from it on construction.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._collections: dict[str, dict[str, dict[str, Any]]] = (
            storage.load_collections(self._path) if self._path is not None else {}
        )
        self._listeners: dict[str, list[_Listener]] = defaultdict(list)

    # -- reads ---------------------------------------------------------------

    def snapshot(self, path: str) -> list[Document]:
        docs = self._collections.get(path, {})
        return [Document(id=doc_id, fields=copy.deepcopy(data)) for doc_id, data in docs.items()]

    def listener_count(self, path: Optional[str] = None) -> int:
        if path is not None:
            return len(self._listeners.get(path, []))
        return sum(len(lst) for lst in self._listeners.values())

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        listener = _Listener(path, on_snapshot, on_error)
        self._listeners[path].append(listener)
        loop.call_soon(self._deliver, listener)

        def unsubscribe() -> None:
            listener.active = False
            listeners = self._listeners.get(path, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(path, None)

        return unsubscribe

    def _deliver(self, listener: _Listener) -> None:
        if not listener.active:
            return
        listener.on_snapshot(self.snapshot(listener.path))

    def _notify(self, path: str) -> None:
        listeners = list(self._listeners.get(path, []))
        if not listeners:
            return
        loop = asyncio.get_running_loop()
        for listener in listeners:
            loop.call_soon(self._deliver, listener)

    def fail_subscription(self, path: str, error: Exception) -> None:
        """
        Terminate every listener of `path` with `error`.

        Mirrors a remote listener being cut off (e.g. permission revoked).
        """
        for listener in list(self._listeners.pop(path, [])):
            listener.active = False
            listener.on_error(error)

    # -- writes --------------------------------------------------------------

    def _commit(self, collections: dict[str, dict[str, dict[str, Any]]], path: str) -> None:
        if self._path is not None:
            try:
                storage.save_collections(collections, self._path)
            except OSError as e:
                raise BackendError(f"could not save {self._path}: {e}") from e
        self._collections = collections
        self._notify(path)

    def _staged(self) -> dict[str, dict[str, dict[str, Any]]]:
        return {p: dict(docs) for p, docs in self._collections.items()}

    async def create_document(self, path: str, fields: dict[str, Any]) -> str:
        staged = self._staged()
        docs = staged.setdefault(path, {})
        doc_id = generate_document_id()
        while doc_id in docs:
            doc_id = generate_document_id()
        docs[doc_id] = copy.deepcopy(fields)
        self._commit(staged, path)
        logger.debug("created %s/%s", path, doc_id)
        return doc_id

    async def merge_document(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        staged = self._staged()
        docs = staged.setdefault(path, {})
        merged = copy.deepcopy(docs.get(doc_id, {}))
        merged.update(copy.deepcopy(fields))
        docs[doc_id] = merged
        self._commit(staged, path)
        logger.debug("merged %s/%s (%s)", path, doc_id, ", ".join(sorted(fields)))

    async def delete_document(self, path: str, doc_id: str) -> None:
        staged = self._staged()
        docs = staged.get(path, {})
        if doc_id not in docs:
            return
        del docs[doc_id]
        self._commit(staged, path)
        logger.debug("deleted %s/%s", path, doc_id)

    async def close(self) -> None:
        for listeners in self._listeners.values():
            for listener in listeners:
                listener.active = False
        self._listeners.clear()

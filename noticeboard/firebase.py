"""
Firebase backend over the public REST APIs.

- Identity Toolkit: custom-token and anonymous sign-in, ID-token refresh
- Firestore v1: list / create / merge (PATCH with an update mask) / delete

Firestore's REST surface has no push listener, so a subscription polls its
collection and delivers a full snapshot whenever the contents changed
(the first fetch always delivers). All HTTP calls are blocking `requests`
calls pushed to a worker thread; callbacks always run on the event loop.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import requests

from noticeboard.backend import (
    Document,
    DocumentStore,
    ErrorCallback,
    IdentityProvider,
    SnapshotCallback,
    Unsubscribe,
)
from noticeboard.errors import AuthenticationError, BackendError

logger = logging.getLogger(__name__)

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1"
SECURETOKEN_URL = "https://securetoken.googleapis.com/v1/token"
FIRESTORE_URL = "https://firestore.googleapis.com/v1"

DEFAULT_TIMEOUT = 30
PAGE_SIZE = 300

# refresh the ID token this many seconds before it expires
_EXPIRY_MARGIN = 60

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")
_FRACTION = re.compile(r"\.(\d+)")


# ---------------------------------------------------------------------------
# Firestore value codec
# ---------------------------------------------------------------------------


def encode_value(value: Any) -> dict[str, Any]:
    """Convert a Python value into a Firestore REST `Value` object."""
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Unsupported Firestore value: {value!r}")


def encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {str(k): encode_value(v) for k, v in fields.items()}


def _parse_timestamp(text: str) -> datetime:
    # Firestore sends up to nanosecond precision; datetime keeps microseconds
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def decode_value(value: dict[str, Any]) -> Any:
    """Convert a Firestore REST `Value` object into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "bytesValue" in value:
        return value["bytesValue"]
    raise ValueError(f"Unknown Firestore value: {value!r}")


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


def _field_path(name: str) -> str:
    if _SIMPLE_FIELD.match(name):
        return name
    return "`" + name.replace("\\", "\\\\").replace("`", "\\`") + "`"


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or f"HTTP {resp.status_code}")
    if isinstance(err, str):
        return err
    return f"HTTP {resp.status_code}"


def _uid_from_id_token(id_token: str) -> Optional[str]:
    """Read the user id claim from an ID token payload (no signature check)."""
    parts = id_token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeDecodeError):
        return None
    uid = claims.get("user_id") or claims.get("sub")
    return str(uid) if uid else None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class FirebaseIdentityProvider(IdentityProvider):
    """Signs in through the Identity Toolkit REST API and keeps the ID token fresh."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._id_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at = 0.0

    def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._session.post(url, params={"key": self._api_key}, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise AuthenticationError(f"identity request failed: {e}") from e
        if resp.status_code >= 400:
            raise AuthenticationError(_error_message(resp))
        try:
            return resp.json()
        except ValueError as e:
            raise AuthenticationError(f"identity response is not JSON: {e}") from e

    def _store_tokens(self, id_token: str, refresh_token: Optional[str], expires_in: Any) -> None:
        try:
            ttl = float(expires_in)
        except (TypeError, ValueError):
            ttl = 3600.0
        with self._lock:
            self._id_token = id_token
            if refresh_token:
                self._refresh_token = refresh_token
            self._expires_at = self._clock() + ttl

    def _sign_in_with_token(self, token: str) -> str:
        data = self._post(
            f"{IDENTITY_URL}/accounts:signInWithCustomToken",
            json={"token": token, "returnSecureToken": True},
        )
        id_token = data.get("idToken")
        if not id_token:
            raise AuthenticationError("sign-in response carried no idToken")
        uid = data.get("localId") or _uid_from_id_token(id_token)
        if not uid:
            raise AuthenticationError("could not determine user id from sign-in response")
        self._store_tokens(id_token, data.get("refreshToken"), data.get("expiresIn"))
        return uid

    def _sign_in_anonymously(self) -> str:
        data = self._post(f"{IDENTITY_URL}/accounts:signUp", json={"returnSecureToken": True})
        id_token = data.get("idToken")
        uid = data.get("localId")
        if not id_token or not uid:
            raise AuthenticationError("anonymous sign-up response is incomplete")
        self._store_tokens(id_token, data.get("refreshToken"), data.get("expiresIn"))
        return uid

    async def sign_in_with_token(self, token: str) -> str:
        uid = await asyncio.to_thread(self._sign_in_with_token, token)
        self._set_user(uid)
        return uid

    async def sign_in_anonymously(self) -> str:
        uid = await asyncio.to_thread(self._sign_in_anonymously)
        self._set_user(uid)
        return uid

    async def sign_out(self) -> None:
        with self._lock:
            self._id_token = None
            self._refresh_token = None
            self._expires_at = 0.0
        self._set_user(None)

    async def close(self) -> None:
        await super().close()
        self._session.close()

    def id_token(self) -> Optional[str]:
        """
        Return a valid ID token, refreshing it when close to expiry.

        Blocking; called from worker threads by the document store.
        Returns None when nobody is signed in.
        """
        with self._lock:
            if self._id_token is None:
                return None
            if self._clock() < self._expires_at - _EXPIRY_MARGIN or not self._refresh_token:
                return self._id_token
            refresh_token = self._refresh_token

        try:
            resp = self._session.post(
                SECURETOKEN_URL,
                params={"key": self._api_key},
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"token refresh failed: {e}") from e
        if resp.status_code >= 400:
            raise AuthenticationError(_error_message(resp))

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthenticationError(f"token refresh response is not JSON: {e}") from e
        id_token = data.get("id_token") if isinstance(data, dict) else None
        if not id_token:
            raise AuthenticationError("token refresh response carried no id_token")
        self._store_tokens(id_token, data.get("refresh_token"), data.get("expires_in"))
        logger.debug("refreshed ID token")
        with self._lock:
            return self._id_token


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class FirestoreRestStore(DocumentStore):
    """Firestore collections over REST, with polling subscriptions."""

    def __init__(
        self,
        project_id: str,
        token_source: Callable[[], Optional[str]] = lambda: None,
        database: str = "(default)",
        poll_interval: float = 2.0,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._project_id = project_id
        self._database = database
        self._token_source = token_source
        self._poll_interval = poll_interval
        self._session = session or requests.Session()
        self._timeout = timeout
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def base_url(self) -> str:
        return f"{FIRESTORE_URL}/projects/{self._project_id}/databases/{self._database}/documents"

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}"

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        headers = {}
        try:
            token = self._token_source()
        except AuthenticationError as e:
            raise BackendError(str(e)) from e
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = self._session.request(method, url, headers=headers, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"{method} {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise BackendError(_error_message(resp), status=resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"{method} {url}: response is not JSON", status=resp.status_code) from e

    # -- blocking primitives -------------------------------------------------

    def list_raw(self, path: str) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            params: dict[str, Any] = {"pageSize": PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            data = self._request("GET", self._url(path), params=params)
            out.extend(data.get("documents", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return out

    def list_documents(self, path: str) -> list[Document]:
        return [_to_document(raw) for raw in self.list_raw(path)]

    def _create(self, path: str, fields: dict[str, Any]) -> str:
        data = self._request("POST", self._url(path), json={"fields": encode_fields(fields)})
        name = data.get("name", "")
        if not name:
            raise BackendError("create response carried no document name")
        return name.rsplit("/", 1)[-1]

    def _merge(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        params = [("updateMask.fieldPaths", _field_path(k)) for k in fields]
        self._request("PATCH", self._url(f"{path}/{doc_id}"), params=params, json={"fields": encode_fields(fields)})

    def _delete(self, path: str, doc_id: str) -> None:
        self._request("DELETE", self._url(f"{path}/{doc_id}"))

    # -- DocumentStore -------------------------------------------------------

    async def create_document(self, path: str, fields: dict[str, Any]) -> str:
        return await asyncio.to_thread(self._create, path, fields)

    async def merge_document(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        await asyncio.to_thread(self._merge, path, doc_id, fields)

    async def delete_document(self, path: str, doc_id: str) -> None:
        await asyncio.to_thread(self._delete, path, doc_id)

    def subscribe(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._poll(path, on_snapshot, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _poll(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        last: Optional[list[tuple[str, str]]] = None
        while True:
            try:
                raw = await asyncio.to_thread(self.list_raw, path)
                fingerprint = [(d.get("name", ""), d.get("updateTime", "")) for d in raw]
                docs = [_to_document(d) for d in raw] if fingerprint != last else None
            except (BackendError, ValueError) as e:
                # a failed listener stays down, like a remote listener that was cut off
                on_error(e)
                return
            except Exception as e:
                logger.exception("Unexpected error polling %s", path)
                on_error(BackendError(f"polling {path} failed: {e!r}"))
                return
            if docs is not None:
                last = fingerprint
                on_snapshot(docs)
            await asyncio.sleep(self._poll_interval)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._session.close()


def _to_document(raw: dict[str, Any]) -> Document:
    doc_id = str(raw.get("name", "")).rsplit("/", 1)[-1]
    return Document(id=doc_id, fields=decode_fields(raw.get("fields", {})))

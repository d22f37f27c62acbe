"""
Session initialisation.

The session signs in once at startup (custom token if one was provided,
anonymous otherwise) and then mirrors whatever the identity provider
reports. A failed sign-in is logged and the session still becomes ready,
just without a user id; writes are then refused by the dispatcher.

The admin flag lives here too. It is a local UI toggle only: nothing on the
backend checks it.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from noticeboard.backend import IdentityProvider, Unsubscribe
from noticeboard.errors import NoticeboardError

logger = logging.getLogger(__name__)

SessionListener = Callable[["Session"], None]


class Session:
    def __init__(self, identity: IdentityProvider, token: Optional[str] = None, allow_anonymous: bool = True) -> None:
        self._identity = identity
        self._token = (token or "").strip() or None
        self._allow_anonymous = allow_anonymous
        self._user_id: Optional[str] = None
        self._ready = False
        self._admin = False
        self._listeners: list[SessionListener] = []
        self._unsubscribe_identity: Optional[Unsubscribe] = None

    # -- state ---------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    @property
    def is_admin(self) -> bool:
        return self._admin

    def set_admin(self, flag: bool) -> None:
        if bool(flag) == self._admin:
            return
        self._admin = bool(flag)
        self._notify()

    def toggle_admin(self) -> bool:
        self.set_admin(not self._admin)
        return self._admin

    def on_change(self, callback: SessionListener) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb(self)

    # -- lifecycle -----------------------------------------------------------

    def _on_identity(self, user_id: Optional[str]) -> None:
        if user_id == self._user_id:
            return
        logger.info("identity changed: %s", user_id or "(signed out)")
        self._user_id = user_id
        # identity changes before sign-in finished are reported by start()
        if self._ready:
            self._notify()

    async def start(self) -> None:
        """
        Sign in and mark the session ready.

        Never raises for sign-in problems: they are logged and the session
        proceeds unauthenticated.
        """
        if self._unsubscribe_identity is None:
            self._unsubscribe_identity = self._identity.on_identity_change(self._on_identity)
        self._user_id = self._identity.current_user_id

        try:
            if self._token:
                await self._identity.sign_in_with_token(self._token)
            elif self._allow_anonymous and self._user_id is None:
                await self._identity.sign_in_anonymously()
        except NoticeboardError as e:
            logger.error("Sign-in failed, continuing unauthenticated: %s", e)

        self._ready = True
        if self._user_id is None:
            logger.warning("Session ready without a user id; writes will be rejected.")
        self._notify()

    async def close(self) -> None:
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        self._listeners.clear()

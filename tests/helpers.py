"""
Shared fixtures for the async tests: a fixed clock, a started session on
the local identity provider, and stores that fail on purpose.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from noticeboard.backend import LocalIdentityProvider, MemoryDocumentStore
from noticeboard.errors import BackendError
from noticeboard.session import Session

FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
TODAY = "2026-10-19"


def fixed_clock() -> datetime:
    return FIXED_NOW


async def started_session(admin: bool = False, anonymous: bool = True) -> Session:
    session = Session(LocalIdentityProvider(), allow_anonymous=anonymous)
    session.set_admin(admin)
    await session.start()
    return session


async def settle(rounds: int = 3) -> None:
    """Let call_soon callbacks (snapshot deliveries) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FailingDocumentStore(MemoryDocumentStore):
    """Accepts subscriptions but rejects every write."""

    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    async def create_document(self, path: str, fields: dict[str, Any]) -> str:
        self.attempts += 1
        raise BackendError("permission denied", status=403)

    async def merge_document(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.attempts += 1
        raise BackendError("permission denied", status=403)

    async def delete_document(self, path: str, doc_id: str) -> None:
        self.attempts += 1
        raise BackendError("permission denied", status=403)

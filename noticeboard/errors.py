"""
Exception types shared by all noticeboard components.

Every error raised on purpose by the package derives from NoticeboardError,
so front ends can catch one base class and keep running.
"""

from __future__ import annotations

from typing import Optional


class NoticeboardError(Exception):
    """Base class for all noticeboard errors."""


class ConfigurationError(NoticeboardError):
    """No usable backend configuration (missing or malformed)."""


class AuthenticationError(NoticeboardError):
    """The identity provider rejected a sign-in or token refresh."""


class NotAuthenticatedError(NoticeboardError):
    """A write was attempted before the session had a user id."""


class ValidationError(NoticeboardError):
    """
    A draft is not ready to be submitted.

    `problems` holds one human-readable message per offending field.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid draft")


class BackendError(NoticeboardError):
    """The document store failed a read or write."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        self.status = status
        super().__init__(message)

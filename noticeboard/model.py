"""
Central data model definitions used across the project.

This module defines:
- the four fixed noticeboard categories
- one descriptor per category (collection sub-path, display metadata, form fields)
- the Entry object that every category's documents are read into

Everything that used to be a "switch on the active section" elsewhere is a
lookup in CATEGORY_SPECS instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


AUTHOR_ADMIN = "Admin"
AUTHOR_ANONYMOUS = "Anonymous"

# Fields the client itself stamps on every write
STAMPED_FIELDS = ("date", "author", "createdAt")


class Category(str, Enum):
    ANNOUNCEMENTS = "announcements"
    EVENTS = "events"
    LOST_FOUND = "lostfound"
    FEEDBACK = "feedback"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """
        Resolve a category from user input.

        Accepts the enum itself, its value, the collection sub-path
        ("lost-found") and a few spellings of lost & found.
        Returns None for anything else.
        """
        if isinstance(value, Category):
            return value
        if value is None:
            return None
        key = str(value).strip().lower().replace("&", "").replace("-", "").replace("_", "").replace(" ", "")
        for cat in cls:
            if key == cat.value:
                return cat
        return None


@dataclass(frozen=True)
class FieldSpec:
    """
    One input of a category form.

    kind is one of: text, textarea, date, time, select, rating.
    """

    name: str
    label: str
    kind: str = "text"
    required: bool = False
    choices: tuple[Any, ...] = ()
    default: Any = None
    placeholder: str = ""


@dataclass(frozen=True)
class CategorySpec:
    category: Category
    sub_path: str
    title: str
    singular: str
    icon: str
    accent: str
    fields: tuple[FieldSpec, ...]

    def field(self, name: str) -> Optional[FieldSpec]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)


CATEGORY_SPECS: dict[Category, CategorySpec] = {
    Category.ANNOUNCEMENTS: CategorySpec(
        category=Category.ANNOUNCEMENTS,
        sub_path="announcements",
        title="Announcements",
        singular="Announcement",
        icon="megaphone",
        accent="blue",
        fields=(
            FieldSpec("title", "Title", required=True),
            FieldSpec("content", "Content", kind="textarea", required=True),
            FieldSpec("priority", "Priority", kind="select", choices=("low", "medium", "high"), default="medium"),
        ),
    ),
    Category.EVENTS: CategorySpec(
        category=Category.EVENTS,
        sub_path="events",
        title="Events",
        singular="Event",
        icon="calendar",
        accent="green",
        fields=(
            FieldSpec("title", "Event Title", required=True),
            FieldSpec("content", "Description", kind="textarea", required=True),
            FieldSpec("date", "Date", kind="date", required=True),
            FieldSpec("time", "Time", kind="time", required=True),
            FieldSpec("location", "Location", required=True),
        ),
    ),
    Category.LOST_FOUND: CategorySpec(
        category=Category.LOST_FOUND,
        sub_path="lost-found",
        title="Lost & Found",
        singular="Item",
        icon="search",
        accent="orange",
        fields=(
            FieldSpec("type", "Type", kind="select", required=True, choices=("lost", "found"), default="lost"),
            FieldSpec("title", "Item Title", required=True),
            FieldSpec("content", "Description", kind="textarea", required=True),
            FieldSpec("contact", "Contact Information", required=True, placeholder="Email or phone number"),
        ),
    ),
    Category.FEEDBACK: CategorySpec(
        category=Category.FEEDBACK,
        sub_path="feedback",
        title="Feedback",
        singular="Feedback",
        icon="message-circle",
        accent="purple",
        fields=(
            FieldSpec("title", "Subject", required=True),
            FieldSpec("content", "Feedback", kind="textarea", required=True),
            FieldSpec("rating", "Rating", kind="rating", choices=(1, 2, 3, 4, 5), default=5),
        ),
    ),
}

DEFAULT_CATEGORY = Category.ANNOUNCEMENTS


def spec_for(category: Category) -> CategorySpec:
    return CATEGORY_SPECS[category]


def collection_path(app_id: str, category: Category) -> str:
    """
    Return the document-store collection path of one category.

    All categories share the public data namespace of one application id.
    """
    return f"artifacts/{app_id}/public/data/{CATEGORY_SPECS[category].sub_path}"


# Entry attributes that map 1:1 onto document fields (createdAt is special-cased)
_ENTRY_FIELDS = ("title", "content", "date", "author", "priority", "time", "location", "type", "contact", "rating")
_TEXT_FIELDS = ("date", "author", "priority", "time", "location", "type", "contact")


@dataclass
class Entry:
    """
    One noticeboard item as read back from a category collection.

    Unknown document fields are kept in `extra` so nothing is lost when
    the entry is loaded into the form and written back.
    """

    id: Optional[str] = None
    title: str = ""
    content: str = ""
    date: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[datetime] = None
    priority: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    type: Optional[str] = None
    contact: Optional[str] = None
    rating: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Entry":
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in _ENTRY_FIELDS:
                known[key] = value
            elif key == "createdAt":
                known["created_at"] = _parse_datetime(value)
            elif key != "id":
                extra[key] = value

        rating = known.get("rating")
        if rating is not None:
            try:
                known["rating"] = int(rating)
            except (TypeError, ValueError):
                known["rating"] = None

        known["title"] = "" if known.get("title") is None else str(known["title"])
        known["content"] = "" if known.get("content") is None else str(known["content"])

        # other writers may store timestamps or numbers in text fields
        date = known.get("date")
        if isinstance(date, datetime):
            known["date"] = date.date().isoformat()
        for key in _TEXT_FIELDS:
            value = known.get(key)
            if value is not None and not isinstance(value, str):
                known[key] = str(value)
        return cls(id=doc_id, extra=extra, **known)

    def to_fields(self) -> dict[str, Any]:
        """
        Return the document fields of this entry (without the id).
        None values are omitted.
        """
        out: dict[str, Any] = dict(self.extra)
        for key in _ENTRY_FIELDS:
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.created_at is not None:
            out["createdAt"] = self.created_at
        return out

    def to_draft(self) -> dict[str, Any]:
        draft = self.to_fields()
        if self.id is not None:
            draft["id"] = self.id
        return draft


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Accept datetime objects and ISO-format strings (with or without trailing Z)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None

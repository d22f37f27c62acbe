"""
View router.

Tracks which category is shown and whether the entry form is open, and
derives the purely presentational bits (section title, icon token, accent
colour, per-entry badge) from the category descriptors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from noticeboard.forms import EntryFormController
from noticeboard.model import DEFAULT_CATEGORY, Category, Entry, spec_for

PRIORITY_COLORS = {"high": "red", "medium": "yellow", "low": "green"}
TYPE_COLORS = {"lost": "red", "found": "green"}
RATING_COLOR = "blue"
NEUTRAL_COLOR = "gray"


@dataclass(frozen=True)
class SectionMeta:
    title: str
    icon: str
    accent: str


@dataclass(frozen=True)
class Badge:
    text: str
    color: str


def section_meta(category: Category) -> SectionMeta:
    spec = spec_for(category)
    return SectionMeta(title=spec.title, icon=spec.icon, accent=spec.accent)


def entry_badge(category: Category, entry: Entry) -> Optional[Badge]:
    """
    Badge shown on an entry card, or None if the category has none
    (or the entry lacks the field).
    """
    if category == Category.ANNOUNCEMENTS and entry.priority:
        return Badge(entry.priority.upper(), PRIORITY_COLORS.get(entry.priority, NEUTRAL_COLOR))
    if category == Category.LOST_FOUND and entry.type:
        return Badge(entry.type.upper(), TYPE_COLORS.get(entry.type, "green"))
    if category == Category.FEEDBACK and entry.rating:
        return Badge(f"{'★' * entry.rating} ({entry.rating}/5)", RATING_COLOR)
    return None


class ViewRouter:
    def __init__(self, form: EntryFormController, default_category: Category = DEFAULT_CATEGORY) -> None:
        self._form = form
        self._active = default_category

    @property
    def active_category(self) -> Category:
        return self._active

    @property
    def form(self) -> EntryFormController:
        return self._form

    @property
    def form_visible(self) -> bool:
        return self._form.visible

    @property
    def editing(self) -> bool:
        return self._form.is_editing

    def select_category(self, category: Category) -> None:
        # an open form belongs to the old category's field shape
        self._active = category
        self._form.cancel()

    def open_create(self) -> None:
        self._form.start_create(self._active)

    def open_edit(self, entry: Entry) -> None:
        self._form.start_edit(self._active, entry)

    def close_form(self) -> None:
        self._form.cancel()

    def toggle_form(self) -> bool:
        """The "Add New" / "Cancel" button: open an empty form or close it."""
        if self._form.visible:
            self._form.cancel()
        else:
            self._form.start_create(self._active)
        return self._form.visible

    # -- presentation --------------------------------------------------------

    def section_meta(self, category: Optional[Category] = None) -> SectionMeta:
        return section_meta(category or self._active)

    def entry_badge(self, entry: Entry, category: Optional[Category] = None) -> Optional[Badge]:
        return entry_badge(category or self._active, entry)

    def empty_message(self) -> str:
        return f"No {spec_for(self._active).title.lower()} posted yet."

    def add_first_label(self) -> str:
        return f"Add First {spec_for(self._active).singular}"

    def form_heading(self) -> str:
        spec = spec_for(self._form.category or self._active)
        name = spec.title if self._form.category == Category.LOST_FOUND else spec.singular
        return f"{'Edit' if self._form.is_editing else 'New'} {name}"

    def submit_label(self) -> str:
        category = self._form.category or self._active
        verb = "Update" if self._form.is_editing else ("Submit" if category == Category.FEEDBACK else "Post")
        return f"{verb} {spec_for(category).singular}"

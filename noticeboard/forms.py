"""
Entry form controller.

Holds the draft of the entry being created or edited. The draft is a plain
dict keyed by field name; nothing is checked while the user types. Before a
submission the draft is normalized against the category's field specs
(strip text, apply defaults, coerce the rating) and validated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from noticeboard.errors import ValidationError
from noticeboard.model import Category, Entry, FieldSpec, spec_for


class FormMode(str, Enum):
    CLOSED = "closed"
    CREATE = "create"
    EDIT = "edit"


@dataclass(frozen=True)
class Submission:
    category: Category
    fields: dict[str, Any]
    editing_id: Optional[str] = None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _valid_date(text: str) -> bool:
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _valid_time(text: str) -> bool:
    parts = text.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return False
    h, m = int(parts[0]), int(parts[1])
    return 0 <= h <= 23 and 0 <= m <= 59


def normalize_field(spec: FieldSpec, value: Any) -> tuple[Any, Optional[str]]:
    """
    Normalize one draft value against its field spec.

    Returns (value, problem). A blank value falls back to the field default;
    a value that is still blank afterwards is reported only if required.
    """
    if _is_blank(value):
        value = spec.default
    if _is_blank(value):
        return None, (f"{spec.label} is required" if spec.required else None)

    if spec.kind == "rating":
        try:
            rating = int(str(value).strip())
        except ValueError:
            return value, f"{spec.label} must be a whole number from {spec.choices[0]} to {spec.choices[-1]}"
        if rating not in spec.choices:
            return rating, f"{spec.label} must be a whole number from {spec.choices[0]} to {spec.choices[-1]}"
        return rating, None

    text = str(value).strip()
    if spec.kind == "select":
        text = text.lower()
        if text not in spec.choices:
            return text, f"{spec.label} must be one of: {', '.join(str(c) for c in spec.choices)}"
    elif spec.kind == "date" and not _valid_date(text):
        return text, f"{spec.label} must be a date (YYYY-MM-DD)"
    elif spec.kind == "time" and not _valid_time(text):
        return text, f"{spec.label} must be a time (HH:MM)"
    return text, None


class EntryFormController:
    def __init__(self) -> None:
        self._mode = FormMode.CLOSED
        self._category: Optional[Category] = None
        self._draft: dict[str, Any] = {}
        self._editing_id: Optional[str] = None

    @property
    def mode(self) -> FormMode:
        return self._mode

    @property
    def visible(self) -> bool:
        return self._mode != FormMode.CLOSED

    @property
    def category(self) -> Optional[Category]:
        return self._category

    @property
    def editing_id(self) -> Optional[str]:
        return self._editing_id

    @property
    def is_editing(self) -> bool:
        return self._mode == FormMode.EDIT

    @property
    def draft(self) -> dict[str, Any]:
        return dict(self._draft)

    def get_field(self, name: str, default: Any = None) -> Any:
        return self._draft.get(name, default)

    def start_create(self, category: Category) -> None:
        self._mode = FormMode.CREATE
        self._category = category
        self._draft = {}
        self._editing_id = None

    def start_edit(self, category: Category, entry: Union[Entry, dict[str, Any]]) -> None:
        draft = entry.to_draft() if isinstance(entry, Entry) else dict(entry)
        entry_id = draft.get("id")
        if not entry_id:
            raise ValueError("cannot edit an entry without an id")
        self._mode = FormMode.EDIT
        self._category = category
        self._draft = draft
        self._editing_id = str(entry_id)

    def set_field(self, name: str, value: Any) -> None:
        self._draft[name] = value

    def cancel(self) -> None:
        self._mode = FormMode.CLOSED
        self._category = None
        self._draft = {}
        self._editing_id = None

    # submission success and cancel end up in the same closed state
    reset = cancel

    def _normalized(self) -> tuple[dict[str, Any], list[str]]:
        if self._category is None:
            return {}, ["No form is open"]

        spec = spec_for(self._category)
        fields: dict[str, Any] = {k: v for k, v in self._draft.items() if k != "id"}
        problems: list[str] = []
        for field_spec in spec.fields:
            value, problem = normalize_field(field_spec, fields.get(field_spec.name))
            if problem:
                problems.append(problem)
            if value is None:
                fields.pop(field_spec.name, None)
            else:
                fields[field_spec.name] = value
        return fields, problems

    def validate(self) -> list[str]:
        """Return one message per problem; empty when the draft can be submitted."""
        return self._normalized()[1]

    def build_submission(self) -> Submission:
        """
        Return the normalized draft ready for the dispatcher.

        Raises ValidationError if required fields are missing or malformed.
        """
        fields, problems = self._normalized()
        if problems:
            raise ValidationError(problems)
        assert self._category is not None
        return Submission(category=self._category, fields=fields, editing_id=self._editing_id)

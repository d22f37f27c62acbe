"""
Persistent storage for the local document store.

This module manages one JSON file holding every collection:

    {
      "collections": {
        "artifacts/<app>/public/data/announcements": {
          "<doc id>": {"title": "...", "createdAt": {"$date": "2026-10-19T08:00:00+00:00"}}
        }
      }
    }

Datetimes are wrapped as {"$date": iso} so they come back as datetimes.
The file lives inside the package by default; tests pass their own path.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

Collections = dict[str, dict[str, dict[str, Any]]]


def default_data_path() -> Path:
    """
    Return the default path of the local noticeboard file inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "noticeboard.json"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    if isinstance(value, dict):
        return {str(k): _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {"$date"} and isinstance(value["$date"], str):
            try:
                return datetime.fromisoformat(value["$date"])
            except ValueError:
                return value["$date"]
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def load_collections(path: str | Path | None = None) -> Collections:
    """
    Load all collections from the noticeboard file.

    Returns an empty mapping if the file does not exist or is invalid,
    so a broken file never keeps the board from starting.
    """
    data_path = Path(path) if path is not None else default_data_path()

    # First run: file does not exist yet -> empty board
    if not data_path.exists():
        return {}

    try:
        raw = json.loads(data_path.read_text(encoding="utf-8"))
        collections = raw.get("collections", {})
        if not isinstance(collections, dict):
            return {}
        out: Collections = {}
        for coll_path, docs in collections.items():
            if not isinstance(docs, dict):
                continue
            out[str(coll_path)] = {
                str(doc_id): _decode(fields) for doc_id, fields in docs.items() if isinstance(fields, dict)
            }
        return out
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return {}


def save_collections(collections: Collections, path: str | Path | None = None) -> None:
    """
    Save all collections to the noticeboard file.

    Creates parent directories if needed. Empty collections are dropped.
    Raises OSError if the file cannot be written.
    """
    data_path = Path(path) if path is not None else default_data_path()
    data_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {"collections": {p: _encode(docs) for p, docs in sorted(collections.items()) if docs}}

    tmp_path = data_path.with_suffix(data_path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp_path.replace(data_path)

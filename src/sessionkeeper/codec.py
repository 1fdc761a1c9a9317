"""
Store codec.

The store is a single JSON object:

    {"<metadata key>": ..., "sessions": [{"id": "123:123", "data": {...}}, ...]}

Every root key other than ``sessions`` is store-level metadata and is carried
through a pass untouched.
"""

import json
from typing import Any, Dict

from pydantic import ValidationError

from sessionkeeper.errors import MalformedStoreError
from sessionkeeper.models import SessionRecord, StoreDocument

SESSIONS_KEY = "sessions"


def decode(raw: bytes) -> StoreDocument:
    """
    Parse raw store bytes.

    Raises:
        MalformedStoreError: If the payload is not a JSON object with a valid
            ``sessions`` list, or if session ids repeat.
    """
    try:
        root = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedStoreError(f"Store is not valid JSON: {e}") from e

    if not isinstance(root, dict):
        raise MalformedStoreError(
            f"Store root must be an object, got {type(root).__name__}"
        )

    entries = root.get(SESSIONS_KEY)
    if not isinstance(entries, list):
        raise MalformedStoreError(f"Store has no '{SESSIONS_KEY}' list")

    sessions = []
    seen = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not isinstance(entry.get("data"), dict):
            raise MalformedStoreError(
                f"Session #{index} must be an object with an object 'data'"
            )
        try:
            record = SessionRecord(id=entry.get("id"), data=entry["data"])
        except ValidationError as e:
            raise MalformedStoreError(
                f"Session #{index} has an invalid id: {entry.get('id')!r}"
            ) from e

        key = (type(record.id).__name__, record.id)
        if key in seen:
            raise MalformedStoreError(f"Duplicate session id: {record.id!r}")
        seen.add(key)
        sessions.append(record)

    metadata = {key: value for key, value in root.items() if key != SESSIONS_KEY}
    return StoreDocument(metadata=metadata, sessions=sessions)


def encode(document: StoreDocument) -> bytes:
    """Serialize a store document as indented UTF-8 JSON."""
    root: Dict[str, Any] = dict(document.metadata)
    root[SESSIONS_KEY] = [
        {"id": record.id, "data": record.data} for record in document.sessions
    ]
    return (json.dumps(root, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def encode_record(data: Dict[str, Any]) -> bytes:
    """Compact canonical encoding of a single record's data."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def record_size(data: Dict[str, Any]) -> int:
    """Size of a record in bytes, measured on its canonical encoding."""
    return len(encode_record(data))

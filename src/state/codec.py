from __future__ import annotations

import json

from pydantic import ValidationError

from common.errors import CorruptRecordError
from .models import RecordCollection


def encode(collection: RecordCollection) -> bytes:
    # Compact JSON array; field order follows the Entry declaration
    payload = json.dumps(
        collection.model_dump(by_alias=True), separators=(",", ":")
    ).encode("utf-8")
    return payload


def decode(data: bytes | None) -> RecordCollection:
    """Decode stored bytes into a RecordCollection.

    Empty input and a JSON `null` (what some writers emit for an empty list)
    both decode to the empty collection.

    Raises:
    - CorruptRecordError if the bytes are not UTF-8 JSON or do not describe
      a list of entries.
    """
    if not data:
        return RecordCollection.empty()

    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        raise CorruptRecordError("Stored record collection is not valid JSON") from ex

    if raw is None:
        return RecordCollection.empty()

    try:
        return RecordCollection.model_validate(raw)
    except ValidationError as ex:
        raise CorruptRecordError(
            f"Stored value is not a record collection ({ex.error_count()} validation errors)"
        ) from ex

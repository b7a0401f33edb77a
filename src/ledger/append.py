from __future__ import annotations

import logging
from typing import Optional, Tuple

from state.codec import decode, encode
from state.models import Entry
from state.store import StateStore, VersionedStateStore

logger = logging.getLogger(__name__)


class AppendEngine:
    """
    Appends one Entry to the record collection stored under a key.

    Each call reads the current bytes, decodes them, appends at the end,
    re-encodes the whole collection and writes it back in a single put.
    Nothing is cached between calls.

    - A missing key starts from the empty collection.
    - Undecodable stored bytes raise CorruptRecordError and nothing is written,
      so existing history is never overwritten.
    - Store failures propagate as StoreUnavailableError.
    - If the store supports versioned reads and `optimistic` is True, the put
      is conditional on the version read; a concurrent change raises
      WriteConflictError. Otherwise the read-modify-write relies on the
      substrate serializing same-key calls.
    """

    def __init__(self, store: StateStore, *, optimistic: bool = True) -> None:
        self._store = store
        self._versioned = optimistic and isinstance(store, VersionedStateStore)

    def _read(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        if self._versioned:
            return self._store.get_versioned(key)  # type: ignore[attr-defined]
        return (self._store.get(key), None)

    def append(self, key: str, entry: Entry) -> None:
        current, version = self._read(key)
        collection = decode(current).appended(entry)
        payload = encode(collection)
        logger.debug(f"append {key!r}: {len(collection)} entries, {len(payload)} bytes")

        if self._versioned:
            self._store.put_if_match(key, payload, if_match=version)  # type: ignore[attr-defined]
        else:
            self._store.put(key, payload)

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from common.errors import StoreUnavailableError, WriteConflictError

logger = logging.getLogger(__name__)


@runtime_checkable
class StateStore(Protocol):
    """Single-key get/put contract over an external key-value substrate.

    Implementations pass values through unchanged and never retry; `get` on a
    key that was never written returns None.
    """

    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, value: bytes) -> None: ...


@runtime_checkable
class VersionedStateStore(StateStore, Protocol):
    """A StateStore that can also guard a put with a version token."""

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]: ...

    def put_if_match(self, key: str, value: bytes, *, if_match: Optional[str]) -> str: ...


class InMemoryStateStore:
    """
    Dict-backed substrate for tests and local runs.

    - Thread-safe: each get/put holds an internal lock, so single-key calls are
      atomic the way the external substrate's are.
    - Versions are monotonically increasing counters rendered as strings.
    - `fail_next_get` / `fail_next_put` make the next call raise
      StoreUnavailableError, to exercise failure paths.
    """

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._data: Dict[str, Tuple[bytes, int]] = {}
        self._lock = threading.Lock()
        self._counter = 0
        self.gets = 0
        self.puts = 0
        self.fail_next_get = False
        self.fail_next_put = False
        for key, value in (initial or {}).items():
            self._store(key, value)

    def _store(self, key: str, value: bytes) -> str:
        self._counter += 1
        self._data[key] = (bytes(value), self._counter)
        return str(self._counter)

    def _check_fail(self, op: str) -> None:
        attr = f"fail_next_{op}"
        if getattr(self, attr):
            setattr(self, attr, False)
            raise StoreUnavailableError(f"in-memory store: simulated {op} failure")

    def get(self, key: str) -> Optional[bytes]:
        value, _ = self.get_versioned(key)
        return value

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        with self._lock:
            self._check_fail("get")
            self.gets += 1
            item = self._data.get(key)
        logger.debug(f"memory get {key!r} hit={item is not None}")
        if item is None:
            return (None, None)
        return (item[0], str(item[1]))

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._check_fail("put")
            self.puts += 1
            self._store(key, value)
        logger.debug(f"memory put {key!r} ({len(value)} bytes)")

    def put_if_match(self, key: str, value: bytes, *, if_match: Optional[str]) -> str:
        """Write only if the key's current version equals `if_match`.

        `if_match=None` requires the key to be absent.
        """
        with self._lock:
            self._check_fail("put")
            item = self._data.get(key)
            current = str(item[1]) if item is not None else None
            if current != if_match:
                raise WriteConflictError(
                    f"Version mismatch for {key!r}: expected {if_match}, found {current}"
                )
            self.puts += 1
            version = self._store(key, value)
        logger.debug(f"memory conditional put {key!r} -> v{version}")
        return version

"""
State models and substrates for the ledger.

This package defines the record schema stored under each product id, the
JSON codec that turns a record collection into the stored bytes, and the
key-value substrates (in-memory and S3) those bytes are kept in.
"""

from .models import Entry, RecordCollection
from .store import InMemoryStateStore, StateStore, VersionedStateStore

__all__ = [
    "Entry",
    "RecordCollection",
    "StateStore",
    "VersionedStateStore",
    "InMemoryStateStore",
]

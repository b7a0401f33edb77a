from __future__ import annotations

from typing import Iterator, List

from pydantic import BaseModel, ConfigDict, Field, RootModel


class Entry(BaseModel):
    """
    One reading appended to a product's history.

    Fields
    - place_id: identifier of the place the reading was taken (stored as "placeid").
    - temperature: measured value, kept verbatim (e.g., "21.5").
    - timestamp: when the reading was taken, kept verbatim (e.g., "2024-01-01T00:00:00Z").

    Notes
    - All three fields are opaque strings; nothing is parsed or range-checked.
    - Stored field names and their order are read by external tooling, so the
      "placeid" alias and the field order below are part of the persisted format.
    - Entries are frozen: history only grows by appending new entries.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    place_id: str = Field(default="", alias="placeid", description="Place identifier")
    temperature: str = Field(default="", description="Measurement value")
    timestamp: str = Field(default="", description="Reading timestamp")


class RecordCollection(RootModel[List[Entry]]):
    """Ordered history of entries stored under one product id."""

    root: List[Entry] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "RecordCollection":
        """Convenience constructor for a key that has never been written."""
        return cls([])

    def appended(self, entry: Entry) -> "RecordCollection":
        """Return a new collection with `entry` placed at the end."""
        return RecordCollection([*self.root, entry])

    def __iter__(self) -> Iterator[Entry]:  # type: ignore[override]
        return iter(self.root)

    def __getitem__(self, index: int) -> Entry:
        return self.root[index]

    def __len__(self) -> int:
        return len(self.root)

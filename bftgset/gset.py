"""A grow-only set of records keyed by their SHA-512 digest."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator


def record_key(record: str) -> str:
    """The hex SHA-512 digest of a record."""
    return hashlib.sha512(record.encode("utf-8")).hexdigest()


def strip_record(record: str) -> str:
    """Reduce ``sender.counter.record`` to ``record``; plain records pass through."""
    if "." not in record:
        return record
    parts = record.split(".")
    if len(parts) < 3:
        raise ValueError(f"malformed tagged record: {record!r}")
    return parts[2]


class GSet:
    """Grow-only set: records can be added and queried, never removed."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    def add(self, record: str) -> None:
        """Add a record, stripping any ``sender.counter.`` prefix."""
        value = strip_record(record)
        self._records[record_key(value)] = value

    def exists(self, record: str) -> bool:
        """True if the record, after stripping its prefix, is present."""
        return record_key(strip_record(record)) in self._records

    def render(self, verbose: bool = False) -> str:
        """Comma-separated ``{record}`` items, or ``{key:..., value:...}`` when verbose."""
        if not self._records:
            return "{}"
        if verbose:
            items = (f"{{key:{k}, value:{v}}}" for k, v in self._records.items())
        else:
            items = (f"{{{v}}}" for v in self._records.values())
        return ",".join(items)

    def __contains__(self, record: object) -> bool:
        return isinstance(record, str) and self.exists(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records.values())

    def __str__(self) -> str:
        return self.render()
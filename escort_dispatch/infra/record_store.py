# escort_dispatch/infra/record_store.py
"""
Tabular record store and header-based accessor.

A collection is a header row plus data rows, the shape of a spreadsheet tab.
``InMemoryRecordStore`` is the concrete store; it can be seeded from a JSON
snapshot (``{"Requests": {"headers": [...], "rows": [[...], ...]}, ...}``).
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from threading import Lock
from typing import Any, Iterator, Optional, Protocol

from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


class CollectionNotFoundError(Exception):
    """A referenced collection does not exist in the store (configuration error)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Collection not found: {name}")


@dataclass
class Collection:
    name: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)

    def column_index_of(self, header: str) -> Optional[int]:
        try:
            return self.headers.index(header)
        except ValueError:
            return None


class RecordStore(Protocol):
    def get_collection(self, name: str) -> Collection: ...
    def has_collection(self, name: str) -> bool: ...
    def create_collection(self, name: str, headers: list[str]) -> Collection: ...
    def set_cell(self, collection: str, row_index: int, column_index: int, value: Any) -> None: ...
    def append_row(self, collection: str, values: list[Any]) -> None: ...


class InMemoryRecordStore:
    """
    Process-local record store.

    ``get_collection`` hands out deep copies, so a cached snapshot never
    changes underneath its reader; writes go through ``set_cell`` and
    ``append_row`` only.
    """

    def __init__(self, collections: dict[str, Collection] | None = None):
        self._collections: dict[str, Collection] = dict(collections or {})
        self._lock = Lock()

    def get_collection(self, name: str) -> Collection:
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                raise CollectionNotFoundError(name)
            return copy.deepcopy(collection)

    def has_collection(self, name: str) -> bool:
        return name in self._collections

    def create_collection(self, name: str, headers: list[str]) -> Collection:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = Collection(name=name, headers=list(headers))
                logger.info(f"Collection created: {name}")
            return copy.deepcopy(self._collections[name])

    def set_cell(self, collection: str, row_index: int, column_index: int, value: Any) -> None:
        with self._lock:
            target = self._collections.get(collection)
            if target is None:
                raise CollectionNotFoundError(collection)
            row = target.rows[row_index]
            if column_index >= len(row):
                row.extend([""] * (column_index + 1 - len(row)))
            row[column_index] = value

    def append_row(self, collection: str, values: list[Any]) -> None:
        with self._lock:
            target = self._collections.get(collection)
            if target is None:
                raise CollectionNotFoundError(collection)
            target.rows.append(list(values))

    @classmethod
    def from_dict(cls, data: dict[str, dict]) -> "InMemoryRecordStore":
        collections = {}
        for name, body in data.items():
            collections[name] = Collection(
                name=name,
                headers=list(body.get("headers", [])),
                rows=[_parse_cell_row(row) for row in body.get("rows", [])],
            )
        return cls(collections)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryRecordStore":
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        store = cls.from_dict(data)
        logger.info(f"Record store loaded from {path}: collections={list(data.keys())}")
        return store


def _parse_cell_row(row: list[Any]) -> list[Any]:
    """Turn ISO date/datetime strings from a JSON snapshot back into date objects."""
    parsed = []
    for value in row:
        if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-" and value[7:8] == "-":
            try:
                if len(value) == 10:
                    parsed.append(date.fromisoformat(value))
                else:
                    parsed.append(datetime.fromisoformat(value))
                continue
            except ValueError:
                pass
        parsed.append(value)
    return parsed


# ============================================================================
# ACCESSOR
# ============================================================================

class RecordAccessor:
    """Header-name access to the rows of one collection snapshot."""

    def __init__(self, store: RecordStore, collection: Collection):
        self.store = store
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    def __iter__(self) -> Iterator[tuple[int, list[Any]]]:
        return iter(enumerate(self.collection.rows))

    def __len__(self) -> int:
        return len(self.collection.rows)

    def get(self, row: list[Any], header: str) -> Any:
        """Cell value by header; None if the header or the cell is missing."""
        idx = self.collection.column_index_of(header)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def find_row(self, header: str, value: Any) -> Optional[tuple[int, list[Any]]]:
        """First row whose cell equals ``value`` exactly."""
        idx = self.collection.column_index_of(header)
        if idx is None:
            return None
        for row_index, row in enumerate(self.collection.rows):
            if idx < len(row) and row[idx] == value:
                return row_index, row
        return None

    def set(self, row_index: int, header: str, value: Any) -> bool:
        """Write through to the store and the local snapshot.

        Returns False (and logs) when the header is missing.
        """
        idx = self.collection.column_index_of(header)
        if idx is None:
            logger.warning(
                f"Column '{header}' not found in {self.collection.name}; write skipped"
            )
            return False

        self.store.set_cell(self.collection.name, row_index, idx, value)

        row = self.collection.rows[row_index]
        if idx >= len(row):
            row.extend([""] * (idx + 1 - len(row)))
        row[idx] = value
        return True

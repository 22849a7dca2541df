"""Record store interface used by the import pipeline and the reports.

The hosted backend is reached only through :class:`RecordStore`: filtered,
paginated reads, batched insert-or-update keyed by a unique column, and
targeted updates. :class:`MemoryRecordStore` keeps tables in process and is
what tests and dry runs use; :mod:`laserdesk.sql_store` talks to a database.
"""
from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .dates import is_blank


LOGGER = logging.getLogger("laserdesk.store")

Row = Dict[str, Any]

DEFAULT_PAGE_SIZE = 1000
FILTER_OPS = ("eq", "neq", "in", "gte", "lte")


class StoreError(RuntimeError):
    """A store call failed; the message is the backend's own."""


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter op '{self.op}' (expected one of {FILTER_OPS})")

    def matches(self, row: Mapping[str, Any]) -> bool:
        current = row.get(self.column)
        if self.op == "eq":
            return current == self.value
        if self.op == "neq":
            return current != self.value
        if self.op == "in":
            return current in set(self.value)
        if is_blank(current):
            return False
        if self.op == "gte":
            return current >= self.value
        return current <= self.value


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def is_in(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def between(column: str, start: Any, end: Any) -> List[Filter]:
    return [Filter(column, "gte", start), Filter(column, "lte", end)]


class RecordStore(ABC):
    """Minimal table API over the backend."""

    page_size: int = DEFAULT_PAGE_SIZE

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Return rows matching every filter, in stable order."""

    @abstractmethod
    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], conflict_key: str) -> int:
        """Insert rows, or overwrite the supplied columns of rows sharing ``conflict_key``."""

    @abstractmethod
    def update(self, table: str, values: Mapping[str, Any], match: Sequence[Filter]) -> int:
        """Set ``values`` on every row matching ``match``; return the matched count."""

    def select_all(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        page_size: Optional[int] = None,
    ) -> List[Row]:
        """Read a whole table through range reads until a short page comes back."""
        size = int(page_size or self.page_size or DEFAULT_PAGE_SIZE)
        rows: List[Row] = []
        page = 0
        while True:
            chunk = self.select(table, filters, offset=page * size, limit=size)
            rows.extend(chunk)
            if len(chunk) < size:
                break
            page += 1
        LOGGER.debug("Read %d rows from %s in %d page(s)", len(rows), table, page + 1)
        return rows


class MemoryRecordStore(RecordStore):
    """In-process store; each table keeps insertion order."""

    def __init__(self, tables: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.page_size = page_size
        self._tables: Dict[str, List[Row]] = {}
        self.calls: List[tuple] = []
        for name, rows in (tables or {}).items():
            self._tables[name] = [dict(r) for r in rows]

    def rows(self, table: str) -> List[Row]:
        """Snapshot copy of a table, for inspection."""
        return copy.deepcopy(self._tables.get(table, []))

    def select(self, table, filters=(), offset=0, limit=None):
        self.calls.append(("select", table))
        matched = [r for r in self._tables.get(table, []) if all(f.matches(r) for f in filters)]
        end = None if limit is None else offset + limit
        return copy.deepcopy(matched[offset:end])

    def upsert(self, table, rows, conflict_key):
        self.calls.append(("upsert", table, len(rows)))
        target = self._tables.setdefault(table, [])
        index = {r.get(conflict_key): pos for pos, r in enumerate(target)}
        for row in rows:
            key = row.get(conflict_key)
            if is_blank(key):
                raise StoreError(f"null value in column \"{conflict_key}\" violates not-null constraint")
            if key in index:
                target[index[key]].update(copy.deepcopy(dict(row)))
            else:
                index[key] = len(target)
                target.append(copy.deepcopy(dict(row)))
        return len(rows)

    def update(self, table, values, match):
        self.calls.append(("update", table))
        count = 0
        for row in self._tables.get(table, []):
            if all(f.matches(row) for f in match):
                row.update(copy.deepcopy(dict(values)))
                count += 1
        return count

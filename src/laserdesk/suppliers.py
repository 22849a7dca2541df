"""Province -> supplier lookup consulted while normalizing the main feed."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .dates import is_blank
from .layouts import SUPPLIERS_TABLE
from .store import RecordStore


LOGGER = logging.getLogger("laserdesk.suppliers")


def normalize_province(value: object) -> Optional[str]:
    """Trimmed, upper-cased province code; ``None`` when blank."""
    if is_blank(value):
        return None
    return str(value).strip().upper()


@dataclass(frozen=True)
class SupplierDirectory:
    """Read-only snapshot of the supplier mapping table.

    Lookups are exact on the normalized province code. A miss returns
    ``None``; the incident is simply left without a supplier.
    """

    mapping: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "mapping", MappingProxyType(dict(self.mapping)))

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, object]]) -> "SupplierDirectory":
        mapping = {}
        for row in rows:
            province = normalize_province(row.get("provincia"))
            supplier = row.get("fornitore")
            if province and not is_blank(supplier):
                mapping[province] = str(supplier).strip()
        return cls(mapping)

    @classmethod
    def load(cls, store: RecordStore) -> "SupplierDirectory":
        directory = cls.from_rows(store.select_all(SUPPLIERS_TABLE))
        LOGGER.info("Loaded %d supplier mappings.", len(directory))
        return directory

    def resolve(self, province: object) -> Optional[str]:
        key = normalize_province(province)
        if key is None:
            return None
        return self.mapping.get(key)

    def merged(self, rows: Iterable[Mapping[str, object]]) -> "SupplierDirectory":
        """New snapshot with ``rows`` layered over the current mappings."""
        combined = dict(self.mapping)
        combined.update(SupplierDirectory.from_rows(rows).mapping)
        return SupplierDirectory(combined)

    def __len__(self) -> int:
        return len(self.mapping)

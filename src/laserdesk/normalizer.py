"""Schema normalization: heterogeneous feed rows -> canonical records.

One pure entry point, :func:`normalize_rows`, turns the first sheet of a
classified file into canonical rows. Incident feeds yield incident rows, the
territory feed yields supplier mappings and the planning feed yields narrow
``{numero, pianificazione}`` pairs. Nothing here touches the record store.
"""
from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .classifier import FileKind
from .dates import is_blank, normalize_date
from .layouts import DATE, DATE_ONLY, FLAG, KEY, FeedLayout, layout_for, resolve_headers
from .suppliers import SupplierDirectory, normalize_province


LOGGER = logging.getLogger("laserdesk.normalizer")

TRUTHY_TOKENS = frozenset({"VERO", "TRUE", "SI", "YES", "1"})


@dataclass
class NormalizedBatch:
    """Result of normalizing one file."""

    kind: FileKind
    rows: List[Dict[str, Any]] = field(default_factory=list)
    supplier_rows: List[Dict[str, str]] = field(default_factory=list)
    planning_rows: List[Dict[str, Any]] = field(default_factory=list)
    header_map: Dict[str, str] = field(default_factory=dict)
    missing_fields: List[str] = field(default_factory=list)
    dropped_rows: int = 0

    @property
    def numbers(self) -> List[str]:
        """Ticket keys carried by the incident rows, in file order."""
        return [r["numero"] for r in self.rows if r.get("numero")]


def plain_value(value: Any) -> Any:
    """Cell value as a plain Python scalar the store can bind."""
    if is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, str):
        return value.strip()
    return value


def clean_key(value: Any) -> Optional[str]:
    """Ticket keys are text; integral numbers lose their ``.0``."""
    if is_blank(value):
        return None
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        number = float(value)
        return str(int(number)) if number.is_integer() else str(number)
    text = str(value).strip()
    return text or None


def parse_flag(value: Any) -> bool:
    """SLA breach flag: native booleans, or a truthy token (VERO/TRUE/SI/YES/1)."""
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if is_blank(value):
        return False
    if isinstance(value, numbers.Real):
        return float(value) == 1.0
    return str(value).strip().upper() in TRUTHY_TOKENS


def _coerce(kind: str, value: Any) -> Any:
    if kind == KEY:
        return clean_key(value)
    if kind == DATE:
        return plain_value(normalize_date(value))
    if kind == DATE_ONLY:
        return plain_value(normalize_date(value, date_only=True))
    if kind == FLAG:
        return parse_flag(value)
    return plain_value(value)


def frame_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as dicts with NaN/NaT replaced by ``None``."""
    if frame is None or frame.empty:
        return []
    cleaned = frame.astype(object).where(pd.notna(frame), None)
    cleaned.columns = [str(c) for c in cleaned.columns]
    return cleaned.to_dict(orient="records")


def _map_record(layout: FeedLayout, header_map: Dict[str, str], record: Dict[str, Any]) -> Dict[str, Any]:
    row: Dict[str, Any] = dict(layout.defaults)
    for spec in layout.fields:
        header = header_map.get(spec.name)
        if header is None and spec.optional:
            continue
        raw = record.get(header) if header is not None else None
        row[spec.name] = _coerce(spec.kind, raw)
    return row


def normalize_rows(
    kind: FileKind,
    frame: pd.DataFrame,
    suppliers: Optional[SupplierDirectory] = None,
) -> NormalizedBatch:
    """Normalize the rows of a classified file.

    ``suppliers`` is the read-only snapshot used to assign ``fornitore`` on
    main-feed rows; it is ignored by every other feed.
    """
    layout = layout_for(kind)
    if layout is None:
        raise ValueError(f"No column layout for file kind '{kind}'")

    records = frame_records(frame)
    header_map = resolve_headers(layout, frame.columns if frame is not None else [])
    batch = NormalizedBatch(kind=kind, header_map=header_map)
    batch.missing_fields = [name for name in layout.names if name not in header_map]
    if batch.missing_fields:
        LOGGER.debug("%s: no source header for %s", kind.value, ", ".join(batch.missing_fields))

    if kind == FileKind.FIELD_SERVICE and "numero" not in header_map and frame is not None:
        LOGGER.warning(
            "Could not find a ticket id column (IdTicket/Numero). Available columns: %s",
            ", ".join(str(c) for c in frame.columns),
        )

    for record in records:
        row = _map_record(layout, header_map, record)

        if kind == FileKind.SUPPLIER_TERRITORY:
            province = normalize_province(row.get("provincia"))
            supplier = row.get("fornitore")
            if province is None or is_blank(supplier):
                batch.dropped_rows += 1
                continue
            batch.supplier_rows.append({"provincia": province, "fornitore": str(supplier).strip()})
            continue

        if kind == FileKind.PLANNING:
            batch.planning_rows.append(row)
            continue

        if kind == FileKind.MAIN:
            row["fornitore"] = suppliers.resolve(row.get("provincia_stato")) if suppliers is not None else None

        batch.rows.append(row)

    LOGGER.info(
        "Normalized %d rows as %s (incidents=%d, suppliers=%d, planning=%d, dropped=%d)",
        len(records),
        kind.value,
        len(batch.rows),
        len(batch.supplier_rows),
        len(batch.planning_rows),
        batch.dropped_rows,
    )
    return batch

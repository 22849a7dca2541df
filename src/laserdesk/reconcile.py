"""Merge normalized rows into the record store.

Whole-row feeds go in one batched upsert keyed on ``numero``; the planning
feed is applied as one narrow update per row so a single bad ticket never
blocks the rest of the file. Functions here never raise: store failures are
reported through :class:`ReconcileResult`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .dates import is_blank
from .layouts import INCIDENTS_TABLE, SUPPLIERS_TABLE
from .store import RecordStore, StoreError, eq


LOGGER = logging.getLogger("laserdesk.reconcile")


@dataclass
class ReconcileResult:
    submitted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_message is None

    def summary(self) -> str:
        return f"Updated: {self.updated}, Skipped/Missing: {self.skipped}, Errors: {self.errors}"


def valid_incident_rows(rows: Sequence[Mapping[str, Any]]) -> tuple[List[Dict[str, Any]], int]:
    """Drop rows without a ticket key; later duplicates of a key win."""
    kept: Dict[str, Dict[str, Any]] = {}
    skipped = 0
    for row in rows:
        key = row.get("numero")
        if is_blank(key):
            skipped += 1
            continue
        kept[str(key)] = dict(row)
    return list(kept.values()), skipped


def upsert_incidents(store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> ReconcileResult:
    """Batched insert-or-replace of incident rows keyed on ``numero``."""
    valid, skipped = valid_incident_rows(rows)
    result = ReconcileResult(submitted=len(valid), skipped=skipped)
    LOGGER.info("Valid rows to upsert: %d (skipped without numero: %d)", len(valid), skipped)
    if not valid:
        return result
    try:
        store.upsert(INCIDENTS_TABLE, valid, conflict_key="numero")
    except StoreError as exc:
        result.errors = len(valid)
        result.error_message = str(exc)
        LOGGER.error("Incident upsert failed: %s", exc)
        return result
    result.updated = len(valid)
    return result


def upsert_suppliers(store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> ReconcileResult:
    """Replace province -> supplier mappings keyed on ``provincia``."""
    result = ReconcileResult(submitted=len(rows))
    LOGGER.info("Found %d supplier mappings to update.", len(rows))
    if not rows:
        return result
    try:
        store.upsert(SUPPLIERS_TABLE, [dict(r) for r in rows], conflict_key="provincia")
    except StoreError as exc:
        result.errors = len(rows)
        result.error_message = str(exc)
        LOGGER.error("Error updating suppliers: %s", exc)
        return result
    result.updated = len(rows)
    return result


def apply_planning_updates(store: RecordStore, rows: Sequence[Mapping[str, Any]]) -> ReconcileResult:
    """Set ``pianificazione`` ticket by ticket, continuing past failures."""
    result = ReconcileResult(submitted=len(rows))
    for row in rows:
        numero = row.get("numero")
        planned = row.get("pianificazione")
        if is_blank(numero) or is_blank(planned):
            result.skipped += 1
            continue
        try:
            matched = store.update(INCIDENTS_TABLE, {"pianificazione": planned}, [eq("numero", numero)])
        except StoreError as exc:
            result.errors += 1
            LOGGER.warning("Planning update failed for %s: %s", numero, exc)
            continue
        if matched:
            result.updated += 1
        else:
            result.skipped += 1
            LOGGER.debug("Planning row for unknown ticket %s skipped", numero)
    LOGGER.info("Planning import done. %s", result.summary())
    return result

"""Ghost incidents: open in the store, absent from the latest main-feed import.

A ghost most likely moved to another assignment group outside this
operation. The operator resolves ghosts one at a time or all at once by
stamping the reassignment status, or dismisses the rest.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .layouts import INCIDENTS_TABLE, REASSIGNED_STATUS, TRACKED_GROUPS, is_backlog
from .store import RecordStore, StoreError, eq, is_in


LOGGER = logging.getLogger("laserdesk.ghosts")

STUB_FIELDS = ("numero", "regione", "stato", "descrizione", "breve_descrizione")


def _stub(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: row.get(name) for name in STUB_FIELDS}


def fetch_open_tickets(store: RecordStore, groups: Sequence[str] = TRACKED_GROUPS) -> List[Dict[str, Any]]:
    """Stubs of every backlog ticket in the tracked assignment groups."""
    rows = store.select_all(INCIDENTS_TABLE, [is_in("gruppo_assegnazione", groups)])
    open_rows = [_stub(r) for r in rows if r.get("numero") and is_backlog(r.get("stato"))]
    LOGGER.info("Open tickets before import: %d", len(open_rows))
    return open_rows


def detect_ghosts(open_tickets: Iterable[Mapping[str, Any]], imported_numbers: Iterable[Any]) -> List[Dict[str, Any]]:
    imported = {str(n) for n in imported_numbers if n is not None}
    ghosts = [dict(t) for t in open_tickets if str(t.get("numero")) not in imported]
    if ghosts:
        LOGGER.warning("Detected %d ghost incident(s) absent from the import", len(ghosts))
    return ghosts


class GhostResolver:
    """Operator actions over a detected ghost list.

    Resolved tickets leave :attr:`pending` only after the store call
    succeeds; a :class:`StoreError` propagates with the ghost still pending.
    """

    def __init__(self, store: RecordStore, ghosts: Iterable[Mapping[str, Any]], status: str = REASSIGNED_STATUS):
        self.store = store
        self.status = status
        self._pending: List[Dict[str, Any]] = [dict(g) for g in ghosts]
        self.resolved: List[str] = []
        self.dismissed = False

    @property
    def pending(self) -> List[Dict[str, Any]]:
        return list(self._pending)

    @property
    def done(self) -> bool:
        return self.dismissed or not self._pending

    def resolve(self, numero: str) -> None:
        if not any(g["numero"] == numero for g in self._pending):
            raise KeyError(f"{numero} is not a pending ghost")
        self.store.update(INCIDENTS_TABLE, {"stato": self.status}, [eq("numero", numero)])
        self._pending = [g for g in self._pending if g["numero"] != numero]
        self.resolved.append(numero)
        LOGGER.info("Ghost %s set to %s", numero, self.status)

    def resolve_all(self) -> int:
        numbers = [g["numero"] for g in self._pending]
        if not numbers:
            return 0
        try:
            self.store.update(INCIDENTS_TABLE, {"stato": self.status}, [is_in("numero", numbers)])
        except StoreError:
            LOGGER.error("Bulk ghost resolution failed for %d ticket(s)", len(numbers))
            raise
        self._pending = []
        self.resolved.extend(numbers)
        LOGGER.info("Resolved %d ghost(s) as %s", len(numbers), self.status)
        return len(numbers)

    def dismiss(self) -> List[Dict[str, Any]]:
        """Leave the remaining ghosts untouched and let the import complete."""
        self.dismissed = True
        if self._pending:
            LOGGER.info("Import completed ignoring %d unresolved ghost(s)", len(self._pending))
        return self.pending

"""Parts-request workflow on a single incident.

A request is either a set of parts or a whole-device replacement, never both.
Its lifecycle only moves forward through :data:`REQUEST_STATES`.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .dates import is_blank
from .layouts import INCIDENTS_TABLE
from .store import RecordStore, StoreError, eq


LOGGER = logging.getLogger("laserdesk.parts_requests")

PARTS_SEPARATOR = "|"
REQUEST_STATES: Tuple[str, ...] = ("Pending", "In gestione", "Disponibile", "Evasione")
DEFAULT_REQUEST_STATE = REQUEST_STATES[0]


def split_parts(value: Any) -> Tuple[str, ...]:
    if is_blank(value):
        return ()
    return tuple(p for p in str(value).split(PARTS_SEPARATOR) if p)


@dataclass(frozen=True)
class PartsRequest:
    parts: Tuple[str, ...] = ()
    device: bool = False
    status: Optional[str] = None
    requested_at: Optional[str] = None
    ldv: Optional[str] = None
    delivery_date: Optional[str] = None

    def __post_init__(self) -> None:
        # A device request replaces the whole unit, so no parts ride along with it
        parts = () if self.device else tuple(self.parts)
        object.__setattr__(self, "parts", parts)
        object.__setattr__(self, "device", bool(self.device))

    @classmethod
    def from_incident(cls, incident: Mapping[str, Any]) -> "PartsRequest":
        return cls(
            parts=split_parts(incident.get("parti_richieste")),
            device=bool(incident.get("richiesta_apparato") or False),
            status=incident.get("stato_richiesta") or None,
            requested_at=incident.get("data_richiesta_parti") or None,
            ldv=incident.get("ldv") or None,
            delivery_date=incident.get("data_consegna") or None,
        )

    @property
    def active(self) -> bool:
        return bool(self.parts) or self.device

    def toggle_part(self, part: str) -> "PartsRequest":
        """Select or deselect a part; selecting any part clears the device flag."""
        if part in self.parts:
            parts = tuple(p for p in self.parts if p != part)
        else:
            parts = self.parts + (part,)
        return replace(self, parts=parts, device=False)

    def toggle_device(self) -> "PartsRequest":
        """Flip the device flag; turning it on clears every selected part."""
        if self.device:
            return replace(self, device=False)
        return replace(self, device=True, parts=())


def parts_request_values(
    incident: Mapping[str, Any],
    request: PartsRequest,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Column values persisted by a parts-request save."""
    requested_at = incident.get("data_richiesta_parti") or None
    if request.active and not requested_at:
        requested_at = (now or datetime.now()).isoformat(timespec="seconds")
    return {
        "parti_richieste": PARTS_SEPARATOR.join(request.parts),
        "richiesta_apparato": bool(request.device),
        "data_richiesta_parti": requested_at,
        "stato_richiesta": incident.get("stato_richiesta") or DEFAULT_REQUEST_STATE,
        "ldv": request.ldv or None,
        "data_consegna": request.delivery_date or None,
    }


def save_parts_request(
    store: RecordStore,
    incident: Mapping[str, Any],
    request: PartsRequest,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Persist ``request`` and return the updated incident.

    The first-request timestamp is stamped once and kept afterwards. On a
    store failure :class:`StoreError` propagates and nothing is returned.
    """
    values = parts_request_values(incident, request, now)
    store.update(INCIDENTS_TABLE, values, [eq("numero", incident["numero"])])
    LOGGER.info("Parts request saved for %s (%s)", incident["numero"], values["stato_richiesta"])
    return {**incident, **values}


def next_request_status(current: Optional[str]) -> str:
    """Single forward step; the terminal state and unknown labels stay put."""
    status = current or DEFAULT_REQUEST_STATE
    if status not in REQUEST_STATES:
        return status
    index = REQUEST_STATES.index(status)
    return REQUEST_STATES[min(index + 1, len(REQUEST_STATES) - 1)]


def advance_request_status(store: RecordStore, incident: Mapping[str, Any]) -> Dict[str, Any]:
    """Advance ``stato_richiesta`` one step, optimistically.

    The returned incident carries the new state even when the store call
    fails; the failure is only logged. Incidents without a recorded request
    and requests already in the terminal state are returned unchanged.
    """
    updated = dict(incident)
    if not incident.get("data_richiesta_parti"):
        return updated
    current = incident.get("stato_richiesta") or DEFAULT_REQUEST_STATE
    target = next_request_status(current)
    if target == current:
        return updated
    updated["stato_richiesta"] = target
    try:
        store.update(INCIDENTS_TABLE, {"stato_richiesta": target}, [eq("numero", incident["numero"])])
    except StoreError as exc:
        LOGGER.error("Status update failed for %s: %s", incident["numero"], exc)
    return updated


def count_by_request_status(incidents: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """Counters for the requests view, one per lifecycle state."""
    counts = Counter(
        inc.get("stato_richiesta") or DEFAULT_REQUEST_STATE
        for inc in incidents
        if inc.get("data_richiesta_parti")
    )
    return {state: counts.get(state, 0) for state in REQUEST_STATES}


def save_planning(store: RecordStore, incident: Mapping[str, Any], value: Optional[str]) -> Dict[str, Any]:
    """Set the planned intervention date of one incident."""
    store.update(INCIDENTS_TABLE, {"pianificazione": value}, [eq("numero", incident["numero"])])
    return {**incident, "pianificazione": value}

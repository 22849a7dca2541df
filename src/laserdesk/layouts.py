"""Canonical incident record and per-feed column mapping tables.

Each feed layout lists, for every canonical field, the source headers that
may carry it (first present header wins) and how the cell is coerced. Headers
are matched verbatim; layouts are resolved once per file.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .classifier import FileKind


# Field coercions applied by the normalizer
VALUE = "value"
KEY = "key"
DATE = "date"
DATE_ONLY = "date_only"
FLAG = "flag"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    headers: Tuple[str, ...]
    kind: str = VALUE
    # Optional fields are left out of the row when the file lacks the header,
    # so the stored value is not overwritten.
    optional: bool = False


@dataclass(frozen=True)
class FeedLayout:
    kind: FileKind
    fields: Tuple[FieldSpec, ...]
    defaults: Mapping[str, object] = field(default_factory=dict)
    header_row: int = 0

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]


def resolve_headers(layout: FeedLayout, columns: Iterable[object]) -> Dict[str, str]:
    """Map canonical field -> source header for the headers present in a file.

    Fields with no matching header are left out of the result; the normalizer
    emits ``None`` for them.
    """
    available = {str(c) for c in columns}
    resolved: Dict[str, str] = {}
    for spec in layout.fields:
        header = next((h for h in spec.headers if h in available), None)
        if header is not None:
            resolved[spec.name] = header
    return resolved


def _f(name: str, *headers: str, kind: str = VALUE, optional: bool = False) -> FieldSpec:
    return FieldSpec(name=name, headers=tuple(headers), kind=kind, optional=optional)


ITEM_HEADERS = ("Item", "item", "ITEM")

SLA_VIOLATION_LAYOUT = FeedLayout(
    kind=FileKind.SLA_VIOLATION,
    fields=(
        _f("numero", "Numero", kind=KEY),
        _f("ora_violazione", "Ora violazione", kind=DATE),
        _f("violazione_avvenuta", "Violazione avvenuta", kind=FLAG),
    ),
)

MAIN_LAYOUT = FeedLayout(
    kind=FileKind.MAIN,
    fields=(
        _f("numero", "Numero", kind=KEY),
        _f("breve_descrizione", "Breve descrizione"),
        _f("stato", "Stato"),
        _f("data_apertura", "Data apertura", kind=DATE),
        _f("data_esecuzione", "Data di esecuzione", kind=DATE),
        _f("data_pianificazione_intervento", "Data di pianificazione intervento", kind=DATE),
        _f("in_carico_a", "In carico a"),
        _f("beneficiario", "Beneficiario"),
        _f("indirizzo_intervento", "Indirizzo di Intervento"),
        _f("recall", "Recall"),
        _f("data_aggiornamento", "Data aggiornamento", kind=DATE),
        _f("item", *ITEM_HEADERS),
        _f("regione", "Regione"),
        _f("sede_presidiata", "Sede Presidiata"),
        _f("hw_model", "HW Model"),
        _f("provincia_stato", "Provincia/Stato"),
        _f("categoria_manutentiva", "Categoria Manutentiva"),
        _f("citta", "Città"),
        _f("asset", "Asset"),
        _f("serial_number", "Serial number"),
        _f("data_ultima_riassegnazione", "Data Ultima Riassegnazione", kind=DATE),
        _f("ambito", "Ambito"),
        _f("chiuso", "Chiuso", kind=DATE),
        _f("gruppo_assegnazione", "Gruppo di assegnazione"),
        _f("violazione_avvenuta", "Violazione avvenuta", kind=FLAG, optional=True),
    ),
)

POST_SALE_LAYOUT = FeedLayout(
    kind=FileKind.POST_SALE,
    fields=(
        # The export's own "Numero" is the task id; the incident key is "Incidente".
        _f("task", "Numero"),
        _f("numero", "Incidente", kind=KEY),
        _f("item", *ITEM_HEADERS),
        _f("nome", "Nome"),
        _f("tag_asset", "Tag asset"),
        _f("numero_di_serie", "Numero di serie"),
        _f("motivo_stato", "Motivo Stato"),
        _f("note_appuntamento", "Note appuntamento"),
        _f("chiuso", "Chiuso", kind=DATE),
        _f("descrizione_classe_guasto", "Descrizione classe guasto"),
        _f("descrizione_guasto_effettivo", "Descrizione guasto effettivo"),
        _f("descrizione", "Descrizione"),
    ),
)

FIELD_SERVICE_LAYOUT = FeedLayout(
    kind=FileKind.FIELD_SERVICE,
    fields=(
        _f("numero", "IdTicket", "ID Ticket", "Numero", "Ticket", "id_ticket", "IDTicket", kind=KEY),
        _f("manutentore", "Manutentore"),
        _f("clone", "Clone"),
        _f("data_pr_trasf", "DataPrTrasf", kind=DATE_ONLY),
        _f("data_sol_guasto", "DataSolGuasto", kind=DATE_ONLY),
        _f("data_chiusura", "DataChiusura", kind=DATE_ONLY),
        # Records first seen here have no opening date; the closing date stands in.
        _f("data_apertura", "DataChiusura", kind=DATE_ONLY),
        _f("classe_app", "ClasseApp"),
        _f("servizio_hd", "ServizioHD"),
        _f("causale", "Causale"),
        _f("durata", "Durata"),
        _f("in_sla", "inSla"),
        _f("dbanca", "DBANCA"),
        _f("citta", "Citta"),
        _f("indirizzo_intervento", "Indirizzo"),
        _f("regione", "Regione"),
        _f("area_metro", "AreaMetro"),
        _f("descrizione_dipendenza", "Descrizione_Dipendenza"),
        _f("modello", "Modello"),
        _f("classe_hw", "Classe_HW"),
        _f("tipo_apparato", "Tipo_Apparato"),
    ),
    defaults={
        "stato": "Chiuso",
        "gruppo_assegnazione": "EUS_LASER_MICROINF_INC",
        "breve_descrizione": "Incidente importato da LDS - Dati parziali",
    },
    header_row=1,
)

SUPPLIER_TERRITORY_LAYOUT = FeedLayout(
    kind=FileKind.SUPPLIER_TERRITORY,
    fields=(
        _f("provincia", "Provincia/Stato", "provincia stato", "Provincia", "provincia"),
        _f("fornitore", "Fornitore", "fornitore"),
    ),
)

PLANNING_LAYOUT = FeedLayout(
    kind=FileKind.PLANNING,
    fields=(
        _f("numero", "Numero", "numero", kind=KEY),
        _f("pianificazione", "Pianificazione", "pianificazione", kind=DATE),
    ),
)

LAYOUTS: Dict[FileKind, FeedLayout] = {
    layout.kind: layout
    for layout in (
        SLA_VIOLATION_LAYOUT,
        MAIN_LAYOUT,
        POST_SALE_LAYOUT,
        FIELD_SERVICE_LAYOUT,
        SUPPLIER_TERRITORY_LAYOUT,
        PLANNING_LAYOUT,
    )
}


def layout_for(kind: FileKind) -> Optional[FeedLayout]:
    return LAYOUTS.get(kind)


# --- Canonical incident record -------------------------------------------

INCIDENTS_TABLE = "incidents"
SUPPLIERS_TABLE = "fornitori"
REGIONS_TABLE = "regions"
SNAPSHOTS_TABLE = "daily_backlog_snapshots"

# Columns owned by user edits rather than by any feed
WORKFLOW_COLUMNS = (
    "fornitore",
    "pianificazione",
    "note_laser",
    "parti_richieste",
    "richiesta_apparato",
    "stato_richiesta",
    "data_richiesta_parti",
    "ldv",
    "data_consegna",
    "data_chiusura_prevista",
)


def _incident_columns() -> Tuple[str, ...]:
    ordered: List[str] = []
    for layout in (MAIN_LAYOUT, SLA_VIOLATION_LAYOUT, POST_SALE_LAYOUT, FIELD_SERVICE_LAYOUT):
        for name in layout.names + list(layout.defaults):
            if name not in ordered:
                ordered.append(name)
    for name in WORKFLOW_COLUMNS:
        if name not in ordered:
            ordered.append(name)
    return tuple(ordered)


INCIDENT_COLUMNS: Tuple[str, ...] = _incident_columns()
BOOLEAN_COLUMNS = frozenset({"violazione_avvenuta", "richiesta_apparato"})

# Status labels as they appear across feeds (compared trimmed, case-insensitive)
ACTIVE_STATUSES = frozenset({"APERTO", "IN CORSO", "IN LAVORAZIONE"})
SUSPENDED_STATUSES = frozenset({"SOSPESO", "SUSPENDED"})
CLOSED_STATUSES = frozenset({"CHIUSO", "CLOSED"})
REASSIGNED_STATUS = "Riassegnato"

LOCKER_GROUP = "EUS_LOCKER_LASER_MICROINF_INC"
STANDARD_GROUP = "EUS_LASER_MICROINF_INC"
TRACKED_GROUPS = (STANDARD_GROUP, LOCKER_GROUP)


def _status_token(stato: object) -> str:
    return str(stato or "").strip().upper()


def is_active(stato: object) -> bool:
    return _status_token(stato) in ACTIVE_STATUSES


def is_suspended(stato: object) -> bool:
    return _status_token(stato) in SUSPENDED_STATUSES


def is_closed(stato: object) -> bool:
    """Closed or reassigned away: no longer part of the backlog."""
    token = _status_token(stato)
    return token in CLOSED_STATUSES or token == REASSIGNED_STATUS.upper()


def is_backlog(stato: object) -> bool:
    return not is_closed(stato)


def is_locker(incident: Mapping[str, object]) -> bool:
    return incident.get("gruppo_assegnazione") == LOCKER_GROUP

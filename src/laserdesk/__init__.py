"""
LaserDesk: spreadsheet import and reconciliation for incident tracking.

Exports from the ticketing system, the field-service provider and the
planning sheets are classified by file name, normalized into one canonical
incident record and merged into the record store by ticket number. The
metrics module turns the reconciled store into report-ready aggregates.
"""

from .classifier import FileKind, classify_file
from .dates import normalize_date
from .ghosts import GhostResolver, detect_ghosts
from .importer import ImportFileError, ImportReport, run_import
from .normalizer import normalize_rows
from .notes import NoteEntry, append_entry, append_note, decode_notes, encode_notes
from .parts_requests import (
    REQUEST_STATES,
    PartsRequest,
    advance_request_status,
    count_by_request_status,
    next_request_status,
    save_parts_request,
    save_planning,
)
from .store import MemoryRecordStore, RecordStore, StoreError

__all__ = [
    "FileKind",
    "GhostResolver",
    "ImportFileError",
    "ImportReport",
    "MemoryRecordStore",
    "NoteEntry",
    "PartsRequest",
    "REQUEST_STATES",
    "RecordStore",
    "StoreError",
    "advance_request_status",
    "append_entry",
    "append_note",
    "classify_file",
    "count_by_request_status",
    "decode_notes",
    "detect_ghosts",
    "encode_notes",
    "next_request_status",
    "normalize_date",
    "normalize_rows",
    "run_import",
    "save_parts_request",
    "save_planning",
]

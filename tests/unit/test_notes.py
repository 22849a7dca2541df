from __future__ import annotations

from datetime import datetime

import pytest

from laserdesk.notes import NoteEntry, append_note, decode_notes, encode_notes
from laserdesk.store import MemoryRecordStore, StoreError


class BrokenStore(MemoryRecordStore):
    def update(self, table, values, match):
        raise StoreError("permission denied for table incidents")


def test_append_builds_the_stored_blob():
    store = MemoryRecordStore({"incidents": [{"numero": "INC1"}]})
    incident = store.rows("incidents")[0]
    incident = append_note(store, incident, "  Chiamato il cliente ", author="Mario", now=datetime(2024, 3, 5, 9, 7))
    incident = append_note(store, incident, "Tecnico in arrivo", author=None, now=datetime(2024, 3, 6, 14, 30))
    expected = "[05/03/2024, 09:07] [Mario] Chiamato il cliente\n\n[06/03/2024, 14:30] [Utente] Tecnico in arrivo"
    assert incident["note_laser"] == expected
    assert store.rows("incidents")[0]["note_laser"] == expected


def test_blank_notes_are_ignored():
    store = MemoryRecordStore({"incidents": [{"numero": "INC1"}]})
    append_note(store, {"numero": "INC1"}, "   ", author="Mario")
    assert store.calls == []


def test_store_failure_propagates():
    incident = {"numero": "INC1", "note_laser": "vecchia nota"}
    with pytest.raises(StoreError):
        append_note(BrokenStore(), incident, "nuova", author="Mario")
    assert incident["note_laser"] == "vecchia nota"


def test_decode_entries_and_legacy_text():
    blob = "nota scritta a mano\n\n[05/03/2024, 09:07] [Mario Rossi] Chiamato il cliente"
    entries = decode_notes(blob)
    assert entries[0] == NoteEntry(timestamp=None, author=None, text="nota scritta a mano")
    assert entries[1] == NoteEntry(timestamp=datetime(2024, 3, 5, 9, 7), author="Mario Rossi", text="Chiamato il cliente")
    assert encode_notes(entries) == blob
    assert decode_notes(None) == []


def test_note_and_request_helpers_are_exported_from_the_package():
    import laserdesk

    for name in ("NoteEntry", "append_note", "decode_notes", "encode_notes",
                 "PartsRequest", "save_parts_request", "advance_request_status", "save_planning"):
        assert name in laserdesk.__all__
        assert callable(getattr(laserdesk, name))
    assert laserdesk.REQUEST_STATES[0] == "Pending"

from __future__ import annotations

from datetime import datetime

import pytest

from laserdesk.parts_requests import (
    REQUEST_STATES,
    PartsRequest,
    advance_request_status,
    count_by_request_status,
    next_request_status,
    save_parts_request,
    save_planning,
)
from laserdesk.store import MemoryRecordStore, StoreError


class BrokenStore(MemoryRecordStore):
    def update(self, table, values, match):
        raise StoreError("connection reset")


def _store(**fields):
    incident = {"numero": "INC1", "stato": "Aperto", **fields}
    return MemoryRecordStore({"incidents": [incident]}), incident


class TestExclusivity:
    def test_selecting_a_part_clears_the_device_flag(self):
        request = PartsRequest(device=True).toggle_part("Testina")
        assert request.parts == ("Testina",)
        assert request.device is False

    def test_selecting_the_device_clears_all_parts(self):
        request = PartsRequest(parts=("Testina", "Rullo")).toggle_device()
        assert request.device is True
        assert request.parts == ()

    def test_toggle_part_twice_removes_it(self):
        request = PartsRequest().toggle_part("Rullo").toggle_part("Testina").toggle_part("Rullo")
        assert request.parts == ("Testina",)

    def test_device_flag_wins_when_both_are_given(self):
        request = PartsRequest(parts=("Testina",), device=True)
        assert request.parts == ()
        assert request.device is True

    def test_stored_row_with_both_loads_as_a_device_request(self):
        request = PartsRequest.from_incident({"parti_richieste": "Testina|Rullo", "richiesta_apparato": True})
        assert request.parts == ()
        assert request.device is True

    def test_a_save_never_persists_parts_and_device_together(self):
        store = MemoryRecordStore({"incidents": [{"numero": "INC1"}]})
        save_parts_request(store, {"numero": "INC1"}, PartsRequest(parts=("Testina",), device=True))
        stored = store.rows("incidents")[0]
        assert stored["richiesta_apparato"] is True
        assert stored["parti_richieste"] == ""

    def test_from_incident_splits_the_parts_list(self):
        request = PartsRequest.from_incident({"parti_richieste": "Testina|Rullo", "richiesta_apparato": False})
        assert request.parts == ("Testina", "Rullo")
        assert not request.device


class TestSave:
    def test_first_save_stamps_the_request_time(self):
        store, incident = _store()
        now = datetime(2024, 6, 1, 10, 15)
        updated = save_parts_request(store, incident, PartsRequest(parts=("Testina", "Rullo")), now=now)
        stored = store.rows("incidents")[0]
        assert stored["parti_richieste"] == "Testina|Rullo"
        assert stored["richiesta_apparato"] is False
        assert stored["data_richiesta_parti"] == "2024-06-01T10:15:00"
        assert stored["stato_richiesta"] == "Pending"
        assert updated["data_richiesta_parti"] == stored["data_richiesta_parti"]

    def test_request_time_is_never_reset(self):
        store, incident = _store(data_richiesta_parti="2024-06-01T10:15:00", stato_richiesta="In gestione")
        later = datetime(2024, 7, 1, 8, 0)
        updated = save_parts_request(store, incident, PartsRequest(device=True), now=later)
        assert updated["data_richiesta_parti"] == "2024-06-01T10:15:00"
        assert updated["stato_richiesta"] == "In gestione"
        cleared = save_parts_request(store, updated, PartsRequest(), now=later)
        assert cleared["data_richiesta_parti"] == "2024-06-01T10:15:00"
        assert cleared["parti_richieste"] == ""

    def test_inactive_request_does_not_stamp(self):
        store, incident = _store()
        updated = save_parts_request(store, incident, PartsRequest(ldv="LDV123"))
        assert updated["data_richiesta_parti"] is None
        assert updated["ldv"] == "LDV123"

    def test_store_failure_leaves_the_incident_untouched(self):
        incident = {"numero": "INC1", "stato": "Aperto"}
        with pytest.raises(StoreError):
            save_parts_request(BrokenStore(), incident, PartsRequest(parts=("Testina",)))
        assert incident == {"numero": "INC1", "stato": "Aperto"}

    def test_save_planning(self):
        store, incident = _store()
        updated = save_planning(store, incident, "2024-06-10T09:00:00")
        assert updated["pianificazione"] == "2024-06-10T09:00:00"
        assert store.rows("incidents")[0]["pianificazione"] == "2024-06-10T09:00:00"


class TestStatusCycle:
    def test_single_step_forward_and_terminal(self):
        assert next_request_status(None) == "In gestione"
        assert next_request_status("Pending") == "In gestione"
        assert next_request_status("In gestione") == "Disponibile"
        assert next_request_status("Disponibile") == "Evasione"
        assert next_request_status("Evasione") == "Evasione"

    def test_unknown_labels_are_left_alone(self):
        assert next_request_status("Annullato") == "Annullato"

    def test_never_regresses(self):
        store, incident = _store(data_richiesta_parti="2024-06-01T10:15:00", stato_richiesta="Pending")
        seen = []
        for _ in range(6):
            incident = advance_request_status(store, incident)
            seen.append(REQUEST_STATES.index(incident["stato_richiesta"]))
        assert seen == sorted(seen)
        assert store.rows("incidents")[0]["stato_richiesta"] == "Evasione"

    def test_no_advance_without_a_recorded_request(self):
        store, incident = _store(stato_richiesta="Pending")
        assert advance_request_status(store, incident)["stato_richiesta"] == "Pending"
        assert not any(call[0] == "update" for call in store.calls)

    def test_advance_is_optimistic(self):
        incident = {"numero": "INC1", "data_richiesta_parti": "2024-06-01T10:15:00", "stato_richiesta": "In gestione"}
        updated = advance_request_status(BrokenStore(), incident)
        assert updated["stato_richiesta"] == "Disponibile"
        assert incident["stato_richiesta"] == "In gestione"


def test_count_by_request_status():
    incidents = [
        {"data_richiesta_parti": "2024-06-01", "stato_richiesta": None},
        {"data_richiesta_parti": "2024-06-01", "stato_richiesta": "Pending"},
        {"data_richiesta_parti": "2024-06-02", "stato_richiesta": "Evasione"},
        {"data_richiesta_parti": None, "stato_richiesta": "In gestione"},
    ]
    assert count_by_request_status(incidents) == {"Pending": 2, "In gestione": 0, "Disponibile": 0, "Evasione": 1}

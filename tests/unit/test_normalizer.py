from __future__ import annotations

import logging
from datetime import datetime

import pandas as pd
import pytest

from laserdesk.classifier import FileKind
from laserdesk.layouts import MAIN_LAYOUT
from laserdesk.normalizer import clean_key, normalize_rows, parse_flag
from laserdesk.suppliers import SupplierDirectory


def _main_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Numero": ["INC001", 12345.0, None],
            "Stato": ["Aperto", "Sospeso", "Aperto"],
            "Data apertura": [datetime(2023, 3, 15, 12, 0), 45000.5, None],
            "Provincia/Stato": [" mi ", "RM", "TO"],
            "Regione": ["Lombardia", "Lazio", "Piemonte"],
            "Gruppo di assegnazione": ["EUS_LASER_MICROINF_INC"] * 3,
            "Colonna extra": ["x", "y", "z"],
        }
    )


class TestHelpers:
    def test_clean_key(self):
        assert clean_key(12345.0) == "12345"
        assert clean_key(" INC01 ") == "INC01"
        assert clean_key(12.5) == "12.5"
        assert clean_key(None) is None
        assert clean_key("  ") is None

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("VERO", True),
            ("true", True),
            (" si ", True),
            ("YES", True),
            ("1", True),
            (1, True),
            (True, True),
            ("FALSO", False),
            ("no", False),
            (0, False),
            (None, False),
            ("", False),
        ],
    )
    def test_parse_flag(self, value, expected):
        assert parse_flag(value) is expected


class TestMainFeed:
    def test_supplier_resolved_from_trimmed_uppercase_province(self):
        suppliers = SupplierDirectory({"MI": "Acme Corp"})
        batch = normalize_rows(FileKind.MAIN, _main_frame(), suppliers)
        first, second, third = batch.rows
        assert first["fornitore"] == "Acme Corp"
        assert second["fornitore"] is None
        assert third["fornitore"] is None

    def test_whole_row_shape_and_dates(self):
        batch = normalize_rows(FileKind.MAIN, _main_frame(), SupplierDirectory())
        first, second, third = batch.rows
        assert first["numero"] == "INC001"
        assert second["numero"] == "12345"
        assert third["numero"] is None
        assert first["data_apertura"] == second["data_apertura"] == "2023-03-15T12:00:00"
        # every mapped field is present, absent headers yield None
        assert first["recall"] is None
        assert "colonna extra" not in first and "Colonna extra" not in first
        assert "recall" in batch.missing_fields
        assert batch.numbers == ["INC001", "12345"]

    def test_breach_flag_only_written_when_the_export_carries_it(self):
        batch = normalize_rows(FileKind.MAIN, _main_frame())
        assert "violazione_avvenuta" not in batch.rows[0]

        frame = _main_frame().assign(**{"Violazione avvenuta": ["VERO", None, "NO"]})
        batch = normalize_rows(FileKind.MAIN, frame)
        assert [r["violazione_avvenuta"] for r in batch.rows] == [True, False, False]

    def test_every_field_has_an_accepted_header(self):
        assert all(spec.headers for spec in MAIN_LAYOUT.fields)


def test_sla_feed_token_set():
    frame = pd.DataFrame(
        {
            "Numero": ["INC1", "INC2", "INC3", "INC4"],
            "Ora violazione": [45000.5, None, None, None],
            "Violazione avvenuta": ["VERO", "no", True, None],
        }
    )
    batch = normalize_rows(FileKind.SLA_VIOLATION, frame)
    assert [r["violazione_avvenuta"] for r in batch.rows] == [True, False, True, False]
    assert batch.rows[0] == {
        "numero": "INC1",
        "ora_violazione": "2023-03-15T12:00:00",
        "violazione_avvenuta": True,
    }


def test_post_sale_feed_swaps_task_and_incident_numbers():
    frame = pd.DataFrame({"Numero": ["TASK0042"], "Incidente": ["INC9"], "Motivo Stato": ["Attesa parti"]})
    row = normalize_rows(FileKind.POST_SALE, frame).rows[0]
    assert row["numero"] == "INC9"
    assert row["task"] == "TASK0042"
    assert row["motivo_stato"] == "Attesa parti"


class TestFieldServiceFeed:
    def test_creation_defaults_and_date_only_values(self):
        frame = pd.DataFrame(
            {
                "IdTicket": ["INC7"],
                "DataChiusura": [pd.Timestamp("2024-05-03 14:00")],
                "inSla": ["SI"],
                "ServizioHD": ["TECNOFIL"],
                "Durata": [1200],
            }
        )
        row = normalize_rows(FileKind.FIELD_SERVICE, frame).rows[0]
        assert row["numero"] == "INC7"
        assert row["stato"] == "Chiuso"
        assert row["gruppo_assegnazione"] == "EUS_LASER_MICROINF_INC"
        assert row["breve_descrizione"] == "Incidente importato da LDS - Dati parziali"
        assert row["data_chiusura"] == "2024-05-03"
        assert row["data_apertura"] == "2024-05-03"
        assert row["in_sla"] == "SI"
        assert row["servizio_hd"] == "TECNOFIL"
        assert row["durata"] == 1200

    def test_alternative_ticket_headers(self):
        frame = pd.DataFrame({"Ticket": ["INC8"], "DataChiusura": [None]})
        row = normalize_rows(FileKind.FIELD_SERVICE, frame).rows[0]
        assert row["numero"] == "INC8"
        assert row["data_apertura"] is None

    def test_missing_ticket_column_warns(self, caplog):
        frame = pd.DataFrame({"Codice": ["X1"], "DataChiusura": [None]})
        with caplog.at_level(logging.WARNING, logger="laserdesk.normalizer"):
            batch = normalize_rows(FileKind.FIELD_SERVICE, frame)
        assert batch.rows[0]["numero"] is None
        assert "Codice" in caplog.text


def test_supplier_territory_rows():
    frame = pd.DataFrame({"Provincia": [" mi ", None, "TO"], "Fornitore": ["Acme Corp", "Nessuno", None]})
    batch = normalize_rows(FileKind.SUPPLIER_TERRITORY, frame)
    assert batch.supplier_rows == [{"provincia": "MI", "fornitore": "Acme Corp"}]
    assert batch.dropped_rows == 2
    assert batch.rows == []


def test_planning_rows():
    frame = pd.DataFrame({"numero": ["INC1", None], "Pianificazione": [45000.5, 45001]})
    batch = normalize_rows(FileKind.PLANNING, frame)
    assert batch.planning_rows == [
        {"numero": "INC1", "pianificazione": "2023-03-15T12:00:00"},
        {"numero": None, "pianificazione": "2023-03-16T00:00:00"},
    ]


def test_unknown_kind_has_no_layout():
    with pytest.raises(ValueError):
        normalize_rows(FileKind.UNKNOWN, pd.DataFrame({"a": [1]}))

from __future__ import annotations

import pytest

from laserdesk.store import Filter, MemoryRecordStore, StoreError, between, eq, is_in
from laserdesk.sql_store import SqlRecordStore
from laserdesk.suppliers import SupplierDirectory, normalize_province


def _incidents(n: int):
    return [{"numero": f"INC{i:03d}", "stato": "Aperto", "regione": "Lazio"} for i in range(n)]


class TestMemoryStore:
    def test_select_filters(self):
        store = MemoryRecordStore(
            {
                "incidents": [
                    {"numero": "A", "stato": "Aperto", "data_apertura": "2024-01-02"},
                    {"numero": "B", "stato": "Chiuso", "data_apertura": "2024-02-10"},
                    {"numero": "C", "stato": "Aperto", "data_apertura": None},
                ]
            }
        )
        assert [r["numero"] for r in store.select("incidents", [eq("stato", "Aperto")])] == ["A", "C"]
        assert [r["numero"] for r in store.select("incidents", [is_in("numero", ["B", "C"])])] == ["B", "C"]
        window = between("data_apertura", "2024-01-01", "2024-01-31")
        assert [r["numero"] for r in store.select("incidents", window)] == ["A"]
        assert store.select("missing_table") == []

    def test_select_all_reads_until_a_short_page(self):
        store = MemoryRecordStore({"incidents": _incidents(4)}, page_size=2)
        rows = store.select_all("incidents")
        assert len(rows) == 4
        # two full pages and the empty page that ends the loop
        assert store.calls.count(("select", "incidents")) == 3

    def test_upsert_overwrites_supplied_columns_only(self):
        store = MemoryRecordStore({"incidents": [{"numero": "A", "stato": "Aperto", "note_laser": "nota"}]})
        store.upsert("incidents", [{"numero": "A", "stato": "Chiuso"}, {"numero": "B", "stato": "Aperto"}], "numero")
        assert store.rows("incidents") == [
            {"numero": "A", "stato": "Chiuso", "note_laser": "nota"},
            {"numero": "B", "stato": "Aperto"},
        ]

    def test_upsert_rejects_blank_keys(self):
        store = MemoryRecordStore()
        with pytest.raises(StoreError):
            store.upsert("incidents", [{"numero": None}], "numero")

    def test_update_returns_matched_count(self):
        store = MemoryRecordStore({"incidents": _incidents(3)})
        assert store.update("incidents", {"stato": "Sospeso"}, [eq("numero", "INC001")]) == 1
        assert store.update("incidents", {"stato": "Sospeso"}, [eq("numero", "nope")]) == 0
        assert store.rows("incidents")[1]["stato"] == "Sospeso"

    def test_unknown_filter_op(self):
        with pytest.raises(ValueError):
            Filter("stato", "like", "Ap%")


class TestSqlStore:
    @pytest.fixture()
    def store(self, tmp_path):
        return SqlRecordStore(f"sqlite:///{tmp_path / 'laserdesk.db'}", page_size=2)

    def test_upsert_then_partial_upsert(self, store):
        store.upsert("incidents", [{"numero": "A", "stato": "Aperto", "regione": "Lazio", "violazione_avvenuta": True}], "numero")
        store.upsert("incidents", [{"numero": "A", "stato": "Chiuso"}], "numero")
        row = store.select("incidents", [eq("numero", "A")])[0]
        assert row["stato"] == "Chiuso"
        assert row["regione"] == "Lazio"
        assert row["violazione_avvenuta"] is True

    def test_non_text_values_are_stored_as_text(self, store):
        store.upsert("incidents", [{"numero": "A", "durata": 1200}], "numero")
        assert store.select("incidents")[0]["durata"] == "1200"

    def test_select_all_pages_in_key_order(self, store):
        store.upsert("incidents", list(reversed(_incidents(5))), "numero")
        rows = store.select_all("incidents")
        assert [r["numero"] for r in rows] == [f"INC{i:03d}" for i in range(5)]

    def test_update_and_in_filter(self, store):
        store.upsert("incidents", _incidents(3), "numero")
        matched = store.update("incidents", {"stato": "Riassegnato"}, [is_in("numero", ["INC000", "INC002", "INC999"])])
        assert matched == 2
        assert [r["numero"] for r in store.select("incidents", [eq("stato", "Riassegnato")])] == ["INC000", "INC002"]

    def test_unknown_column_raises_store_error(self, store):
        with pytest.raises(StoreError):
            store.upsert("incidents", [{"numero": "A", "colonna_inesistente": 1}], "numero")
        with pytest.raises(StoreError):
            store.select("tabella_inesistente")

    def test_supplier_and_region_tables(self, store):
        store.upsert("fornitori", [{"provincia": "MI", "fornitore": "Acme Corp"}], "provincia")
        store.upsert("regions", [{"name": "Lazio", "visible": True}, {"name": "Molise", "visible": False}], "name")
        assert SupplierDirectory.load(store).resolve("mi") == "Acme Corp"
        assert [r["name"] for r in store.select("regions", [eq("visible", True)])] == ["Lazio"]

    def test_bad_url_raises_store_error(self):
        with pytest.raises(StoreError):
            SqlRecordStore("not a database url")


class TestSupplierDirectory:
    def test_lookup_is_trimmed_and_case_insensitive(self):
        directory = SupplierDirectory.from_rows([{"provincia": "MI", "fornitore": "Acme Corp"}])
        assert directory.resolve("mi") == "Acme Corp"
        assert directory.resolve(" Mi ") == "Acme Corp"
        assert directory.resolve("RM") is None
        assert directory.resolve(None) is None

    def test_merged_layers_new_rows_over_old(self):
        directory = SupplierDirectory({"MI": "Acme Corp", "RM": "Roma Service"})
        merged = directory.merged([{"provincia": "mi", "fornitore": "Nuovo Srl"}])
        assert merged.resolve("MI") == "Nuovo Srl"
        assert merged.resolve("RM") == "Roma Service"
        assert directory.resolve("MI") == "Acme Corp"
        assert len(merged) == 2

    def test_normalize_province(self):
        assert normalize_province(" to ") == "TO"
        assert normalize_province("") is None

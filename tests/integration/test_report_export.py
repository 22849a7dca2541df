from __future__ import annotations

from datetime import date

import pytest
from openpyxl import load_workbook

from laserdesk.export_utils import export_report, main
from laserdesk.metrics import REGIONAL_BACKLOG_COLUMNS, REGIONAL_SLA_COLUMNS, SCORECARD_COLUMNS, TREND_COLUMNS
from laserdesk.sql_store import SqlRecordStore
from laserdesk.store import MemoryRecordStore


SNAPSHOTS = [
    {"snapshot_date": "2025-10-01", "region": "Lombardia", "total_backlog": 10, "suspended_count": 2, "active_violations": 1},
    {"snapshot_date": "2025-10-01", "region": "Lazio", "total_backlog": 6, "suspended_count": 1, "active_violations": 1},
    {"snapshot_date": "2025-10-02", "region": "Lombardia", "total_backlog": 12, "suspended_count": 2, "active_violations": 3},
    {"snapshot_date": "2025-10-02", "region": "Lazio", "total_backlog": 5, "suspended_count": 0, "active_violations": 0},
]

INCIDENTS = [
    {"numero": "INC1", "stato": "Aperto", "regione": "Lombardia", "fornitore": "Acme",
     "data_apertura": "2025-10-01T09:00:00", "gruppo_assegnazione": "EUS_LASER_MICROINF_INC"},
    {"numero": "INC2", "stato": "Sospeso", "regione": "Lazio", "citta": "Roma",
     "gruppo_assegnazione": "EUS_LOCKER_LASER_MICROINF_INC", "data_apertura": "2025-10-02T10:00:00"},
    {"numero": "INC3", "stato": "Chiuso", "regione": "Lazio", "fornitore": "Acme", "servizio_hd": "TECNOFIL",
     "in_sla": "NO", "durata": "3000", "data_apertura": "2025-10-02", "data_chiusura": "2025-10-02"},
]

EXPECTED_SHEETS = [
    "Overview",
    "Trend",
    "Regional Trend",
    "SLA Heatmap",
    "Regional Backlog",
    "Locker Backlog",
    "SLA",
    "SLA Comparison",
    "Regional SLA",
    "Monthly Flow",
    "Suppliers",
]


def _header(ws):
    return [c.value for c in ws[1]]


@pytest.fixture
def workbook(tmp_path):
    store = MemoryRecordStore(
        {
            "daily_backlog_snapshots": SNAPSHOTS,
            "regions": [{"name": "Lombardia", "visible": True}, {"name": "Lazio", "visible": True}],
            "incidents": INCIDENTS,
        }
    )
    path = export_report(store, tmp_path / "out" / "report.xlsx", scope="monthly", year=2025, month=10, today=date(2025, 10, 15))
    return load_workbook(path)


def test_one_sheet_per_view(workbook):
    assert workbook.sheetnames == EXPECTED_SHEETS
    assert _header(workbook["Trend"]) == TREND_COLUMNS
    assert _header(workbook["Regional Backlog"]) == REGIONAL_BACKLOG_COLUMNS
    assert _header(workbook["Suppliers"]) == SCORECARD_COLUMNS
    assert _header(workbook["SLA Heatmap"]) == ["region", "2025-10-01", "2025-10-02"]


def test_values(workbook):
    trend = workbook["Trend"]
    assert [trend.cell(row=r, column=2).value for r in (2, 3)] == [16, 17]
    overview = {row[0]: row[1] for row in workbook["Overview"].iter_rows(min_row=2, values_only=True)}
    assert overview["total"] == 3
    assert overview["closed_in_month"] == 1
    assert overview["controllo_breaches"] == 1
    assert overview["current_backlog"] == 17
    assert overview["average_backlog"] == 17
    flow = workbook["Monthly Flow"]
    assert flow.cell(row=3, column=2).value == 2
    lockers = workbook["Locker Backlog"]
    assert lockers.cell(row=2, column=1).value == "Roma"


def test_regional_sla_and_month_comparison(workbook):
    regional = workbook["Regional SLA"]
    assert _header(regional) == REGIONAL_SLA_COLUMNS
    assert [c.value for c in regional[2]] == ["Lazio", 1, 1, 0]
    comparison = {row[0]: row[1:] for row in workbook["SLA Comparison"].iter_rows(min_row=2, values_only=True)}
    assert _header(workbook["SLA Comparison"]) == ["metric", "current", "previous", "delta"]
    # nothing closed in September
    assert comparison["closed"] == (1, 0, "-")
    assert comparison["filiali_sla_pct"] == (0, 100, -100)


def test_header_style(workbook):
    ws = workbook["Trend"]
    assert ws.freeze_panes == "A2"
    assert ws["A1"].font.bold
    assert ws["A1"].fill.fgColor.rgb.endswith("1F4E78")


def test_empty_view_is_marked(tmp_path):
    path = export_report(MemoryRecordStore(), tmp_path / "empty.xlsx", year=2025, month=10, today=date(2025, 10, 15))
    wb = load_workbook(path)
    assert wb.sheetnames == EXPECTED_SHEETS
    assert wb["Trend"]["A1"].value == "No data available"


def test_cli_writes_the_workbook(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'report.db'}"
    SqlRecordStore(db_url).upsert("incidents", INCIDENTS, "numero")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"paths:\n  logs_dir: '{tmp_path / 'logs'}'\nstore:\n  url: '{db_url}'\n", encoding="utf-8")
    output = tmp_path / "report.xlsx"
    assert main(["--config", str(config_path), "--scope", "annual", "--output", str(output)]) == 0
    assert load_workbook(output).sheetnames == EXPECTED_SHEETS

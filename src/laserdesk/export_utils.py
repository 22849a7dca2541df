"""Export report aggregates to an Excel workbook, one sheet per view."""
from __future__ import annotations

import argparse
import logging
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .config import LaserdeskConfig, ReportFormatting, load_config
from .logging_utils import get_logger, log_error, log_system_event
from .metrics import (
    ReportInputs,
    SlaReport,
    TimeScope,
    daily_trend,
    enrich_snapshots,
    kpi_summary,
    load_report_inputs,
    locker_backlog,
    monthly_flow,
    regional_backlog,
    regional_sla,
    regional_trend,
    sla_compliance,
    sla_heatmap,
    summarize_trend,
    supplier_scorecard,
    time_window,
)
from .sql_store import SqlRecordStore
from .store import RecordStore, StoreError


LOGGER = logging.getLogger("laserdesk.export")


def _safe_sheet_name(name: str) -> str:
    """Return a sheet-safe string (openpyxl constraints)."""
    sanitized = "".join(ch if ch not in '[]:*?/\\' else "_" for ch in str(name))
    return sanitized[:31] if sanitized else "Sheet"


def sla_frame(report: SlaReport) -> pd.DataFrame:
    rows = []
    for label, cohort in report.cohorts.items():
        rows.append(
            {
                "cohort": label,
                "service": cohort.service,
                "closed_with_verdict": cohort.total,
                "met": cohort.met,
                "sla_pct": round(cohort.sla_pct, 1),
                "controllo_closed": cohort.controllo_total,
                "controllo_violations": cohort.controllo_violations,
                "controllo_pct": round(cohort.controllo_pct, 1),
                "geo_pct": round(cohort.geo_pct, 1),
            }
        )
    return pd.DataFrame(rows)


def sla_comparison_frame(report: SlaReport) -> pd.DataFrame:
    """Month-over-month view; a missing delta is written as "-"."""
    if report.previous is None:
        return pd.DataFrame(columns=["metric", "current", "previous", "delta"])
    before = report.previous.figures()
    deltas = report.deltas()
    rows = [
        {
            "metric": key,
            "current": value,
            "previous": before.get(key, 0),
            "delta": "-" if deltas.get(key) is None else deltas[key],
        }
        for key, value in report.figures().items()
    ]
    return pd.DataFrame(rows, dtype=object)


def build_report_frames(
    inputs: ReportInputs,
    year: int,
    month: int,
    today: Optional[date] = None,
    config: Optional[LaserdeskConfig] = None,
) -> Dict[str, pd.DataFrame]:
    """Every aggregate view keyed by sheet title."""
    config = config or LaserdeskConfig()
    today = today or date.today()
    enriched = enrich_snapshots(inputs.snapshots, inputs.incidents, inputs.visible_regions, inputs.window)
    trend = daily_trend(inputs.snapshots, inputs.incidents, inputs.visible_regions, inputs.window)
    kpis = kpi_summary(inputs.incidents, today)
    sla = sla_compliance(inputs.incidents, year, month, config.metrics, with_previous=True)
    monthly = {
        "opened_in_month": sla.opened,
        "closed_in_month": sla.closed,
        "sla_breaches": sla.sla_breaches,
        "controllo_breaches": sla.controllo_breaches,
    }
    overview = pd.DataFrame(
        [{"metric": k, "value": v} for k, v in {**asdict(kpis), **asdict(summarize_trend(trend)), **monthly}.items()],
        dtype=object,
    )
    return {
        "Overview": overview,
        "Trend": trend,
        "Regional Trend": regional_trend(enriched, today),
        "SLA Heatmap": sla_heatmap(enriched),
        "Regional Backlog": regional_backlog(inputs.incidents, today),
        "Locker Backlog": locker_backlog(inputs.incidents, today),
        "SLA": sla_frame(sla),
        "SLA Comparison": sla_comparison_frame(sla),
        "Regional SLA": regional_sla(inputs.incidents, year, month),
        "Monthly Flow": monthly_flow(inputs.incidents, year, month),
        "Suppliers": supplier_scorecard(inputs.incidents, year, month, top=None, rank_by="score", settings=config.metrics),
    }


def _apply_header_style(ws, formatting: ReportFormatting) -> None:
    header_fill = PatternFill("solid", fgColor=formatting.header_fill)
    header_font = Font(color=formatting.header_font_color, bold=True)
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")


def _auto_size_columns(ws, formatting: ReportFormatting) -> None:
    for idx, column_cells in enumerate(ws.columns, start=1):
        longest = max((len(str(c.value)) for c in column_cells if c.value is not None), default=8)
        ws.column_dimensions[get_column_letter(idx)].width = min(longest + 2, formatting.max_column_width)


def _write_dataframe(ws, df: pd.DataFrame, formatting: ReportFormatting) -> None:
    if df.empty:
        ws.append(["No data available"])
        return
    ws.append([str(c) for c in df.columns])
    for row in df.itertuples(index=False):
        values: List[object] = []
        for value in row:
            if value is None or (not isinstance(value, str) and pd.isna(value)):
                values.append(None)
            elif hasattr(value, "item"):
                values.append(value.item())
            else:
                values.append(value)
        ws.append(values)
    _apply_header_style(ws, formatting)
    _auto_size_columns(ws, formatting)
    ws.freeze_panes = "A2"


def write_report_workbook(
    frames: Dict[str, pd.DataFrame],
    output_path: str | Path,
    formatting: Optional[ReportFormatting] = None,
) -> Path:
    formatting = formatting or ReportFormatting()
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)
    for title, frame in frames.items():
        ws = wb.create_sheet(title=_safe_sheet_name(title))
        _write_dataframe(ws, frame.reset_index() if frame.index.name else frame, formatting)
    wb.save(path)
    LOGGER.info("Report workbook written: %s (%d sheets)", path, len(frames))
    return path


def export_report(
    store: RecordStore,
    output_path: str | Path,
    scope: TimeScope | str = TimeScope.MONTHLY,
    year: Optional[int] = None,
    month: Optional[int] = None,
    today: Optional[date] = None,
    config: Optional[LaserdeskConfig] = None,
) -> Path:
    """Read the store once and write every report view to ``output_path``."""
    config = config or LaserdeskConfig()
    today = today or date.today()
    year = year or today.year
    month = month or today.month
    inputs = load_report_inputs(store, time_window(scope, year, today))
    frames = build_report_frames(inputs, year, month, today, config)
    return write_report_workbook(frames, output_path, config.report.formatting)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export LaserDesk report aggregates to Excel")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration file")
    parser.add_argument("--store-url", default=None, help="Override store.url from the configuration")
    parser.add_argument("--scope", choices=[s.value for s in TimeScope], default=TimeScope.MONTHLY.value)
    parser.add_argument("--year", type=int, default=None, help="Trend year (default: current year)")
    parser.add_argument("--month", type=int, choices=range(1, 13), default=None, help="SLA/supplier month")
    parser.add_argument("--output", default=None, help="Workbook path (default: <reports_dir>/laserdesk_report_<date>.xlsx)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    config = load_config(args.config)
    logger = get_logger(config)
    output = args.output or Path(config.paths.reports_dir) / f"laserdesk_report_{date.today():%Y%m%d}.xlsx"
    try:
        store = SqlRecordStore(args.store_url or config.store.url, page_size=config.store.page_size)
        path = export_report(store, output, args.scope, args.year, args.month, config=config)
    except StoreError as exc:
        log_error(logger, f"Report export failed: {exc}")
        return 1
    log_system_event(logger, f"Report exported to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

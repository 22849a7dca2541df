"""Batch import of spreadsheet exports into the record store.

Files are processed one after the other in the order given: classify by
name, read the first sheet, normalize, reconcile. A file that cannot be read
or whose store write fails is reported and the batch moves on. Ghost
detection runs once after the batch, against the open tickets captured
before the first write.
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .classifier import FileKind, classify_file
from .config import LaserdeskConfig, load_config
from .ghosts import GhostResolver, detect_ghosts, fetch_open_tickets
from .layouts import layout_for
from .logging_utils import (
    end_phase_timer,
    get_logger,
    get_user_logger,
    log_error,
    log_system_event,
    log_warning,
    start_phase_timer,
)
from .normalizer import NormalizedBatch, normalize_rows
from .reconcile import ReconcileResult, apply_planning_updates, upsert_incidents, upsert_suppliers
from .sql_store import SqlRecordStore
from .store import RecordStore, StoreError
from .suppliers import SupplierDirectory


LOGGER = logging.getLogger("laserdesk.importer")

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
TEXT_SUFFIXES = {".csv", ".txt"}


class ImportFileError(Exception):
    """A file could not be read as a spreadsheet."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to read {path.name}: {reason}")
        self.path = path
        self.reason = reason


def read_input_file(path: Path, header_row: int = 0) -> pd.DataFrame:
    """Read the first sheet of an Excel file (or a delimited text file).

    Cells keep the types the reader produces so native dates and serial
    numbers both reach the date normalizer. ``header_row`` is the 0-based row
    holding the column headers; rows above it are discarded.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        try:
            return pd.read_csv(path, sep=None, engine="python", header=header_row)
        except Exception as exc:
            raise ImportFileError(path, str(exc)) from exc
    if suffix in EXCEL_SUFFIXES:
        try:
            return pd.read_excel(path, sheet_name=0, header=header_row)
        except Exception as exc:
            raise ImportFileError(path, str(exc)) from exc
    raise ImportFileError(path, f"unsupported extension '{suffix}'")


@dataclass
class FileOutcome:
    path: str
    kind: FileKind
    rows_read: int = 0
    submitted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_message: Optional[str] = None

    @property
    def name(self) -> str:
        return Path(self.path).name

    @property
    def failed(self) -> bool:
        return self.error_message is not None

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        if self.kind == FileKind.UNKNOWN:
            return "unrecognized"
        return "ok"

    def absorb(self, result: ReconcileResult) -> None:
        self.submitted = result.submitted
        self.updated = result.updated
        self.skipped = result.skipped
        self.errors = result.errors
        self.error_message = result.error_message

    def as_dict(self) -> Dict[str, Any]:
        return {
            "file": self.name,
            "kind": self.kind.value,
            "status": self.status,
            "rows_read": self.rows_read,
            "submitted": self.submitted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "error": self.error_message or "",
        }


@dataclass
class ImportReport:
    outcomes: List[FileOutcome] = field(default_factory=list)
    ghosts: List[Dict[str, Any]] = field(default_factory=list)
    ghosts_checked: bool = False

    @property
    def failed(self) -> bool:
        return any(o.failed for o in self.outcomes)

    def outcome_frame(self) -> pd.DataFrame:
        return pd.DataFrame([o.as_dict() for o in self.outcomes])


def _process_batch(
    store: RecordStore,
    kind: FileKind,
    batch: NormalizedBatch,
) -> ReconcileResult:
    if kind == FileKind.SUPPLIER_TERRITORY:
        return upsert_suppliers(store, batch.supplier_rows)
    if kind == FileKind.PLANNING:
        return apply_planning_updates(store, batch.planning_rows)
    return upsert_incidents(store, batch.rows)


def process_file(
    path: Path,
    store: RecordStore,
    suppliers: SupplierDirectory,
    user_logger: Optional[logging.Logger] = None,
) -> tuple[FileOutcome, Optional[NormalizedBatch]]:
    """Import one file. Never raises; failures land in the outcome."""
    user_logger = user_logger or LOGGER
    path = Path(path)
    kind = classify_file(path.name)
    outcome = FileOutcome(path=str(path), kind=kind)
    user_logger.info(f"Reading file: {path.name}")

    layout = layout_for(kind)
    if layout is None:
        user_logger.info("Unknown file type. Skipping.")
        return outcome, None

    try:
        frame = read_input_file(path, header_row=layout.header_row)
    except ImportFileError as exc:
        outcome.error_message = str(exc)
        log_error(LOGGER, str(exc))
        user_logger.info(f"ERROR: {exc}")
        return outcome, None

    outcome.rows_read = len(frame)
    user_logger.info(f"Parsed {len(frame)} rows. Detected type: {kind.value}")
    batch = normalize_rows(kind, frame, suppliers)
    if kind == FileKind.FIELD_SERVICE and "numero" not in batch.header_map:
        user_logger.info(
            "Warning: could not find 'IdTicket' or 'Numero' column. Available keys: "
            + ", ".join(str(c) for c in frame.columns)
        )

    result = _process_batch(store, kind, batch)
    outcome.absorb(result)
    if result.ok:
        user_logger.info(f"Done. {result.summary()}")
    else:
        user_logger.info(f"ERROR: {result.error_message}")
    return outcome, batch


def run_import(
    paths: Iterable[str | Path],
    store: RecordStore,
    config: Optional[LaserdeskConfig] = None,
    user_logger: Optional[logging.Logger] = None,
) -> ImportReport:
    """Import ``paths`` in order and return per-file outcomes plus ghosts."""
    config = config or LaserdeskConfig()
    user_logger = user_logger or LOGGER
    paths = [Path(p) for p in paths]
    allowed = set(config.ingestion.allowed_extensions)
    report = ImportReport()

    try:
        suppliers = SupplierDirectory.load(store)
        user_logger.info(f"Loaded {len(suppliers)} suppliers mappings.")
    except StoreError as exc:
        log_warning(LOGGER, f"Supplier mappings unavailable, fornitore left empty: {exc}")
        suppliers = SupplierDirectory()

    open_tickets: Optional[List[Dict[str, Any]]] = None
    if any(classify_file(p.name) == FileKind.MAIN for p in paths):
        try:
            open_tickets = fetch_open_tickets(store, config.ingestion.tracked_groups)
        except StoreError as exc:
            log_warning(LOGGER, f"Open-ticket snapshot failed, ghost detection disabled: {exc}")

    imported_numbers: List[str] = []
    main_imported = False
    for path in paths:
        kind = classify_file(path.name)
        if kind != FileKind.UNKNOWN and path.suffix.lower() not in allowed:
            outcome = FileOutcome(path=str(path), kind=kind)
            outcome.error_message = f"Unsupported file extension '{path.suffix}'"
            log_warning(LOGGER, f"{path.name}: {outcome.error_message}")
            report.outcomes.append(outcome)
            continue

        outcome, batch = process_file(path, store, suppliers, user_logger)
        report.outcomes.append(outcome)
        if batch is None or outcome.failed:
            continue
        if outcome.kind == FileKind.SUPPLIER_TERRITORY:
            suppliers = suppliers.merged(batch.supplier_rows)
        elif outcome.kind == FileKind.MAIN:
            imported_numbers.extend(batch.numbers)
            main_imported = True

    if open_tickets is not None and main_imported:
        report.ghosts = detect_ghosts(open_tickets, imported_numbers)
        report.ghosts_checked = True

    log_system_event(
        LOGGER,
        f"Import finished: {len(report.outcomes)} file(s), "
        f"{sum(o.failed for o in report.outcomes)} failed, {len(report.ghosts)} ghost(s)",
    )
    return report


def handle_ghosts(
    store: RecordStore,
    report: ImportReport,
    action: str,
    user_logger: logging.Logger,
) -> GhostResolver:
    """Apply the configured ghost action (report, resolve-all or ignore)."""
    resolver = GhostResolver(store, report.ghosts)
    if not report.ghosts:
        return resolver
    user_logger.info(f"{len(report.ghosts)} ghost incident(s) open in storage but missing from the import:")
    for ghost in report.ghosts:
        user_logger.info(
            f"  {ghost['numero']} | {ghost.get('regione') or '-'} | {ghost.get('stato') or '-'} | "
            f"{ghost.get('breve_descrizione') or ghost.get('descrizione') or ''}"
        )
    if action == "resolve-all":
        try:
            count = resolver.resolve_all()
        except StoreError as exc:
            log_error(LOGGER, f"Ghost resolution failed: {exc}")
            user_logger.info(f"ERROR: ghost resolution failed, {len(resolver.pending)} still pending")
        else:
            user_logger.info(f"Set {count} ghost(s) to {resolver.status}.")
    else:
        resolver.dismiss()
        if action == "report":
            user_logger.info("Ghosts left unresolved; rerun with --ghosts resolve-all to reassign them.")
    return resolver


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import incident spreadsheets into the LaserDesk store")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration file")
    parser.add_argument("--store-url", default=None, help="Override store.url from the configuration")
    parser.add_argument(
        "--ghosts",
        choices=["report", "resolve-all", "ignore"],
        default=None,
        help="What to do with ghost incidents (default: ghosts.action from the configuration)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("inputs", nargs="+", help="Spreadsheet files to import, in order")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; exit status 1 when at least one file failed."""
    args = build_arg_parser().parse_args(argv)
    config = load_config(args.config)
    get_logger(config, level=logging.DEBUG if args.verbose else logging.INFO)
    user_logger = get_user_logger(config)

    try:
        store = SqlRecordStore(args.store_url or config.store.url, page_size=config.store.page_size)
    except StoreError as exc:
        log_error(LOGGER, f"Cannot open store: {exc}")
        return 2

    timings: Dict[str, float] = {}
    start = start_phase_timer("Import")
    report = run_import(args.inputs, store, config, user_logger)
    end_phase_timer("Import", start, timings, user_logger)
    handle_ghosts(store, report, args.ghosts or config.ghosts.action, user_logger)
    for outcome in report.outcomes:
        user_logger.info(
            f"{outcome.name}: {outcome.status} ({outcome.kind.value}) "
            f"updated={outcome.updated} skipped={outcome.skipped} errors={outcome.errors}"
        )
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())

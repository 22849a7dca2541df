"""Report-ready aggregates computed from the reconciled store.

Two families of views:

- trend views over ``daily_backlog_snapshots`` (one row per date and region)
  with the daily opened/closed flows recounted from the incidents themselves;
- point-in-time views over the incidents: KPI counters, the regional backlog
  table, monthly SLA compliance and the supplier scorecard.

Rounding follows the dashboard: percentages and averages round half up.
"""
from __future__ import annotations

import calendar
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .config import MetricsConfig
from .dates import day_key, is_blank, parse_timestamp
from .layouts import (
    INCIDENTS_TABLE,
    REGIONS_TABLE,
    SNAPSHOTS_TABLE,
    is_active,
    is_backlog,
    is_closed,
    is_locker,
    is_suspended,
)
from .store import RecordStore, between, eq


LOGGER = logging.getLogger("laserdesk.metrics")

UNKNOWN_REGION = "N/D"
UNKNOWN_SUPPLIER = "N/A"
UNKNOWN_SLA_REGION = "Unknown"
SNAPSHOT_COUNTS = ("total_backlog", "suspended_count", "active_violations", "opened_today", "closed_today")
SNAPSHOT_COLUMNS = ("snapshot_date", "region") + SNAPSHOT_COUNTS
TREND_COLUMNS = ["date", "total", "suspended", "active", "opened", "closed", "sla_violations", "regions", "average", "sla"]
VALID_VERDICTS = frozenset({"SI", "NO"})
MINUTES_PER_DAY = 1440


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_one(value: float) -> float:
    """One decimal, half up."""
    return math.floor(value * 10 + 0.5) / 10


def sla_percent(violations: float, total: float) -> int:
    """Share of the backlog not in violation; 100 with no backlog."""
    if total > 0:
        return round_half_up(100 - (violations / total) * 100)
    return 100


# --- Time windows -----------------------------------------------------------


class TimeScope(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


@dataclass(frozen=True)
class TimeWindow:
    start: date
    end: date

    @property
    def start_key(self) -> str:
        return self.start.isoformat()

    @property
    def end_key(self) -> str:
        return self.end.isoformat()

    def contains(self, day: Optional[str]) -> bool:
        return day is not None and self.start_key <= day <= self.end_key


def month_window(year: int, month: int) -> TimeWindow:
    return TimeWindow(date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1]))


def time_window(scope: TimeScope | str, year: int, today: Optional[date] = None) -> TimeWindow:
    """Window of ``scope`` length containing today's month, moved into ``year``."""
    today = today or date.today()
    scope = TimeScope(scope)
    month = today.month
    if scope is TimeScope.MONTHLY:
        first, last = month, month
    elif scope is TimeScope.QUARTERLY:
        first = ((month - 1) // 3) * 3 + 1
        last = first + 2
    elif scope is TimeScope.SEMIANNUAL:
        first = ((month - 1) // 6) * 6 + 1
        last = first + 5
    else:
        first, last = 1, 12
    return TimeWindow(month_window(year, first).start, month_window(year, last).end)


# --- Snapshot trend ---------------------------------------------------------


def incident_flows(incidents: Iterable[Mapping[str, Any]]) -> Dict[Tuple[str, str], List[int]]:
    """Opened/closed counts per (day, region) from incident dates."""
    flows: Dict[Tuple[str, str], List[int]] = {}
    for inc in incidents:
        region = inc.get("regione") or "Unknown"
        opened = day_key(inc.get("data_apertura"))
        if opened:
            flows.setdefault((opened, region), [0, 0])[0] += 1
        closed = day_key(inc.get("data_chiusura"))
        if closed:
            flows.setdefault((closed, region), [0, 0])[1] += 1
    return flows


def snapshot_frame(rows: Iterable[Mapping[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    """Snapshot rows as a frame with day keys and integer counts."""
    if isinstance(rows, pd.DataFrame):
        records = rows.to_dict(orient="records")
    else:
        records = list(rows)
    frame = pd.DataFrame(
        [{c: r.get(c) for c in SNAPSHOT_COLUMNS} for r in records],
        columns=list(SNAPSHOT_COLUMNS),
    )
    frame["snapshot_date"] = frame["snapshot_date"].map(day_key)
    for col in SNAPSHOT_COUNTS:
        frame[col] = pd.to_numeric(frame[col], errors="coerce").fillna(0).astype(int)
    return frame


def enrich_snapshots(
    snapshots: Iterable[Mapping[str, Any]],
    incidents: Iterable[Mapping[str, Any]],
    visible_regions: Sequence[str],
    window: TimeWindow,
) -> pd.DataFrame:
    """Snapshot rows inside ``window`` and the visible regions.

    ``opened_today``/``closed_today`` are replaced with the counts recomputed
    from the incidents; the stored values are often zero. An empty region
    list means every region is visible.
    """
    frame = snapshot_frame(snapshots)
    if frame.empty:
        return frame
    in_window = frame["snapshot_date"].map(window.contains).astype(bool)
    frame = frame[in_window]
    visible = list(visible_regions or [])
    if visible:
        frame = frame[frame["region"].isin(visible)]
    frame = frame.copy()

    flows = incident_flows(incidents)
    keys = list(zip(frame["snapshot_date"], frame["region"]))
    frame["opened_today"] = [flows.get(k, (0, 0))[0] for k in keys]
    frame["closed_today"] = [flows.get(k, (0, 0))[1] for k in keys]
    return frame.sort_values("snapshot_date", kind="stable").reset_index(drop=True)


def daily_trend(
    snapshots: Iterable[Mapping[str, Any]],
    incidents: Iterable[Mapping[str, Any]],
    visible_regions: Sequence[str],
    window: TimeWindow,
) -> pd.DataFrame:
    """One row per snapshot date summed over the visible regions."""
    rows = enrich_snapshots(snapshots, incidents, visible_regions, window)
    if rows.empty:
        return pd.DataFrame(columns=TREND_COLUMNS)

    rows = rows.assign(active=rows["total_backlog"] - rows["suspended_count"])
    trend = (
        rows.groupby("snapshot_date", sort=True)
        .agg(
            total=("total_backlog", "sum"),
            suspended=("suspended_count", "sum"),
            active=("active", "sum"),
            opened=("opened_today", "sum"),
            closed=("closed_today", "sum"),
            sla_violations=("active_violations", "sum"),
            regions=("region", "count"),
        )
        .reset_index()
        .rename(columns={"snapshot_date": "date"})
    )
    trend["average"] = round_half_up(float(trend["total"].mean()))
    trend["sla"] = [sla_percent(v, t) for v, t in zip(trend["sla_violations"], trend["total"])]
    LOGGER.debug("Trend over %s..%s: %d day(s)", window.start_key, window.end_key, len(trend))
    return trend[TREND_COLUMNS]


@dataclass
class TrendSummary:
    current_backlog: int = 0
    average_backlog: int = 0
    average_sla: float = 0.0
    period_delta: int = 0
    total_opened: int = 0
    total_closed: int = 0


def summarize_trend(trend: pd.DataFrame) -> TrendSummary:
    if trend.empty:
        return TrendSummary()
    last = trend.iloc[-1]
    return TrendSummary(
        current_backlog=int(last["total"]),
        average_backlog=int(last["average"]),
        average_sla=float(trend["sla"].mean()),
        period_delta=int(last["total"]) - int(last["average"]),
        total_opened=int(trend["opened"].sum()),
        total_closed=int(trend["closed"].sum()),
    )


def _direction(current: float, period: float) -> str:
    if current > period:
        return "up"
    if current < period:
        return "down"
    return "flat"


def regional_trend(rows: Iterable[Mapping[str, Any]] | pd.DataFrame, today: Optional[date] = None) -> pd.DataFrame:
    """Per-region table over enriched snapshot rows, largest backlog first.

    Current figures come from each region's latest snapshot; the opened and
    closed trends compare the current calendar month's daily averages with
    the averages over every row given.
    """
    columns = [
        "region", "backlog", "suspended", "active", "closed", "grand_total", "avg_backlog",
        "avg_open_period", "avg_close_period", "avg_open_current", "avg_close_current",
        "open_trend", "close_trend", "over_threshold",
    ]
    frame = snapshot_frame(rows)
    if frame.empty:
        return pd.DataFrame(columns=columns)

    today = today or date.today()
    current = month_window(today.year, today.month)
    records = []
    for region, group in frame.groupby("region", sort=False):
        days = len(group)
        latest = group.sort_values("snapshot_date", kind="stable").iloc[-1]
        backlog = int(latest["total_backlog"])
        suspended = int(latest["suspended_count"])
        closed = int(group["closed_today"].sum())
        avg_backlog = round_half_up(group["total_backlog"].sum() / days)
        avg_open_period = round_one(group["opened_today"].sum() / days)
        avg_close_period = round_one(group["closed_today"].sum() / days)

        month_rows = group[group["snapshot_date"].map(current.contains).astype(bool)]
        if len(month_rows):
            avg_open_current = round_one(month_rows["opened_today"].sum() / len(month_rows))
            avg_close_current = round_one(month_rows["closed_today"].sum() / len(month_rows))
        else:
            avg_open_current = avg_close_current = 0.0

        records.append(
            {
                "region": region,
                "backlog": backlog,
                "suspended": suspended,
                "active": backlog - suspended,
                "closed": closed,
                "grand_total": backlog + closed,
                "avg_backlog": avg_backlog,
                "avg_open_period": avg_open_period,
                "avg_close_period": avg_close_period,
                "avg_open_current": avg_open_current,
                "avg_close_current": avg_close_current,
                "open_trend": _direction(avg_open_current, avg_open_period),
                "close_trend": _direction(avg_close_current, avg_close_period),
                "over_threshold": backlog > avg_backlog,
            }
        )
    records.sort(key=lambda r: r["backlog"], reverse=True)
    return pd.DataFrame(records, columns=columns)


def sla_heatmap(rows: Iterable[Mapping[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    """Region x date grid of per-snapshot SLA percentages."""
    frame = snapshot_frame(rows)
    if frame.empty:
        return pd.DataFrame()
    frame["sla"] = [sla_percent(v, t) for v, t in zip(frame["active_violations"], frame["total_backlog"])]
    return frame.pivot_table(index="region", columns="snapshot_date", values="sla", aggfunc="last")


# --- Point-in-time views over incidents ------------------------------------


def _text(value: Any) -> str:
    return str(value or "").strip().upper()


def _in_month(value: Any, year: int, month: int) -> bool:
    ts = parse_timestamp(value)
    return ts is not None and ts.year == year and ts.month == month


def _on_day(value: Any, day: date) -> bool:
    ts = parse_timestamp(value)
    return ts is not None and ts.date() == day


def _duration(value: Any) -> Optional[float]:
    if is_blank(value):
        return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(minutes) else minutes


def is_sla_breach(incident: Mapping[str, Any]) -> bool:
    return incident.get("violazione_avvenuta") is True


@dataclass
class KpiSummary:
    total: int = 0
    active: int = 0
    suspended: int = 0
    closed: int = 0
    sla_breach: int = 0
    opened_today: int = 0
    closed_today: int = 0


def kpi_summary(incidents: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> KpiSummary:
    """Headline counters. Openings count by last reassignment date."""
    today = today or date.today()
    summary = KpiSummary()
    for inc in incidents:
        stato = inc.get("stato")
        summary.total += 1
        summary.active += is_active(stato)
        summary.suspended += is_suspended(stato)
        summary.closed += is_closed(stato)
        summary.sla_breach += is_sla_breach(inc) and is_backlog(stato)
        summary.opened_today += _on_day(inc.get("data_ultima_riassegnazione"), today)
        summary.closed_today += _on_day(inc.get("chiuso"), today)
    return summary


REGIONAL_BACKLOG_COLUMNS = [
    "region", "total", "backlog", "suspended", "lockers", "sla_breach", "expiring_today",
    "planned_today", "opened_yesterday", "closed_yesterday", "opened_today", "closed_today",
]


def regional_backlog(
    incidents: Iterable[Mapping[str, Any]],
    today: Optional[date] = None,
    group_by: str = "regione",
) -> pd.DataFrame:
    """Backlog table per region (or per ``group_by`` value), largest first."""
    today = today or date.today()
    yesterday = today - timedelta(days=1)
    stats: Dict[str, Dict[str, Any]] = {}
    for inc in incidents:
        key = inc.get(group_by) or UNKNOWN_REGION
        stat = stats.setdefault(key, dict.fromkeys(REGIONAL_BACKLOG_COLUMNS, 0))
        stat["region"] = key
        stat["total"] += 1
        if is_backlog(inc.get("stato")):
            stat["backlog"] += 1
            stat["suspended"] += is_suspended(inc.get("stato"))
            stat["sla_breach"] += is_sla_breach(inc)
            stat["lockers"] += is_locker(inc)
            stat["expiring_today"] += _on_day(inc.get("data_esecuzione"), today)
        stat["opened_yesterday"] += _on_day(inc.get("data_ultima_riassegnazione"), yesterday)
        stat["closed_yesterday"] += _on_day(inc.get("chiuso"), yesterday)
        stat["opened_today"] += _on_day(inc.get("data_apertura"), today)
        stat["closed_today"] += _on_day(inc.get("chiuso"), today)
        stat["planned_today"] += _on_day(inc.get("pianificazione"), today)
    ordered = sorted(stats.values(), key=lambda s: s["backlog"], reverse=True)
    return pd.DataFrame(ordered, columns=REGIONAL_BACKLOG_COLUMNS)


def locker_backlog(incidents: Iterable[Mapping[str, Any]], today: Optional[date] = None) -> pd.DataFrame:
    """Backlog of the locker sub-fleet, one row per city."""
    return regional_backlog([i for i in incidents if is_locker(i)], today, group_by="citta")


@dataclass
class CohortSla:
    label: str
    service: str
    total: int = 0
    met: int = 0
    sla_pct: float = 100.0
    controllo_total: int = 0
    controllo_violations: int = 0
    controllo_pct: float = 100.0
    geo_pct: float = 100.0


@dataclass
class SlaReport:
    year: int
    month: int
    opened: int = 0
    closed: int = 0
    sla_breaches: int = 0
    controllo_breaches: int = 0
    cohorts: Dict[str, CohortSla] = field(default_factory=dict)
    previous: Optional["SlaReport"] = None

    @property
    def has_data(self) -> bool:
        return self.closed > 0

    def figures(self) -> Dict[str, float]:
        """Flat metric name -> value map, the shape compared month over month."""
        values: Dict[str, float] = {
            "opened": self.opened,
            "closed": self.closed,
            "sla_breaches": self.sla_breaches,
            "controllo_breaches": self.controllo_breaches,
        }
        for label, cohort in self.cohorts.items():
            key = label.lower()
            values[f"{key}_sla_pct"] = round_one(cohort.sla_pct)
            values[f"{key}_controllo_pct"] = round_one(cohort.controllo_pct)
            values[f"{key}_geo_pct"] = round_one(cohort.geo_pct)
        return values

    def deltas(self) -> Dict[str, Optional[float]]:
        """Current minus previous month per figure.

        A figure whose previous value is zero has no delta (``None``), which
        the dashboard renders as "-". Empty when no previous month is attached.
        """
        if self.previous is None:
            return {}
        before = self.previous.figures()
        result: Dict[str, Optional[float]] = {}
        for key, value in self.figures().items():
            prev = before.get(key, 0)
            result[key] = None if not prev else round_one(value - prev)
        return result


def _geo_compliance(closed: List[Mapping[str, Any]], service: str, threshold: float) -> float:
    regions = list(dict.fromkeys(i.get("regione") or UNKNOWN_REGION for i in closed))
    if not regions:
        return 100.0
    passing = 0
    for region in regions:
        subset = [
            i for i in closed
            if (i.get("regione") or UNKNOWN_REGION) == region
            and _text(i.get("servizio_hd")) == service
            and _text(i.get("in_sla")) in VALID_VERDICTS
        ]
        if not subset:
            passing += 1
            continue
        met = sum(_text(i.get("in_sla")) == "SI" for i in subset)
        if met / len(subset) * 100 >= threshold:
            passing += 1
    return passing / len(regions) * 100


def previous_month(year: int, month: int) -> Tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def sla_compliance(
    incidents: Iterable[Mapping[str, Any]],
    year: int,
    month: int,
    settings: Optional[MetricsConfig] = None,
    with_previous: bool = False,
) -> SlaReport:
    """Monthly SLA compliance over tickets closed in ``year``/``month``.

    For each cohort (``servizio_hd`` value) three figures are reported:

    - percent met among tickets carrying a SI/NO verdict;
    - "controllo": share of the cohort's closed tickets whose ``durata`` does
      not exceed the threshold (minutes);
    - geographic: share of regions whose met rate reaches the threshold; a
      region with no verdicts for the cohort passes.

    Every percentage is 100 when its denominator is zero. With
    ``with_previous`` the report of the month before is attached as
    :attr:`SlaReport.previous` for the month-over-month comparison.
    """
    settings = settings or MetricsConfig()
    incidents = list(incidents)
    closed = [i for i in incidents if _in_month(i.get("data_chiusura"), year, month)]
    report = SlaReport(
        year=year,
        month=month,
        opened=sum(_in_month(i.get("data_apertura"), year, month) for i in incidents),
        closed=len(closed),
        sla_breaches=sum(_text(i.get("in_sla")) == "NO" for i in closed),
    )

    for label, service in settings.cohorts.items():
        service = _text(service)
        cohort = [i for i in closed if _text(i.get("servizio_hd")) == service]
        judged = [i for i in cohort if _text(i.get("in_sla")) in VALID_VERDICTS]
        met = sum(_text(i.get("in_sla")) == "SI" for i in judged)
        violations = 0
        for inc in cohort:
            minutes = _duration(inc.get("durata"))
            if minutes is not None and minutes > settings.controllo_threshold_minutes:
                violations += 1
        stats = CohortSla(
            label=label,
            service=service,
            total=len(judged),
            met=met,
            sla_pct=met / len(judged) * 100 if judged else 100.0,
            controllo_total=len(cohort),
            controllo_violations=violations,
            controllo_pct=(len(cohort) - violations) / len(cohort) * 100 if cohort else 100.0,
            geo_pct=_geo_compliance(closed, service, settings.geo_threshold_pct),
        )
        report.cohorts[label] = stats
        report.controllo_breaches += violations

    if with_previous:
        report.previous = sla_compliance(incidents, *previous_month(year, month), settings=settings)
    LOGGER.debug("SLA %04d-%02d: closed=%d breaches=%d", year, month, report.closed, report.sla_breaches)
    return report


REGIONAL_SLA_COLUMNS = ["region", "total", "breaches", "compliance"]


def regional_sla(
    incidents: Iterable[Mapping[str, Any]],
    year: int,
    month: int,
    top: Optional[int] = 5,
) -> pd.DataFrame:
    """Per-region SLA over tickets closed in ``year``/``month``.

    A breach is an ``in_sla`` verdict of NO. Regions are ranked by breaches,
    most first, and cut to ``top`` rows (``None`` keeps them all).
    """
    stats: Dict[str, Dict[str, Any]] = {}
    for inc in incidents:
        if not _in_month(inc.get("data_chiusura"), year, month):
            continue
        region = inc.get("regione") or UNKNOWN_SLA_REGION
        stat = stats.setdefault(region, {"region": region, "total": 0, "breaches": 0})
        stat["total"] += 1
        stat["breaches"] += _text(inc.get("in_sla")) == "NO"
    rows = sorted(stats.values(), key=lambda s: s["breaches"], reverse=True)
    if top is not None:
        rows = rows[:top]
    for row in rows:
        row["compliance"] = (row["total"] - row["breaches"]) / row["total"] * 100
    return pd.DataFrame(rows, columns=REGIONAL_SLA_COLUMNS)


def monthly_flow(incidents: Iterable[Mapping[str, Any]], year: int, month: int) -> pd.DataFrame:
    """Opened/closed counts for each day of one month."""
    days = calendar.monthrange(year, month)[1]
    opened: Counter = Counter()
    closed: Counter = Counter()
    for inc in incidents:
        ts = parse_timestamp(inc.get("data_apertura"))
        if ts is not None and ts.year == year and ts.month == month:
            opened[ts.day] += 1
        ts = parse_timestamp(inc.get("data_chiusura"))
        if ts is not None and ts.year == year and ts.month == month:
            closed[ts.day] += 1
    return pd.DataFrame(
        {
            "day": list(range(1, days + 1)),
            "opened": [opened.get(d, 0) for d in range(1, days + 1)],
            "closed": [closed.get(d, 0) for d in range(1, days + 1)],
        }
    )


SCORECARD_COLUMNS = [
    "supplier", "volume", "closed", "breaches", "violation_pct", "sla_compliance",
    "parts", "devices", "avg_days", "penalties", "score",
]


def supplier_scorecard(
    incidents: Iterable[Mapping[str, Any]],
    year: int,
    month: int,
    top: Optional[int] = 5,
    rank_by: str = "volume",
    settings: Optional[MetricsConfig] = None,
) -> pd.DataFrame:
    """Per-supplier volume and SLA performance for one month.

    Volume and resource counts use tickets opened in the month; closures,
    breaches (``in_sla == NO``) and durations use tickets closed in it. A
    penalty is a breach that also ran past the control threshold. The score
    weighs SLA compliance 60 %, relative volume 30 % and penalty-free share
    10 %. Rows are ranked by ``volume`` or ``score`` and cut to ``top``.
    """
    if rank_by not in ("volume", "score"):
        raise ValueError(f"rank_by must be 'volume' or 'score', got '{rank_by}'")
    settings = settings or MetricsConfig()
    stats: Dict[str, Dict[str, float]] = {}

    def entry(name: str) -> Dict[str, float]:
        return stats.setdefault(
            name,
            {"volume": 0, "closed": 0, "breaches": 0, "parts": 0, "devices": 0,
             "duration": 0.0, "duration_count": 0, "penalties": 0},
        )

    incidents = list(incidents)
    for inc in incidents:
        if not _in_month(inc.get("data_apertura"), year, month):
            continue
        s = entry(inc.get("fornitore") or UNKNOWN_SUPPLIER)
        s["volume"] += 1
        s["parts"] += bool(inc.get("parti_richieste"))
        s["devices"] += bool(inc.get("richiesta_apparato"))

    for inc in incidents:
        if not _in_month(inc.get("data_chiusura"), year, month):
            continue
        s = entry(inc.get("fornitore") or UNKNOWN_SUPPLIER)
        s["closed"] += 1
        breach = _text(inc.get("in_sla")) == "NO"
        s["breaches"] += breach
        minutes = _duration(inc.get("durata"))
        if minutes is not None:
            s["duration"] += minutes
            s["duration_count"] += 1
            if breach and minutes > settings.controllo_threshold_minutes:
                s["penalties"] += 1

    max_volume = max([s["volume"] for s in stats.values()] + [1])
    rows = []
    for name, s in stats.items():
        closed = s["closed"]
        compliance = (closed - s["breaches"]) / closed * 100 if closed else 100.0
        penalty_score = 100 - (s["penalties"] / closed * 100 if closed else 0.0)
        volume_score = s["volume"] / max_volume * 100
        avg_minutes = s["duration"] / s["duration_count"] if s["duration_count"] else 0.0
        rows.append(
            {
                "supplier": name,
                "volume": int(s["volume"]),
                "closed": int(closed),
                "breaches": int(s["breaches"]),
                "violation_pct": round_one(s["breaches"] / closed * 100) if closed else 0.0,
                "sla_compliance": compliance,
                "parts": int(s["parts"]),
                "devices": int(s["devices"]),
                "avg_days": avg_minutes / MINUTES_PER_DAY,
                "penalties": int(s["penalties"]),
                "score": compliance * 0.6 + volume_score * 0.3 + penalty_score * 0.1,
            }
        )
    rows.sort(key=lambda r: r[rank_by], reverse=True)
    if top is not None:
        rows = rows[:top]
    return pd.DataFrame(rows, columns=SCORECARD_COLUMNS)


# --- Store reads ------------------------------------------------------------


@dataclass
class ReportInputs:
    window: TimeWindow
    snapshots: List[Dict[str, Any]] = field(default_factory=list)
    visible_regions: List[str] = field(default_factory=list)
    incidents: List[Dict[str, Any]] = field(default_factory=list)


def load_report_inputs(store: RecordStore, window: TimeWindow) -> ReportInputs:
    """Paged reads of everything the report views need."""
    snapshots = store.select_all(SNAPSHOTS_TABLE, between("snapshot_date", window.start_key, window.end_key))
    regions = [r["name"] for r in store.select_all(REGIONS_TABLE, [eq("visible", True)]) if r.get("name")]
    incidents = store.select_all(INCIDENTS_TABLE)
    LOGGER.info(
        "Report inputs %s..%s: %d snapshot rows, %d visible regions, %d incidents",
        window.start_key,
        window.end_key,
        len(snapshots),
        len(regions),
        len(incidents),
    )
    return ReportInputs(window=window, snapshots=snapshots, visible_regions=regions, incidents=incidents)

"""Date normalization for spreadsheet cells.

Spreadsheet exports mix three representations for the same column: native
date values (pandas hands these back as ``Timestamp``), serial day counts
anchored at the spreadsheet epoch, and free text. Every date column of every
feed goes through :func:`normalize_date` before it reaches the record store.
"""
from __future__ import annotations

import logging
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd


LOGGER = logging.getLogger("laserdesk.dates")

# Day zero of the spreadsheet serial calendar (serial 25569 == 1970-01-01).
SPREADSHEET_EPOCH = datetime(1899, 12, 30)
MS_PER_DAY = 86_400_000
DAY_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def is_blank(value: object) -> bool:
    """True for None, NaN/NaT and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet serial day count to a naive datetime.

    The fractional part is the time of day. Conversion goes through whole
    milliseconds so floating point noise never leaks into the seconds.
    """
    millis = int(round(float(serial) * MS_PER_DAY))
    return SPREADSHEET_EPOCH + timedelta(milliseconds=millis)


def _format(value: datetime, date_only: bool) -> str:
    if date_only:
        return value.strftime("%Y-%m-%d")
    return value.isoformat(timespec="seconds")


def normalize_date(value: object, date_only: bool = False) -> Optional[object]:
    """Return the canonical timestamp string for a raw cell value.

    - blank -> ``None``
    - ``datetime``/``Timestamp``/``date`` -> ISO-8601
    - numeric -> serial date from the 1899-12-30 epoch
    - anything else is returned unchanged (malformed text is not rejected)
    """
    if is_blank(value):
        return None

    if isinstance(value, pd.Timestamp):
        return _format(value.to_pydatetime(), date_only)
    if isinstance(value, datetime):
        return _format(value, date_only)
    if isinstance(value, date):
        return _format(datetime(value.year, value.month, value.day), date_only)

    # bool is an int subclass; a TRUE cell is not day one of the calendar
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        try:
            return _format(serial_to_datetime(float(value)), date_only)
        except (OverflowError, ValueError):
            LOGGER.debug("Serial date out of range, passing through: %r", value)
            return value

    LOGGER.debug("Unparsed date value passed through: %r", value)
    return value


def day_key(value: object) -> Optional[str]:
    """Return the ``YYYY-MM-DD`` part of a stored timestamp, if any."""
    if is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    prefix = str(value).strip().split("T")[0][:10]
    return prefix if DAY_PATTERN.fullmatch(prefix) else None


def parse_timestamp(value: object) -> Optional[pd.Timestamp]:
    """Best-effort parse of a stored timestamp; ``None`` when unparseable.

    Text must start with a ``YYYY-MM-DD`` date: a bare time such as
    ``10:00:00`` would otherwise be read as today.
    """
    if is_blank(value):
        return None
    if not isinstance(value, (datetime, date)) and day_key(value) is None:
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed

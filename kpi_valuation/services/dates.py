from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Tuple

from dateutil import parser as date_parser

from ..config import settings
from ..models import InputType, ProgressRecord

logger = logging.getLogger(__name__)

_BLANK_DATES = {"", "n/a", "na", "null", "none", "undefined", "-"}
_DAY_TOKEN = re.compile(r"^day\s*[-#:]?\s*(\d+)$", re.IGNORECASE)
_KNOWN_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d-%m-%Y", "%d.%m.%Y", "%d %b %Y", "%d %B %Y")
# Two defaults that differ in every field: a component the text left out shows
# up as a disagreement between the two parses.
_PARSE_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

WeekKey = Tuple[int, int]
MonthKey = Tuple[int, int]


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text.lower() in _BLANK_DATES:
        return None
    if "T" in text and text[:4].isdigit():
        text = text.split("T", 1)[0]
    for fmt in _KNOWN_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        first, second = (date_parser.parse(text, default=default) for default in _PARSE_DEFAULTS)
    except (ValueError, OverflowError, TypeError):
        return None
    if first.date() != second.date():
        logger.debug("incomplete date %r; ignored", value)
        return None
    return first.date()


def parse_day_token(value: Any, today: Optional[date] = None) -> Optional[date]:
    """Resolve a relative "Day N" token to ``today - N days``."""
    if value is None:
        return None
    match = _DAY_TOKEN.match(str(value).strip())
    if not match:
        return None
    reference = today or date.today()
    return reference - timedelta(days=int(match.group(1)))


def _first_date(candidates: Iterable[Any]) -> Optional[date]:
    for candidate in candidates:
        parsed = parse_date(candidate)
        if parsed is not None:
            return parsed
    return None


def effective_date(record: ProgressRecord, today: Optional[date] = None) -> Optional[date]:
    """Pick the date a record counts towards.

    Order: an explicit ``effective_date``; the field matching the input type
    (``actual_date`` for Actual, ``target_date`` for Planned); a relative
    "Day N" token; then any other date the record carries.
    """
    if record.effective_date is not None:
        return record.effective_date

    raw = record.raw_fields or {}
    if record.input_type is InputType.ACTUAL:
        preferred = (record.actual_date, raw.get("Actual Date"))
    else:
        preferred = (record.target_date, raw.get("Target Date"))
    resolved = _first_date(preferred)
    if resolved is not None:
        return resolved

    for token in (record.day, raw.get("Day")):
        relative = parse_day_token(token, today)
        if relative is not None:
            return relative

    resolved = _first_date(
        (
            record.activity_date,
            raw.get("Activity Date"),
            record.actual_date,
            record.target_date,
            raw.get("Actual Date"),
            raw.get("Target Date"),
        )
    )
    if resolved is None:
        logger.debug("no usable date record_id=%s; excluded from aggregation", record.id)
    return resolved


def legacy_week(value: date) -> int:
    # Jan 1 weekday counted from Sunday=0.
    jan1_weekday = (date(value.year, 1, 1).weekday() + 1) % 7
    return math.ceil((value.day + jan1_weekday) / 7)


def week_key(value: date, mode: Optional[str] = None) -> WeekKey:
    if (mode or settings.week_mode) == "iso":
        iso_year, iso_week, _ = value.isocalendar()
        return iso_week, iso_year
    return legacy_week(value), value.year


def month_key(value: date) -> MonthKey:
    return value.month, value.year

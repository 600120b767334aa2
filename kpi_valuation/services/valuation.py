from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ..config import settings
from ..models import InputType, ProgressRecord, RateCatalogEntry, RateSource, ValueSource
from .catalog import RateCatalog, find_activity
from .numbers import approx_equal, parse_number

logger = logging.getLogger(__name__)

_RAW_RATE_FIELDS = ("Rate", "rate")


@dataclass(frozen=True)
class ResolvedValue:
    rate: float
    base_value: float
    rate_source: RateSource
    value_source: ValueSource
    activity: Optional[RateCatalogEntry]


def derive_rate(activity: Optional[RateCatalogEntry]) -> float:
    if activity is None:
        return 0.0
    return activity.effective_rate


def _record_rate(record: ProgressRecord) -> float:
    raw = record.raw_fields or {}
    for key in _RAW_RATE_FIELDS:
        if raw.get(key) not in (None, ""):
            rate = parse_number(raw.get(key), field=key)
            if rate > 0:
                return rate
    return 0.0


def _zone_free_activity(record: ProgressRecord, catalog: Iterable[RateCatalogEntry]) -> Optional[RateCatalogEntry]:
    if isinstance(catalog, RateCatalog):
        return catalog.find(record, use_zone=False)
    return find_activity(record, catalog, use_zone=False)


def resolve_rate(
    record: ProgressRecord,
    activity: Optional[RateCatalogEntry],
    catalog: Iterable[RateCatalogEntry] = (),
    zone_fallback: bool = False,
) -> Tuple[float, RateSource, Optional[RateCatalogEntry]]:
    """``zone_fallback`` marks an ``activity`` the matcher found only after dropping the zone."""
    rate = derive_rate(activity)
    if rate > 0:
        return rate, RateSource.ZONE_FALLBACK if zone_fallback else activity.rate_source, activity

    rate = _record_rate(record)
    if rate > 0:
        return rate, RateSource.RECORD_RATE, activity

    fallback = _zone_free_activity(record, catalog)
    rate = derive_rate(fallback)
    if rate > 0:
        logger.debug("rate from zone-free match record_id=%s activity=%s", record.id, fallback.activity_name)
        return rate, RateSource.ZONE_FALLBACK, fallback
    return 0.0, RateSource.NONE, activity


def resolve_value(
    record: ProgressRecord,
    activity: Optional[RateCatalogEntry],
    catalog: Iterable[RateCatalogEntry] = (),
    tolerance: Optional[float] = None,
    zone_fallback: bool = False,
) -> ResolvedValue:
    """Turn a record's quantity into money.

    ``quantity * rate`` always wins when both are positive. Without a rate the
    record's own reported value is a last resort, unless it merely repeats the
    quantity, in which case nothing is invented and the value stays 0.
    """
    tol = settings.value_tolerance if tolerance is None else tolerance
    rate, rate_source, used = resolve_rate(record, activity, catalog, zone_fallback)
    quantity = record.quantity

    if quantity > 0:
        if rate > 0:
            return ResolvedValue(rate, quantity * rate, rate_source, ValueSource.RATE, used)
        reported = record.reported_value or 0.0
        if reported > 0 and approx_equal(reported, quantity, tol):
            logger.debug("reported value equals quantity record_id=%s value=%s; ignored", record.id, reported)
            return ResolvedValue(0.0, 0.0, rate_source, ValueSource.SUSPECT_QUANTITY, used)
        if reported > 0:
            return ResolvedValue(0.0, reported, rate_source, ValueSource.REPORTED_VALUE, used)
        return ResolvedValue(0.0, 0.0, rate_source, ValueSource.MISSING_RATE, used)

    if quantity == 0:
        if record.input_type is InputType.PLANNED:
            fallback, source = record.planned_value, ValueSource.PLANNED_VALUE
        else:
            fallback, source = record.actual_value, ValueSource.ACTUAL_VALUE
        if fallback is not None and fallback > 0:
            return ResolvedValue(rate, fallback, rate_source, source, used)
        return ResolvedValue(rate, 0.0, rate_source, ValueSource.NONE, used)

    logger.debug("negative quantity record_id=%s quantity=%s; value left at 0", record.id, quantity)
    return ResolvedValue(rate, 0.0, rate_source, ValueSource.NONE, used)

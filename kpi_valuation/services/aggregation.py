from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import DefaultDict, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import KpiValuationError
from ..models import Aggregate, InputType, ProgressRecord
from .dates import MonthKey, WeekKey, effective_date, month_key, week_key

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, str, InputType]
# Either aligned with the record batch by position, or keyed by record id.
Values = Union[Sequence[float], Mapping[str, float]]


def project_key(record: ProgressRecord) -> str:
    # Full code wins so "P4110" and "P4110-P" stay separate projects.
    return (record.project_full_code or record.project_code or "").strip().upper()


def group_key(record: ProgressRecord) -> GroupKey:
    return project_key(record), (record.activity_name or "").strip().lower(), record.input_type


def _value_at(values: Values, position: int, record: ProgressRecord) -> float:
    if isinstance(values, Mapping):
        return values.get(record.id, 0.0)
    return values[position]


def aggregate_for(
    record: ProgressRecord,
    records: Sequence[ProgressRecord],
    values: Values,
    today: Optional[date] = None,
    week_mode: Optional[str] = None,
) -> Aggregate:
    """Sum quantity and value of the record's group around its effective date.

    ``values`` is either a list aligned with ``records`` or a mapping by record
    id; pass the list when ids may repeat. Linear scan over ``records``;
    :class:`AggregationIndex` gives the same numbers without rescanning for
    every record.
    """
    result = Aggregate(record_id=record.id)
    focal_date = effective_date(record, today)
    if focal_date is None:
        return result

    focal_key = group_key(record)
    focal_week = week_key(focal_date, week_mode)
    focal_month = month_key(focal_date)
    for position, other in enumerate(records):
        if group_key(other) != focal_key:
            continue
        other_date = effective_date(other, today)
        if other_date is None:
            continue
        quantity = other.quantity
        value = _value_at(values, position, other)
        if other_date == focal_date:
            result.daily_quantity += quantity
            result.daily_value += value
        if week_key(other_date, week_mode) == focal_week:
            result.weekly_quantity += quantity
            result.weekly_value += value
        if month_key(other_date) == focal_month:
            result.monthly_quantity += quantity
            result.monthly_value += value
    return result


@dataclass
class _Totals:
    quantity: float = 0.0
    value: float = 0.0

    def add(self, quantity: float, value: float) -> None:
        self.quantity += quantity
        self.value += value


@dataclass
class _Group:
    daily: DefaultDict[date, _Totals] = field(default_factory=lambda: defaultdict(_Totals))
    weekly: DefaultDict[WeekKey, _Totals] = field(default_factory=lambda: defaultdict(_Totals))
    monthly: DefaultDict[MonthKey, _Totals] = field(default_factory=lambda: defaultdict(_Totals))
    dates: List[date] = field(default_factory=list)


class AggregationIndex:
    """Window totals precomputed once per batch.

    Records are bucketed by (project, activity, input type); each bucket keeps
    running totals per day, week and month, accumulated in batch order so the
    sums match :func:`aggregate_for` exactly. Effective dates are kept by batch
    position, so records sharing an id still count separately.
    """

    def __init__(
        self,
        groups: Dict[GroupKey, _Group],
        records: Tuple[ProgressRecord, ...],
        dates: Tuple[Optional[date], ...],
        today: Optional[date],
        week_mode: Optional[str],
    ):
        self._groups = groups
        self._records = records
        self._dates = dates
        self._positions: Dict[str, int] = {}
        for position, record in enumerate(records):
            self._positions.setdefault(record.id, position)
        self._today = today
        self._week_mode = week_mode

    @classmethod
    def build(
        cls,
        records: Sequence[ProgressRecord],
        values: Values,
        today: Optional[date] = None,
        week_mode: Optional[str] = None,
    ) -> "AggregationIndex":
        groups: Dict[GroupKey, _Group] = defaultdict(_Group)
        dates: List[Optional[date]] = []
        for position, record in enumerate(records):
            resolved = effective_date(record, today)
            dates.append(resolved)
            if resolved is None:
                continue
            group = groups[group_key(record)]
            value = _value_at(values, position, record)
            group.daily[resolved].add(record.quantity, value)
            group.weekly[week_key(resolved, week_mode)].add(record.quantity, value)
            group.monthly[month_key(resolved)].add(record.quantity, value)
            group.dates.append(resolved)
        for group in groups.values():
            group.dates.sort()
        logger.debug("aggregation index built records=%s groups=%s", len(records), len(groups))
        return cls(dict(groups), tuple(records), tuple(dates), today, week_mode)

    def __len__(self) -> int:
        return len(self._records)

    def dates_for(self, record: ProgressRecord) -> Tuple[date, ...]:
        """Date-sorted effective dates of every dated record in the record's group."""
        group = self._groups.get(group_key(record))
        return tuple(group.dates) if group else ()

    def _window(self, record: ProgressRecord, focal_date: Optional[date]) -> Aggregate:
        result = Aggregate(record_id=record.id)
        group = self._groups.get(group_key(record))
        if focal_date is None or group is None:
            return result
        daily = group.daily.get(focal_date)
        weekly = group.weekly.get(week_key(focal_date, self._week_mode))
        monthly = group.monthly.get(month_key(focal_date))
        if daily:
            result.daily_quantity, result.daily_value = daily.quantity, daily.value
        if weekly:
            result.weekly_quantity, result.weekly_value = weekly.quantity, weekly.value
        if monthly:
            result.monthly_quantity, result.monthly_value = monthly.quantity, monthly.value
        return result

    def aggregate_at(self, position: int) -> Aggregate:
        """Aggregate for the record at ``position`` in the indexed batch."""
        if not 0 <= position < len(self._records):
            raise KpiValuationError(f"Position {position} is outside the indexed batch of {len(self._records)}")
        return self._window(self._records[position], self._dates[position])

    def aggregate_for(self, record: ProgressRecord) -> Aggregate:
        if record.id not in self._positions:
            raise KpiValuationError(f"Record '{record.id}' was not part of the indexed batch")
        return self._window(record, effective_date(record, self._today))

    def aggregate_for_id(self, record_id: str) -> Aggregate:
        position = self._positions.get(record_id)
        if position is None:
            raise KpiValuationError(f"Record '{record_id}' was not part of the indexed batch")
        return self.aggregate_at(position)

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence

from ..errors import KpiValuationError
from ..models import InputType, ProgressRecord, Valuation, WorkValueStatus
from .dates import effective_date


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if not denominator:
        return None
    return numerator / denominator


def work_value_status(
    records: Sequence[ProgressRecord],
    valuations: Sequence[Valuation],
    cutoff: Optional[date] = None,
    today: Optional[date] = None,
) -> WorkValueStatus:
    """Project roll-up of planned and earned value up to ``cutoff``.

    ``cutoff`` defaults to yesterday. Total counts every Planned record;
    planned counts Planned records dated on or before the cutoff (undated ones
    included); earned does the same for Actual records. ``valuations`` is
    aligned with ``records`` by position.
    """
    reference = today or date.today()
    limit = cutoff or reference - timedelta(days=1)
    if len(valuations) != len(records):
        raise KpiValuationError(f"Got {len(valuations)} valuations for {len(records)} records")

    total = planned = earned = 0.0
    for record, valuation in zip(records, valuations):
        value = valuation.total_value
        when = effective_date(record, reference)
        in_window = when is None or when <= limit
        if record.input_type is InputType.PLANNED:
            total += value
            if in_window:
                planned += value
        elif in_window:
            earned += value

    return WorkValueStatus(total=total, planned=planned, earned=earned, spi=_ratio(earned, planned), as_of=limit)

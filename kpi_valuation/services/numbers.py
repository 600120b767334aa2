from __future__ import annotations

import logging
import math
import re
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

_NUMERIC_RUN = re.compile(r"-?[0-9]+[0-9,.\s]*")


def to_number(value: Any) -> Optional[float]:
    """Strict conversion: numbers and clean numeric strings only, ``None`` otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    try:
        parsed = float(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def parse_number(value: Any, *, field: str = "value") -> float:
    """Tolerant numeric parse used for hand-entered spreadsheet columns.

    Thousands separators and surrounding text ("1,250 m3") are dropped. Anything
    that still does not parse is logged and treated as 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, str) and not value.strip():
        return 0.0
    direct = to_number(value)
    if direct is not None:
        return direct
    match = _NUMERIC_RUN.search(str(value))
    if match:
        cleaned = re.sub(r"[^0-9.\-]", "", match.group(0))
        parsed = to_number(cleaned)
        if parsed is not None:
            return parsed
    logger.warning("malformed numeric input field=%s value=%r; treating as 0", field, value)
    return 0.0


def approx_equal(left: float, right: float, tolerance: float) -> bool:
    return abs(left - right) < tolerance

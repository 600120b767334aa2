from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .numbers import to_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VirtualMaterialResult:
    percentage: float
    amount: float
    total_value: float


def parse_percentage(raw: Any) -> float:
    """Read a project's virtual-material percentage.

    "15", "15%" and "0.15" all mean fifteen percent: values in (0, 1] are read
    as fractions. Blank input is 0; malformed input is logged and also 0.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = to_number(raw)
    else:
        text = str(raw).replace("%", "").replace(",", "")
        text = "".join(text.split())
        if not text:
            return 0.0
        value = to_number(text)
        if value is None:
            logger.warning("malformed virtual material percentage %r; treating as 0", raw)
            return 0.0
    if value is None:
        return 0.0
    if 0 < value <= 1:
        # 0.15 * 100 is not exactly 15.0 in binary floating point
        return round(value * 100, 9)
    return value


def apply_virtual_material(base_value: float, use_virtual_material: bool, percentage: Any) -> VirtualMaterialResult:
    pct = parse_percentage(percentage) if use_virtual_material else 0.0
    amount = base_value * pct / 100 if pct else 0.0
    return VirtualMaterialResult(percentage=pct, amount=amount, total_value=base_value + amount)

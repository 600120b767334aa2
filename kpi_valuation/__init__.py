"""KPI valuation and aggregation engine."""

from .errors import KpiValuationError
from .services.engine import KpiValuationEngine, KpiView

__all__ = ["KpiValuationEngine", "KpiValuationError", "KpiView"]

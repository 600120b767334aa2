from .kpi import (
    Aggregate,
    InputType,
    ProgressRecord,
    RateCatalogEntry,
    RateSource,
    ScopeMapping,
    Valuation,
    ValueSource,
    WorkValueStatus,
)

__all__ = [
    "Aggregate",
    "InputType",
    "ProgressRecord",
    "RateCatalogEntry",
    "RateSource",
    "ScopeMapping",
    "Valuation",
    "ValueSource",
    "WorkValueStatus",
]

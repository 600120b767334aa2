"""Service layer namespace."""

__all__ = [
    "aggregation",
    "catalog",
    "dates",
    "engine",
    "mappers",
    "numbers",
    "scope",
    "valuation",
    "virtual_material",
    "work_value",
    "zones",
]

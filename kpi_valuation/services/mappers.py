"""Build engine inputs from raw table rows.

The source tables are spreadsheet-shaped: human column names, numbers stored
as text with thousands separators, booleans as "TRUE"/"FALSE". These helpers
only reshape; no value is derived here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..models import InputType, ProgressRecord, RateCatalogEntry, ScopeMapping
from .numbers import parse_number

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "yes", "y", "1"}


def _first(row: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(row: Mapping[str, Any], *keys: str) -> str:
    value = _first(row, keys)
    return "" if value is None else str(value).strip()


def _optional_number(row: Mapping[str, Any], *keys: str) -> Optional[float]:
    value = _first(row, keys)
    if value is None:
        return None
    return parse_number(value, field=keys[0])


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def build_full_code(project_code: str, sub_code: str = "", full_code: str = "") -> str:
    """Rebuild "P9999-01" style full codes for rows saved before the column existed."""
    code = (project_code or "").strip()
    sub = (sub_code or "").strip()
    full = (full_code or "").strip()
    if not (code and sub):
        return full or code

    upper_code, upper_sub, upper_full = code.upper(), sub.upper(), full.upper()
    sub_contains_code = upper_code in upper_sub
    suffix = upper_sub.replace(upper_code, "").lstrip("-")

    if full and suffix in upper_full:
        return full
    if sub_contains_code and upper_full == upper_code:
        return sub
    if not sub_contains_code:
        return f"{code}{sub}" if sub.startswith("-") else f"{code}-{sub}"
    if not full:
        return sub if upper_sub.startswith(upper_code) else f"{code}-{sub}"
    return full


def record_from_row(
    row: Mapping[str, Any],
    input_type: Optional[InputType] = None,
    position: Optional[int] = None,
) -> ProgressRecord:
    """Map a KPI row.

    ``input_type`` names the table the row came from when the row itself does
    not say. ``position`` is the row's index in its batch; rows without an id
    are named "row-<position>" so they stay distinct.
    """
    raw_id = _first(row, ("id", "ID"))
    record_id = "" if raw_id is None else str(raw_id).strip()
    if not record_id:
        record_id = f"row-{position}" if position is not None else ""
        logger.warning("KPI row without id; using id=%r", record_id)

    code = _text(row, "Project Code", "project_code")
    full = build_full_code(
        code,
        _text(row, "Project Sub Code", "Project Sub-Code", "project_sub_code"),
        _text(row, "Project Full Code", "project_full_code"),
    )
    resolved_type = InputType.parse(_text(row, "Input Type", "input_type")) or input_type
    if resolved_type is None:
        logger.warning("KPI row id=%s has no input type; assuming Planned", record_id)
        resolved_type = InputType.PLANNED

    return ProgressRecord(
        id=record_id,
        project_code=code,
        project_full_code=full,
        activity_name=_text(
            row,
            "Activity Description",
            "Activity Name",
            "Activity",
            "activity_description",
            "activity_name",
            "activity",
        ),
        zone_label=_text(row, "Zone", "Zone Number", "zone"),
        input_type=resolved_type,
        quantity=parse_number(_first(row, ("Quantity", "quantity")), field="Quantity"),
        unit=_text(row, "Unit", "unit"),
        reported_value=_optional_number(row, "Value", "value"),
        planned_value=_optional_number(row, "Planned Value", "planned_value"),
        actual_value=_optional_number(row, "Actual Value", "actual_value"),
        actual_date=_text(row, "Actual Date", "actual_date") or None,
        target_date=_text(row, "Target Date", "target_date") or None,
        activity_date=_text(row, "Activity Date", "activity_date") or None,
        day=_text(row, "Day", "day") or None,
        raw_fields=dict(row),
    )


def activity_from_row(row: Mapping[str, Any]) -> RateCatalogEntry:
    code = _text(row, "Project Code", "project_code")
    full = build_full_code(
        code,
        _text(row, "Project Sub Code", "Project Sub-Code", "project_sub_code"),
        _text(row, "Project Full Code", "project_full_code"),
    )
    rate = _optional_number(row, "Rate", "rate")
    return RateCatalogEntry(
        id=_first(row, ("id", "ID")),
        project_code=code,
        project_full_code=full,
        activity_name=_text(row, "Activity Name", "Activity Description", "Activity", "activity_name", "activity"),
        zone_ref=_text(row, "Zone Ref", "Zone Number", "Zone #", "zone_ref", "zone_number"),
        total_value=parse_number(_first(row, ("Total Value", "total_value")), field="Total Value"),
        total_units=parse_number(
            _first(row, ("Total Units", "total_units", "Planned Units", "planned_units")),
            field="Total Units",
        ),
        rate=rate if rate and rate > 0 else None,
        use_virtual_material=_flag(_first(row, ("Use Virtual Material", "use_virtual_material"))),
    )


def records_from_rows(rows: Iterable[Mapping[str, Any]], input_type: Optional[InputType] = None) -> List[ProgressRecord]:
    return [record_from_row(row, input_type, position) for position, row in enumerate(rows)]


def catalog_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[RateCatalogEntry]:
    return [activity_from_row(row) for row in rows]


def scope_mappings_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[ScopeMapping]:
    mappings: List[ScopeMapping] = []
    for row in rows:
        name = _text(row, "Activity Name", "activity_name", "name")
        scope = _text(row, "Activity Scope", "activity_scope", "scope")
        if not name or not scope:
            continue
        mappings.append(ScopeMapping(activity_name_key=name, scope_label=scope))
    return mappings


def percentages_from_projects(rows: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Project code (and full code) -> raw "Virtual Material Value" string."""
    table: Dict[str, str] = {}
    for row in rows:
        raw = _first(row, ("Virtual Material Value", "virtual_material_value"))
        if raw is None:
            continue
        code = _text(row, "Project Code", "project_code")
        full = build_full_code(
            code,
            _text(row, "Project Sub Code", "Project Sub-Code", "project_sub_code"),
            _text(row, "Project Full Code", "project_full_code"),
        )
        for key in (full, code):
            if key:
                table.setdefault(key.upper(), str(raw).strip())
    return table

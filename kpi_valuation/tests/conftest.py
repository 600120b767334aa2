from __future__ import annotations

import pytest

from kpi_valuation.models import InputType, ProgressRecord, RateCatalogEntry


@pytest.fixture
def make_record():
    counter = {"next": 0}

    def _make(**fields) -> ProgressRecord:
        counter["next"] += 1
        payload = {
            "id": f"kpi-{counter['next']}",
            "project_code": "P100",
            "activity_name": "Excavation",
            "input_type": InputType.ACTUAL,
            "quantity": 100,
        }
        payload.update(fields)
        return ProgressRecord(**payload)

    return _make


@pytest.fixture
def make_activity():
    def _make(**fields) -> RateCatalogEntry:
        payload = {
            "project_code": "P100",
            "activity_name": "Excavation",
            "zone_ref": "Zone 2",
            "total_value": 5000,
            "total_units": 500,
        }
        payload.update(fields)
        return RateCatalogEntry(**payload)

    return _make

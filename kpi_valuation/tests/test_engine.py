from __future__ import annotations

from contextlib import contextmanager
from datetime import date

import pytest

from kpi_valuation import KpiValuationEngine
from kpi_valuation.config import settings
from kpi_valuation.models import InputType, RateSource, ScopeMapping, ValueSource
from kpi_valuation.services.catalog import RateCatalog
from kpi_valuation.services.mappers import records_from_rows
from kpi_valuation.services.scope import ScopeIndex

TODAY = date(2024, 5, 10)


@contextmanager
def valuation_cache(enabled: bool):
    original = settings.feature_valuation_cache
    settings.feature_valuation_cache = enabled
    try:
        yield
    finally:
        settings.feature_valuation_cache = original


@contextmanager
def valuation_cache_ttl(seconds: float):
    original = settings.valuation_cache_ttl_seconds
    settings.valuation_cache_ttl_seconds = seconds
    try:
        yield
    finally:
        settings.valuation_cache_ttl_seconds = original


@pytest.fixture
def excavation_record(make_record):
    return make_record(
        quantity=100,
        activity_name="Excavation",
        zone_label="P100-Zone 2",
        project_code="P100",
        actual_date="2024-05-03",
    )


def test_values_record_from_matching_zone(excavation_record, make_activity):
    engine = KpiValuationEngine([make_activity(zone_ref="Zone 2", total_value=5000, total_units=500)], today=TODAY)

    valuation = engine.value(excavation_record)

    assert valuation.rate == pytest.approx(10.0)
    assert valuation.base_value == pytest.approx(1000.0)
    assert valuation.virtual_material_amount == 0.0
    assert valuation.total_value == pytest.approx(1000.0)
    assert valuation.value_source is ValueSource.RATE


def test_virtual_material_applied_for_flagged_activity(excavation_record, make_activity):
    entry = make_activity(zone_ref="Zone 2", use_virtual_material=True)
    engine = KpiValuationEngine([entry], percentages={"p100": "20%"}, today=TODAY)

    valuation = engine.value(excavation_record)

    assert valuation.virtual_material_percentage == pytest.approx(20.0)
    assert valuation.virtual_material_amount == pytest.approx(200.0)
    assert valuation.total_value == pytest.approx(1200.0)


def test_unflagged_activity_ignores_project_percentage(excavation_record, make_activity):
    engine = KpiValuationEngine([make_activity(zone_ref="Zone 2")], percentages={"P100": "20%"}, today=TODAY)

    valuation = engine.value(excavation_record)

    assert valuation.total_value == valuation.base_value


def test_falls_back_to_rate_from_other_zone(excavation_record, make_activity):
    engine = KpiValuationEngine([make_activity(zone_ref="Zone 7")], today=TODAY)

    valuation = engine.value(excavation_record)

    assert valuation.rate == pytest.approx(10.0)
    assert valuation.base_value == pytest.approx(1000.0)
    assert valuation.matched_activity.zone_ref == "Zone 7"
    assert valuation.rate_source is RateSource.ZONE_FALLBACK


def test_unmatched_record_reports_missing_rate(make_record):
    engine = KpiValuationEngine([], today=TODAY)

    valuation = engine.value(make_record(quantity=25, reported_value=25))

    assert valuation.total_value == 0.0
    assert valuation.value_source is ValueSource.SUSPECT_QUANTITY
    assert valuation.matched_activity is None


def test_evaluate_bundles_value_scope_and_aggregate(make_record, make_activity):
    records = [
        make_record(activity_name="Guide Wall - Infra", quantity=10, actual_date="2024-05-03"),
        make_record(activity_name="Guide Wall - Infra", quantity=30, actual_date="2024-05-03"),
        make_record(activity_name="Painting", quantity=5, actual_date="2024-05-20"),
    ]
    catalog = [
        make_activity(activity_name="Guide Wall - Infra", zone_ref="", total_value=400, total_units=20),
        make_activity(activity_name="Painting", zone_ref="", total_value=0, total_units=0, rate=3),
    ]
    scopes = ScopeIndex.build([ScopeMapping(activity_name_key="guide wall", scope_label="Infra")])
    engine = KpiValuationEngine(catalog, scope_index=scopes, project_scopes={"P100": "Civil"}, today=TODAY)

    views = engine.evaluate(records)

    assert [view.record_id for view in views] == [record.id for record in records]
    assert [view.scope for view in views] == ["Infra", "Infra", "Civil"]
    assert views[0].valuation.total_value == pytest.approx(200.0)
    assert views[0].aggregate.daily_quantity == pytest.approx(40.0)
    assert views[1].aggregate.daily_value == pytest.approx(800.0)
    assert views[2].valuation.rate_source is RateSource.CATALOG_RATE
    assert views[2].aggregate.monthly_value == pytest.approx(15.0)
    assert engine.aggregate(records[0], records).model_dump() == views[0].aggregate.model_dump()


def test_valuations_memoized_per_catalog_version(excavation_record, make_activity):
    versioned = KpiValuationEngine(RateCatalog.build([make_activity()], version="v1"), today=TODAY)
    unversioned = KpiValuationEngine([make_activity()], today=TODAY)

    assert versioned.value(excavation_record) is versioned.value(excavation_record)
    assert unversioned.value(excavation_record) is not unversioned.value(excavation_record)

    with valuation_cache(False):
        versioned.clear_cache()
        assert versioned.value(excavation_record) is not versioned.value(excavation_record)


def test_work_value_status(make_record, make_activity):
    records = [
        make_record(input_type=InputType.PLANNED, quantity=10, target_date="2024-05-01"),
        make_record(input_type=InputType.PLANNED, quantity=10, target_date="2024-05-20"),
        make_record(input_type=InputType.ACTUAL, quantity=5, actual_date="2024-05-02"),
        make_record(input_type=InputType.ACTUAL, quantity=5, actual_date="2024-05-15"),
    ]
    engine = KpiValuationEngine([make_activity(zone_ref="")], today=TODAY)

    status = engine.work_value(records)

    assert status.as_of == date(2024, 5, 9)
    assert status.total == pytest.approx(200.0)
    assert status.planned == pytest.approx(100.0)
    assert status.earned == pytest.approx(50.0)
    assert status.spi == pytest.approx(0.5)


def test_work_value_status_without_planned_value(make_record):
    engine = KpiValuationEngine([], today=TODAY)

    status = engine.work_value([make_record(quantity=5, actual_date="2024-05-02")], cutoff=date(2024, 5, 31))

    assert status.planned == 0.0
    assert status.spi is None


def test_rows_without_ids_aggregate_separately():
    rows = [
        {"Project Code": "P100", "Activity Name": "Excavation", "Quantity": 10, "Value": "1000", "Actual Date": "2024-05-03"},
        {"Project Code": "P100", "Activity Name": "Excavation", "Quantity": 20, "Value": "5000", "Actual Date": "2024-05-04"},
    ]
    records = records_from_rows(rows, InputType.ACTUAL)
    engine = KpiValuationEngine([], today=TODAY)

    first, second = engine.evaluate(records)

    assert [first.record_id, second.record_id] == ["row-0", "row-1"]
    assert first.aggregate.daily_quantity == pytest.approx(10.0)
    assert first.aggregate.daily_value == pytest.approx(1000.0)
    assert first.aggregate.monthly_value == pytest.approx(6000.0)
    assert second.aggregate.daily_quantity == pytest.approx(20.0)


def test_repeated_ids_keep_their_own_values(make_record, make_activity):
    records = [
        make_record(id="dup", quantity=10, actual_date="2024-05-03"),
        make_record(id="dup", quantity=20, actual_date="2024-05-04"),
    ]
    engine = KpiValuationEngine(RateCatalog.build([make_activity(zone_ref="")], version="v1"), today=TODAY)

    first, second = engine.evaluate(records)

    assert first.valuation.total_value == pytest.approx(100.0)
    assert second.valuation.total_value == pytest.approx(200.0)
    assert first.aggregate.daily_quantity == pytest.approx(10.0)
    assert first.aggregate.daily_value == pytest.approx(100.0)
    assert second.aggregate.daily_value == pytest.approx(200.0)
    assert first.aggregate.monthly_value == pytest.approx(300.0)
    assert engine.work_value(records, cutoff=date(2024, 5, 31)).earned == pytest.approx(300.0)


def test_expired_valuations_are_swept_on_write(make_record, make_activity):
    engine = KpiValuationEngine(RateCatalog.build([make_activity()], version="v1"), today=TODAY)

    with valuation_cache_ttl(-1.0):
        for _ in range(5):
            engine.value(make_record())

    assert len(engine._cache) == 1

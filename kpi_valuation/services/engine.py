from __future__ import annotations

import logging
import time
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from ..config import settings
from ..models import Aggregate, ProgressRecord, RateCatalogEntry, Valuation, WorkValueStatus
from .aggregation import AggregationIndex, aggregate_for
from .catalog import RateCatalog
from .scope import EMPTY_SCOPE_INDEX, ScopeIndex, resolve_scope
from .valuation import resolve_value
from .virtual_material import apply_virtual_material
from .work_value import work_value_status

logger = logging.getLogger(__name__)

_CacheKey = Tuple[str, str]
_CacheEntry = Tuple[float, ProgressRecord, Valuation]


class KpiView(BaseModel):
    """Everything the engine derives for one record."""

    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(alias="recordId")
    valuation: Valuation
    scope: str
    aggregate: Aggregate


def _lookup_by_project(table: Mapping[str, str], record: ProgressRecord) -> Optional[str]:
    for code in (record.project_full_code, record.project_code):
        key = (code or "").strip().upper()
        if key and key in table:
            return table[key]
    return None


def _upper_keys(table: Optional[Mapping[str, str]]) -> Dict[str, str]:
    return {str(key).strip().upper(): value for key, value in (table or {}).items() if str(key).strip()}


class KpiValuationEngine:
    """Composes matching, valuation, scope and aggregation over one snapshot.

    The engine holds no state beyond the snapshots it was constructed with and
    an optional valuation memo keyed by ``(record id, catalog version)``.
    """

    def __init__(
        self,
        catalog: Union[RateCatalog, Sequence[RateCatalogEntry]],
        scope_index: ScopeIndex = EMPTY_SCOPE_INDEX,
        percentages: Optional[Mapping[str, str]] = None,
        project_scopes: Optional[Mapping[str, str]] = None,
        today: Optional[date] = None,
        week_mode: Optional[str] = None,
    ):
        self.catalog = catalog if isinstance(catalog, RateCatalog) else RateCatalog.build(catalog)
        self.scope_index = scope_index
        self.percentages = _upper_keys(percentages)
        self.project_scopes = _upper_keys(project_scopes)
        self.today = today
        self.week_mode = week_mode
        self._cache: Dict[_CacheKey, _CacheEntry] = {}

    def _cache_get(self, key: _CacheKey, record: ProgressRecord) -> Optional[Valuation]:
        entry = self._cache.get(key)
        if not entry:
            return None
        ts, cached_record, payload = entry
        if time.time() - ts > settings.valuation_cache_ttl_seconds:
            self._cache.pop(key, None)
            return None
        # Same id, different content: a repeated id in the batch.
        if cached_record != record:
            return None
        return payload

    def _cache_set(self, key: _CacheKey, record: ProgressRecord, payload: Valuation) -> None:
        now = time.time()
        ttl = settings.valuation_cache_ttl_seconds
        expired = [stale for stale, (ts, _, _) in self._cache.items() if now - ts > ttl]
        for stale in expired:
            del self._cache[stale]
        self._cache[key] = (now, record, payload)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cacheable(self, record: ProgressRecord) -> bool:
        return settings.feature_valuation_cache and bool(self.catalog.version) and bool(record.id)

    def value(self, record: ProgressRecord) -> Valuation:
        cache_key = (record.id, self.catalog.version)
        if self._cacheable(record):
            cached = self._cache_get(cache_key, record)
            if cached is not None:
                return cached

        activity, zone_fallback = self.catalog.locate(record)
        resolved = resolve_value(record, activity, self.catalog, zone_fallback=zone_fallback)
        used = resolved.activity
        percentage = _lookup_by_project(self.percentages, record)
        augmented = apply_virtual_material(
            resolved.base_value,
            used is not None and used.use_virtual_material,
            percentage,
        )
        valuation = Valuation(
            record_id=record.id,
            rate=resolved.rate,
            base_value=resolved.base_value,
            virtual_material_percentage=augmented.percentage,
            virtual_material_amount=augmented.amount,
            total_value=augmented.total_value,
            rate_source=resolved.rate_source,
            value_source=resolved.value_source,
            matched_activity=used,
        )
        if self._cacheable(record):
            self._cache_set(cache_key, record, valuation)
        return valuation

    def scope(self, record: ProgressRecord) -> str:
        default = _lookup_by_project(self.project_scopes, record)
        return resolve_scope(record.activity_name, self.scope_index, default=default)

    def aggregate(self, record: ProgressRecord, records: Iterable[ProgressRecord]) -> Aggregate:
        """Single-record aggregate using the linear scan."""
        batch = list(records)
        values = [self.value(other).total_value for other in batch]
        return aggregate_for(record, batch, values, today=self.today, week_mode=self.week_mode)

    def evaluate(self, records: Sequence[ProgressRecord]) -> List[KpiView]:
        started = time.perf_counter()
        valuations = [self.value(record) for record in records]
        values = [valuation.total_value for valuation in valuations]
        index = AggregationIndex.build(records, values, today=self.today, week_mode=self.week_mode)
        views = [
            KpiView(
                record_id=record.id,
                valuation=valuation,
                scope=self.scope(record),
                aggregate=index.aggregate_at(position),
            )
            for position, (record, valuation) in enumerate(zip(records, valuations))
        ]
        elapsed = (time.perf_counter() - started) * 1000
        logger.debug(
            "evaluate records=%s catalog=%s catalog_version=%s elapsed_ms=%.2f",
            len(records),
            len(self.catalog),
            self.catalog.version or "-",
            elapsed,
        )
        return views

    def work_value(self, records: Sequence[ProgressRecord], cutoff: Optional[date] = None) -> WorkValueStatus:
        valuations = [self.value(record) for record in records]
        return work_value_status(records, valuations, cutoff=cutoff, today=self.today)

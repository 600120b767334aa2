from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import ProgressRecord, RateCatalogEntry
from .zones import zone_key, zones_equal

logger = logging.getLogger(__name__)


def _codes(project_code: str, project_full_code: str) -> Tuple[str, ...]:
    return tuple(code.strip().upper() for code in (project_code, project_full_code) if code and code.strip())


def projects_match(record: ProgressRecord, entry: RateCatalogEntry) -> bool:
    """True when any record code equals any entry code, whichever field holds it."""
    record_codes = _codes(record.project_code, record.project_full_code)
    entry_codes = _codes(entry.project_code, entry.project_full_code)
    return any(code in entry_codes for code in record_codes)


def activity_names_match(left: str, right: str) -> bool:
    a = (left or "").strip().lower()
    b = (right or "").strip().lower()
    if not a or not b:
        return False
    return a == b or a in b or b in a


def record_zone(record: ProgressRecord) -> str:
    return zone_key(record.zone_label, record.project_code, record.project_full_code)


def entry_zone(entry: RateCatalogEntry) -> str:
    return zone_key(entry.zone_ref, entry.project_code, entry.project_full_code)


def _zone_accepts(record_token: str, entry: RateCatalogEntry) -> bool:
    if not record_token:
        return True
    return zones_equal(record_token, entry_zone(entry))


def find_activity(
    record: ProgressRecord,
    catalog: Iterable[RateCatalogEntry],
    use_zone: bool = True,
) -> Optional[RateCatalogEntry]:
    """First catalog entry (in catalog order) matching name, project and, optionally, zone."""
    token = record_zone(record) if use_zone else ""
    for entry in catalog:
        if not activity_names_match(record.activity_name, entry.activity_name):
            continue
        if not projects_match(record, entry):
            continue
        if use_zone and not _zone_accepts(token, entry):
            continue
        return entry
    return None


def locate_activity(
    record: ProgressRecord,
    catalog: Iterable[RateCatalogEntry],
) -> Tuple[Optional[RateCatalogEntry], bool]:
    """Zone-aware match, backing off to any zone of the same activity and project.

    Returns the entry and whether the zone constraint had to be dropped.
    """
    if isinstance(catalog, RateCatalog):
        return catalog.locate(record)
    entries = tuple(catalog)
    match = find_activity(record, entries, use_zone=True)
    if match is not None:
        return match, False
    fallback = find_activity(record, entries, use_zone=False)
    if fallback is not None:
        logger.debug(
            "zone fallback record_id=%s activity=%s zone=%s matched_zone=%s",
            record.id,
            record.activity_name,
            record.zone_label,
            fallback.zone_ref,
        )
        return fallback, True
    return None, False


def match_activity(record: ProgressRecord, catalog: Iterable[RateCatalogEntry]) -> Optional[RateCatalogEntry]:
    return locate_activity(record, catalog)[0]


@dataclass(frozen=True)
class RateCatalog:
    """Immutable snapshot of the rate catalog for one invocation.

    Entries are indexed by project code so lookups only scan the candidates for
    the record's project, still in catalog order. ``version`` identifies the
    snapshot for memoization.
    """

    entries: Tuple[RateCatalogEntry, ...]
    version: str = ""
    _by_code: Dict[str, Tuple[int, ...]] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def build(cls, entries: Sequence[RateCatalogEntry], version: str = "") -> "RateCatalog":
        snapshot = tuple(entries)
        by_code: Dict[str, List[int]] = defaultdict(list)
        for position, entry in enumerate(snapshot):
            for code in set(_codes(entry.project_code, entry.project_full_code)):
                by_code[code].append(position)
        return cls(
            entries=snapshot,
            version=version,
            _by_code={code: tuple(positions) for code, positions in by_code.items()},
        )

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def candidates(self, record: ProgressRecord) -> Tuple[RateCatalogEntry, ...]:
        positions = set()
        for code in _codes(record.project_code, record.project_full_code):
            positions.update(self._by_code.get(code, ()))
        return tuple(self.entries[position] for position in sorted(positions))

    def find(self, record: ProgressRecord, use_zone: bool = True) -> Optional[RateCatalogEntry]:
        return find_activity(record, self.candidates(record), use_zone=use_zone)

    def locate(self, record: ProgressRecord) -> Tuple[Optional[RateCatalogEntry], bool]:
        return locate_activity(record, self.candidates(record))

    def match(self, record: ProgressRecord) -> Optional[RateCatalogEntry]:
        return self.locate(record)[0]

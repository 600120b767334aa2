from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from ..config import settings
from ..models import ScopeMapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeIndex:
    """Read-only activity-name -> scope lookup, rebuilt whenever settings change."""

    lookup: Mapping[str, str]
    keys: Tuple[str, ...]

    @classmethod
    def build(cls, mappings: Iterable[ScopeMapping]) -> "ScopeIndex":
        lookup = {}
        for mapping in mappings:
            key = mapping.activity_name_key
            if not key:
                continue
            if key in lookup:
                if lookup[key] != mapping.scope_label:
                    logger.debug("duplicate scope key=%s kept=%s ignored=%s", key, lookup[key], mapping.scope_label)
                continue
            lookup[key] = mapping.scope_label
        return cls(lookup=MappingProxyType(lookup), keys=tuple(lookup))

    def __len__(self) -> int:
        return len(self.keys)

    def get(self, key: str) -> Optional[str]:
        return self.lookup.get(key) if key else None


EMPTY_SCOPE_INDEX = ScopeIndex(lookup=MappingProxyType({}), keys=())


def _segments(name: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in name.split("-"))


def _cascade(name: str, index: ScopeIndex) -> Optional[str]:
    exact = index.get(name)
    if exact is not None:
        return exact

    parts = _segments(name)
    if len(parts) > 1:
        head = index.get(parts[0])
        if head is not None:
            return head
        # Keep the original spacing so "a - b - c" looks up "a - b".
        trimmed = index.get(name[: name.rfind("-")].strip())
        if trimmed is not None:
            return trimmed

    for key in index.keys:
        if name.startswith(key) or key.startswith(name):
            return index.lookup[key]
    return None


def resolve_scope(
    activity_name: Optional[str],
    index: ScopeIndex,
    default: Optional[str] = None,
) -> str:
    """Classify an activity; falls back to ``default``, then the unknown label."""
    name = (activity_name or "").strip().lower()
    if name and len(index):
        found = _cascade(name, index)
        if found:
            return found
    if default and default.strip():
        return default.strip()
    return settings.unknown_scope_label

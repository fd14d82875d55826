"""
Short-lived in-memory cache of per-source lookup results.

Entries expire TTL seconds after insertion. Expiry is checked when an entry
is read; there is no background sweeper.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import settings
from .models import ResultMap


@dataclass
class CacheEntry:
    key: str
    value: ResultMap
    inserted_at: float


class ResultCache:
    def __init__(self, ttl_s: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = settings.cache_ttl_s if ttl_s is None else ttl_s
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, postal_code: str) -> Optional[ResultMap]:
        """Return a copy of the cached mapping, or None when absent or stale."""
        entry = self._entries.get(postal_code)
        if entry is None:
            return None
        if self._clock() - entry.inserted_at > self.ttl_s:
            del self._entries[postal_code]
            return None
        return dict(entry.value)

    def put(self, postal_code: str, mapping: ResultMap) -> None:
        self._entries[postal_code] = CacheEntry(postal_code, dict(mapping), self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, postal_code: str) -> bool:
        return postal_code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

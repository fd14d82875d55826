"""
Per-source health tracking.

Each source gets one SourceHealth record, updated only by probing that
source against a known-valid reference CEP. Status is advisory: resolvers
may reorder sources with it but never refuse to call one.
"""

import asyncio
import dataclasses
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from .config import settings
from .logger import get_logger
from .models import SourceHealth
from .sources.common import SourceAdapter

logger = get_logger()


class HealthTracker:
    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        reference_cep: Optional[str] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._sources: Dict[str, SourceAdapter] = {s.source_id: s for s in sources}
        self.reference_cep = reference_cep or settings.health_reference_cep
        self._now = now
        self._status: Dict[str, SourceHealth] = {
            s.source_id: SourceHealth(source_id=s.source_id, name=s.name, last_checked_at=now())
            for s in sources
        }

    async def probe(self, source_id: str) -> bool:
        """Check one source and update its record. Never raises."""
        source = self._sources.get(source_id)
        if source is None:
            logger.warning("Probe requested for unknown source", source_id=source_id)
            return False

        start = time.monotonic()
        try:
            online = await source.probe(self.reference_cep)
        except Exception as e:
            # a misbehaving adapter counts as offline
            logger.error("Source probe raised", source_id=source_id, error=str(e))
            online = False
        elapsed_ms = int((time.monotonic() - start) * 1000)

        record = self._status[source_id]
        record.is_online = online
        record.last_checked_at = self._now()
        record.last_response_time_ms = elapsed_ms if online else 0

        if not online:
            logger.warning(f"{record.name} is offline", source_id=source_id)
        return online

    async def refresh(self) -> Dict[str, bool]:
        """Probe every source concurrently."""
        ids = list(self._sources)
        outcomes = await asyncio.gather(*(self.probe(source_id) for source_id in ids))
        return dict(zip(ids, outcomes))

    def is_online(self, source_id: str) -> bool:
        record = self._status.get(source_id)
        return record.is_online if record else False

    def status(self) -> List[SourceHealth]:
        """Snapshot copy of every record, in source priority order."""
        return [dataclasses.replace(record) for record in self._status.values()]

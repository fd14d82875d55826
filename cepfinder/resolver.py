"""
Single-CEP resolution across every configured source.

Two policies share one Resolver:

- ordered fallback: sources one at a time in priority order, first success
  wins, exhaustion raises NotFoundAnywhere;
- all sources: every source queried concurrently, every outcome kept in a
  per-source map which is cached. When all of them fail, one ordered
  fallback pass is folded into the map under UNIFIED_SOURCE.

Adapter failures never escape as exceptions. Only InvalidFormat and
NotFoundAnywhere reach the caller.
"""

import asyncio
import dataclasses
import time
from typing import List, Optional, Sequence, Union

from .cache import ResultCache
from .errors import NotFoundAnywhere
from .health import HealthTracker
from .logger import get_logger
from .models import CanonicalAddress, Failure, ResultMap, SourceResult, Success
from .normalize import format_cep, normalize_cep
from .sources.common import SourceAdapter

logger = get_logger()

MODE_FALLBACK = "fallback"
MODE_ALL = "all"
MODES = (MODE_FALLBACK, MODE_ALL)

UNIFIED_SOURCE = "Sistema Unificado"


class Resolver:
    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        cache: Optional[ResultCache] = None,
        health: Optional[HealthTracker] = None,
        fanout_concurrency: Optional[int] = None,
        probe_on_miss: bool = True,
    ):
        if not sources:
            raise ValueError("Resolver needs at least one source")
        self.sources: List[SourceAdapter] = list(sources)
        self.cache = cache if cache is not None else ResultCache()
        self.health = health if health is not None else HealthTracker(self.sources)
        self.fanout_concurrency = fanout_concurrency or len(self.sources)
        self.probe_on_miss = probe_on_miss

    def fallback_order(self) -> List[SourceAdapter]:
        """Priority order with sources last seen offline moved to the end."""
        online = [s for s in self.sources if self.health.is_online(s.source_id)]
        offline = [s for s in self.sources if not self.health.is_online(s.source_id)]
        return online + offline

    async def lookup(self, cep: str, mode: str = MODE_FALLBACK) -> Union[CanonicalAddress, ResultMap]:
        if mode == MODE_FALLBACK:
            return await self.lookup_fallback(cep)
        if mode == MODE_ALL:
            return await self.lookup_all(cep)
        raise ValueError(f"Unknown lookup mode: {mode!r} (expected one of {', '.join(MODES)})")

    async def lookup_fallback(self, cep: str) -> CanonicalAddress:
        """Return the first successful source's address.

        Raises:
            InvalidFormat: cep does not have 8 digits
            NotFoundAnywhere: every source failed
        """
        clean = normalize_cep(cep)
        failures = []

        for source in self.fallback_order():
            result = await source.resolve(clean)
            if result.ok:
                logger.info(f"CEP {format_cep(clean)} encontrado via {result.source_name}")
                return result.address
            failures.append((result.source_name, result.reason))

        logger.warning("Todas as fontes falharam", cep=clean, failures=failures)
        raise NotFoundAnywhere(clean, failures)

    async def lookup_all(self, cep: str) -> ResultMap:
        """Query every source and return {source name: result}.

        A map made only of failures is a normal return value.
        """
        clean = normalize_cep(cep)

        cached = self.cache.get(clean)
        if cached is not None:
            logger.record_cache_hit()
            logger.debug("Cache hit", cep=clean)
            return cached
        logger.record_cache_miss()

        if self.probe_on_miss:
            await self.health.refresh()

        semaphore = asyncio.Semaphore(self.fanout_concurrency)

        async def run(source: SourceAdapter) -> SourceResult:
            async with semaphore:
                return await source.resolve(clean)

        outcomes = await asyncio.gather(*(run(s) for s in self.sources), return_exceptions=True)

        results: ResultMap = {}
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.error(f"{source.name} raised during fan-out", cep=clean, error=repr(outcome))
                outcome = Failure(source.name, f"Erro inesperado: {outcome}")
            results[source.name] = outcome

        if not any(r.ok for r in results.values()):
            results[UNIFIED_SOURCE] = await self._unified(clean)

        self.cache.put(clean, results)
        return dict(results)

    async def _unified(self, clean: str) -> SourceResult:
        start = time.monotonic()
        try:
            address = await self.lookup_fallback(clean)
        except NotFoundAnywhere as e:
            return Failure(UNIFIED_SOURCE, str(e), int((time.monotonic() - start) * 1000))
        unified = dataclasses.replace(address, source_name=f"{address.source_name} (Fallback)")
        return Success(unified, int((time.monotonic() - start) * 1000))

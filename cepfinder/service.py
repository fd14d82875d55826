"""
Consumer-facing entry point.

CepService wires the sources, the shared cache and the health tracker into
the single-lookup, batch and address-search resolvers. Pass your own
collaborators to isolate tests from the network.
"""

from typing import Iterable, List, Optional, Sequence, Union

from .batch import BatchJob, BatchResolver, CancellationToken, ProgressCallback
from .cache import ResultCache
from .health import HealthTracker
from .models import (
    AddressCandidate,
    BatchItem,
    BatchResult,
    CanonicalAddress,
    ResultMap,
    SourceHealth,
)
from .resolver import MODE_FALLBACK, Resolver
from .search import AddressSearchResolver, QueryInput
from .sources import default_sources
from .sources.common import SourceAdapter
from .sources.viacep import ViaCepSource


class CepService:
    def __init__(
        self,
        sources: Optional[Sequence[SourceAdapter]] = None,
        cache: Optional[ResultCache] = None,
        health: Optional[HealthTracker] = None,
        search_source: Optional[ViaCepSource] = None,
        chunk_size: Optional[int] = None,
        throttle_s: Optional[float] = None,
    ):
        self.sources = list(sources) if sources is not None else default_sources()
        self.cache = cache if cache is not None else ResultCache()
        self.health = health if health is not None else HealthTracker(self.sources)
        self.resolver = Resolver(self.sources, cache=self.cache, health=self.health)
        self.batch = BatchResolver(self.resolver, chunk_size=chunk_size, throttle_s=throttle_s)
        if search_source is None:
            search_source = next((s for s in self.sources if isinstance(s, ViaCepSource)), None)
        self.address_search = AddressSearchResolver(search_source)

    async def lookup_single(self, cep: str, mode: str = MODE_FALLBACK) -> Union[CanonicalAddress, ResultMap]:
        """One CEP: a CanonicalAddress (fallback) or a per-source map (all)."""
        return await self.resolver.lookup(cep, mode)

    def start_batch(
        self,
        items: Iterable[Union[str, BatchItem]],
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> BatchJob:
        """Create a job the caller can pause, resume or cancel, then ``await job.run()``."""
        return self.batch.create_job(items, concurrency_limit, on_progress, token)

    async def lookup_batch(
        self,
        items: Iterable[Union[str, BatchItem]],
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[BatchResult]:
        return await self.batch.run(items, concurrency_limit, on_progress, token)

    async def search_by_address(self, query: QueryInput) -> List[AddressCandidate]:
        return await self.address_search.search(query)

    async def search_many(self, queries: Sequence[QueryInput]) -> List[AddressCandidate]:
        return await self.address_search.search_many(queries)

    async def refresh_health(self) -> List[SourceHealth]:
        await self.health.refresh()
        return self.health.status()

    def get_source_health(self) -> List[SourceHealth]:
        return self.health.status()

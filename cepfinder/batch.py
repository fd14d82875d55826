"""
Batch CEP resolution with bounded concurrency.

Items are split into fixed-size chunks processed one after another. Inside a
chunk every item runs through the resolver's ordered fallback, at most
``concurrency_limit`` at a time, and rows are joined back by index so output
order always matches input order.

Control is cooperative: cancellation and pause are observed at chunk
boundaries only. A chunk that settles after cancellation is discarded, so a
cancelled job holds whole chunks only.
"""

import asyncio
import inspect
import time
from collections import Counter
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional, Union

from .config import settings
from .errors import Cancelled, InvalidFormat, NotFoundAnywhere
from .logger import get_logger
from .models import (
    STATUS_ERROR,
    STATUS_FOUND,
    STATUS_NOT_FOUND,
    AddressOnlyItem,
    BatchItem,
    BatchProgress,
    BatchResult,
    BatchStats,
)
from .resolver import Resolver
from .schema import to_batch_item

logger = get_logger()

SYSTEM_SOURCE = "Sistema"
ADDRESS_SEARCH_UNSUPPORTED = "Busca por endereço não implementada neste contexto"

ProgressCallback = Callable[[BatchProgress], Optional[Awaitable[None]]]


class BatchState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class CancellationToken:
    """Cooperative cancellation flag that can also be awaited."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class BatchJob:
    """One submitted batch: its items, cursor, results and control state."""

    def __init__(
        self,
        items: Iterable[Union[str, BatchItem]],
        resolver: Resolver,
        concurrency_limit: Optional[int] = None,
        chunk_size: Optional[int] = None,
        throttle_s: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
        refresh_health: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.items: List[BatchItem] = [to_batch_item(item) for item in items]
        self.resolver = resolver
        self.concurrency_limit = concurrency_limit or settings.batch_concurrency
        self.chunk_size = chunk_size or settings.batch_chunk_size
        self.throttle_s = settings.batch_throttle_s if throttle_s is None else throttle_s
        self.on_progress = on_progress
        self.token = token or CancellationToken()
        self.refresh_health = refresh_health
        self._clock = clock

        if self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        self.state = BatchState.PENDING
        self.cursor = 0
        self.results: List[BatchResult] = []
        self.counts: Counter = Counter()
        self._resume = asyncio.Event()
        self._resume.set()
        self._started_at: Optional[float] = None

    # Control

    def pause(self) -> None:
        if self.state in (BatchState.PENDING, BatchState.RUNNING):
            self._resume.clear()
            self.state = BatchState.PAUSED
            logger.info("Batch paused", processed=self.cursor, total=len(self.items))

    def resume(self) -> None:
        if self.state == BatchState.PAUSED:
            self.state = BatchState.RUNNING if self._started_at is not None else BatchState.PENDING
            self._resume.set()
            logger.info("Batch resumed", processed=self.cursor, total=len(self.items))

    def cancel(self) -> None:
        self.token.cancel()

    @property
    def is_paused(self) -> bool:
        return not self._resume.is_set()

    # Execution

    async def run(self) -> List[BatchResult]:
        """Process every chunk and return the rows, partial if cancelled."""
        if self._started_at is not None:
            raise RuntimeError("Batch job already started")
        self._started_at = self._clock()
        if not self.is_paused:
            self.state = BatchState.RUNNING

        total = len(self.items)
        logger.info(
            "Batch started",
            total=total,
            chunk_size=self.chunk_size,
            concurrency_limit=self.concurrency_limit,
        )

        if self.refresh_health and total:
            await self.resolver.health.refresh()

        semaphore = asyncio.Semaphore(self.concurrency_limit)
        try:
            for start in range(0, total, self.chunk_size):
                self._raise_if_cancelled()
                await self._wait_while_paused()

                chunk = self.items[start:start + self.chunk_size]
                rows = await asyncio.gather(*(self._resolve_item(item, semaphore) for item in chunk))

                self._raise_if_cancelled()
                self.results.extend(rows)
                self.cursor += len(chunk)
                self.counts.update(row.status for row in rows)

                await self._wait_while_paused()
                await self._emit_progress()

                if self.cursor < total and self.throttle_s > 0:
                    await asyncio.sleep(self.throttle_s)
        except Cancelled:
            self.state = BatchState.CANCELLED
            logger.warning("Batch cancelled", processed=self.cursor, total=total)
            return list(self.results)

        self.state = BatchState.COMPLETED
        logger.info(
            "Batch completed",
            total=total,
            found=self.counts[STATUS_FOUND],
            not_found=self.counts[STATUS_NOT_FOUND],
            errors=self.counts[STATUS_ERROR],
        )
        return list(self.results)

    def _raise_if_cancelled(self) -> None:
        if self.token.cancelled:
            raise Cancelled(f"Batch cancelado após {self.cursor} de {len(self.items)} itens")

    async def _wait_while_paused(self) -> None:
        """Block until resumed or cancelled; no polling."""
        if self._resume.is_set():
            return
        self.state = BatchState.PAUSED
        resumed = asyncio.ensure_future(self._resume.wait())
        cancelled = asyncio.ensure_future(self.token.wait())
        try:
            await asyncio.wait({resumed, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            resumed.cancel()
            cancelled.cancel()
        self._raise_if_cancelled()
        self.state = BatchState.RUNNING

    async def _resolve_item(self, item: BatchItem, semaphore: asyncio.Semaphore) -> BatchResult:
        if isinstance(item, AddressOnlyItem):
            return BatchResult(
                postal_code=item.label,
                status=STATUS_ERROR,
                source_name=SYSTEM_SOURCE,
                elapsed_ms=0,
                error=ADDRESS_SEARCH_UNSUPPORTED,
                origin=item.origin,
            )

        async with semaphore:
            start = self._clock()
            try:
                address = await self.resolver.lookup_fallback(item.postal_code)
            except (InvalidFormat, NotFoundAnywhere) as e:
                return BatchResult(
                    postal_code=item.postal_code,
                    status=STATUS_NOT_FOUND,
                    source_name=SYSTEM_SOURCE,
                    elapsed_ms=self._elapsed_ms(start),
                    error=str(e),
                    origin=item.origin,
                )
            except Exception as e:
                logger.error("Unexpected error resolving batch item", cep=item.postal_code, error=repr(e))
                return BatchResult(
                    postal_code=item.postal_code,
                    status=STATUS_ERROR,
                    source_name=SYSTEM_SOURCE,
                    elapsed_ms=self._elapsed_ms(start),
                    error=str(e) or type(e).__name__,
                    origin=item.origin,
                )
            return BatchResult.found(address, self._elapsed_ms(start), item.origin)

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    def progress(self) -> BatchProgress:
        total = len(self.items)
        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        remaining = 0.0
        if self.cursor:
            remaining = (total - self.cursor) * (elapsed / self.cursor)
        return BatchProgress(
            processed=self.cursor,
            total=total,
            found=self.counts[STATUS_FOUND],
            not_found=self.counts[STATUS_NOT_FOUND],
            errors=self.counts[STATUS_ERROR],
            elapsed_seconds=elapsed,
            remaining_seconds=remaining,
        )

    async def _emit_progress(self) -> None:
        snapshot = self.progress()
        logger.debug(
            "Batch progress",
            processed=snapshot.processed,
            total=snapshot.total,
            percentage=snapshot.percentage,
        )
        if self.on_progress is None:
            return
        outcome = self.on_progress(snapshot)
        if inspect.isawaitable(outcome):
            await outcome


class BatchResolver:
    """Creates and runs BatchJobs against one Resolver."""

    def __init__(
        self,
        resolver: Resolver,
        chunk_size: Optional[int] = None,
        throttle_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver
        self.chunk_size = chunk_size or settings.batch_chunk_size
        self.throttle_s = settings.batch_throttle_s if throttle_s is None else throttle_s
        self._clock = clock

    def create_job(
        self,
        items: Iterable[Union[str, BatchItem]],
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> BatchJob:
        return BatchJob(
            items,
            self.resolver,
            concurrency_limit=concurrency_limit,
            chunk_size=self.chunk_size,
            throttle_s=self.throttle_s,
            on_progress=on_progress,
            token=token,
            clock=self._clock,
        )

    async def run(
        self,
        items: Iterable[Union[str, BatchItem]],
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[BatchResult]:
        job = self.create_job(items, concurrency_limit, on_progress, token)
        return await job.run()


def batch_stats(rows: List[BatchResult]) -> BatchStats:
    """Summary of a batch: counts, timings and most used sources."""
    total = len(rows)
    statuses = Counter(row.status for row in rows)
    total_elapsed = sum(row.elapsed_ms for row in rows)
    sources = Counter(row.source_name for row in rows if row.status == STATUS_FOUND)

    return BatchStats(
        total=total,
        found=statuses[STATUS_FOUND],
        not_found=statuses[STATUS_NOT_FOUND],
        errors=statuses[STATUS_ERROR],
        mean_elapsed_ms=total_elapsed / total if total else 0.0,
        total_elapsed_ms=total_elapsed,
        top_sources=[{"source": name, "count": count} for name, count in sources.most_common()],
        success_rate=statuses[STATUS_FOUND] / total * 100 if total else 0.0,
    )


AVERAGE_MS_PER_CEP = 800
CHUNK_OVERHEAD_MS = 200


def estimate_processing_time(count: int, concurrency_limit: int = 5) -> float:
    """Rough wall time in milliseconds for a batch of ``count`` CEPs."""
    chunks = -(-count // concurrency_limit)
    return count * AVERAGE_MS_PER_CEP / concurrency_limit + chunks * CHUNK_OVERHEAD_MS

"""
Debounced batch scheduling of paragraph translations.

Paragraphs submitted in quick succession are collected, and once no new
paragraph has arrived for ``debounce_delay`` seconds the queue is packed
into batches that are dispatched concurrently, one upstream call each.

Each dispatch is tagged with the scheduler epoch at the time it started.
``cancel_pending`` bumps the epoch, so a batch that was already in flight
can tell (through ``is_current``) that its results must not be written
back.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from adaptran.core.exceptions import BatchFailure
from adaptran.core.models import BatchConfig, ParagraphRequest, ParagraphResult, ParagraphStatus

logger = logging.getLogger(__name__)

DispatchFn = Callable[[List[ParagraphRequest], Callable[[], bool]], Awaitable[List[ParagraphResult]]]


class SchedulerState(Enum):
    """Where the scheduler is in the current translation cycle."""
    IDLE = "idle"
    COLLECTING = "collecting"
    DEBOUNCING = "debouncing"
    DISPATCHED = "dispatched"


class BatchState(Enum):
    """Lifecycle of one dispatched batch."""
    DISPATCHED = "dispatched"
    SETTLED = "settled"
    FAILED = "failed"
    DISCARDED = "discarded"  # Finished after its epoch was cancelled


def split_into_batches(
    paragraphs: Sequence[ParagraphRequest],
    max_paragraphs: int = 15,
    max_chars: int = 10000
) -> List[List[ParagraphRequest]]:
    """
    Greedy bin-packing of paragraphs into batches.

    A batch is closed when adding the next paragraph would exceed either
    limit. Paragraphs are never split and keep their input order; a single
    paragraph longer than ``max_chars`` gets a batch of its own.

    Args:
        paragraphs: Paragraphs in submission order
        max_paragraphs: Maximum paragraphs per batch
        max_chars: Maximum total characters per batch

    Returns:
        List of batches
    """
    batches: List[List[ParagraphRequest]] = []
    current: List[ParagraphRequest] = []
    current_chars = 0

    for para in paragraphs:
        length = len(para.text)
        if current and (len(current) >= max_paragraphs or current_chars + length > max_chars):
            batches.append(current)
            current = []
            current_chars = 0
        current.append(para)
        current_chars += length

    if current:
        batches.append(current)

    return batches


@dataclass
class Batch:
    """One group of paragraphs sent in a single upstream call."""
    id: int
    paragraphs: List[ParagraphRequest]
    epoch: int
    futures: Dict[str, "asyncio.Future[ParagraphResult]"] = field(default_factory=dict)
    state: BatchState = BatchState.DISPATCHED
    dispatched_at: float = 0.0
    finished_at: Optional[float] = None
    error: Optional[BaseException] = None

    @property
    def char_count(self) -> int:
        return sum(len(p.text) for p in self.paragraphs)


@dataclass
class _Tracked:
    request: ParagraphRequest
    future: "asyncio.Future[ParagraphResult]"
    requested_at: float


class BatchScheduler:
    """
    Collects paragraphs, debounces bursts and dispatches batches.

    Must be used from inside a running event loop. ``dispatch`` is awaited
    once per batch with the batch's paragraphs and an ``is_current``
    callable; it returns one ParagraphResult per paragraph.
    """

    def __init__(
        self,
        dispatch: DispatchFn,
        config: Optional[BatchConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._dispatch = dispatch
        self.config = config or BatchConfig()
        self.clock = clock

        self._pending: List[ParagraphRequest] = []
        self._tracked: Dict[str, _Tracked] = {}
        self._timer: Optional[asyncio.Task] = None
        self._tasks: Dict[int, asyncio.Task] = {}
        self._batches: Dict[int, Batch] = {}
        self._batch_ids = itertools.count(1)
        self._epoch = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def state(self) -> SchedulerState:
        if self._timer is not None and not self._timer.done():
            return SchedulerState.DEBOUNCING
        if self._pending:
            return SchedulerState.COLLECTING
        if self._tasks:
            return SchedulerState.DISPATCHED
        return SchedulerState.IDLE

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._tasks)

    @property
    def batches(self) -> List[Batch]:
        """Batches dispatched so far (until removed by ``cleanup_stale``)."""
        return list(self._batches.values())

    def is_processing(self, paragraph_id: str) -> bool:
        """True while a paragraph is pending or in flight."""
        return paragraph_id in self._tracked

    def submit(self, paragraphs: Sequence[ParagraphRequest]) -> List["asyncio.Future[ParagraphResult]"]:
        """
        Queue paragraphs for translation.

        A paragraph whose id is already pending or in flight is not queued
        again; it shares the existing future. Any newly queued paragraph
        restarts the debounce timer.

        Args:
            paragraphs: Paragraphs to translate

        Returns:
            One future per input paragraph, in input order
        """
        loop = asyncio.get_running_loop()
        futures = []
        added = 0
        now = self.clock()

        for para in paragraphs:
            tracked = self._tracked.get(para.id)
            if tracked is None or tracked.future.done():
                tracked = _Tracked(para, loop.create_future(), now)
                self._tracked[para.id] = tracked
                self._pending.append(para)
                added += 1
            futures.append(tracked.future)

        if added:
            logger.debug(f"Queued {added} paragraphs ({len(self._pending)} pending)")
            self._restart_timer()

        return futures

    def flush(self) -> List[asyncio.Task]:
        """Dispatch everything pending now, skipping the debounce wait."""
        self._cancel_timer()
        return self._dispatch_pending()

    async def drain(self) -> None:
        """Wait for the debounce timer and every in-flight batch."""
        while True:
            if self._timer is not None and not self._timer.done():
                await asyncio.wait({self._timer})
                continue
            tasks = list(self._tasks.values())
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel_pending(self) -> List[ParagraphRequest]:
        """
        Abandon the current cycle.

        Cancels the debounce timer and bumps the epoch. Paragraphs not yet
        dispatched are returned so they can be resubmitted. Their futures,
        and those of batches still in flight, are cancelled; results of
        in-flight batches are discarded when they arrive.

        Returns:
            Paragraphs that were pending dispatch
        """
        self._cancel_timer()
        self._epoch += 1

        cancelled = self._pending
        self._pending = []
        for para in cancelled:
            tracked = self._tracked.pop(para.id, None)
            if tracked is not None:
                tracked.future.cancel()

        stale = 0
        for batch in self._batches.values():
            if batch.state == BatchState.DISPATCHED and batch.epoch < self._epoch:
                for para_id, future in batch.futures.items():
                    self._forget(para_id, future)
                    future.cancel()
                stale += 1

        logger.info(
            f"Cancelled {len(cancelled)} pending paragraphs and {stale} in-flight batches "
            f"(epoch {self._epoch})"
        )
        return cancelled

    def cleanup_stale(self, max_age: float = 60.0) -> List[str]:
        """
        Release paragraphs stuck in flight longer than ``max_age`` seconds.

        Their futures are cancelled so the ids can be submitted again.
        Finished batch records older than ``max_age`` are dropped too.

        Returns:
            Ids of the released paragraphs
        """
        now = self.clock()
        pending_ids = {p.id for p in self._pending}
        released = []

        for para_id, tracked in list(self._tracked.items()):
            if para_id in pending_ids:
                continue
            if now - tracked.requested_at > max_age:
                del self._tracked[para_id]
                tracked.future.cancel()
                released.append(para_id)

        for batch_id, batch in list(self._batches.items()):
            if batch.finished_at is not None and now - batch.finished_at > max_age:
                del self._batches[batch_id]

        if released:
            logger.info(f"Released {len(released)} stale paragraphs: {released}")
        return released

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._debounce())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _debounce(self) -> None:
        await asyncio.sleep(self.config.debounce_delay)
        self._timer = None
        self._dispatch_pending()

    def _dispatch_pending(self) -> List[asyncio.Task]:
        if not self._pending:
            return []

        groups = split_into_batches(
            self._pending,
            self.config.max_paragraphs_per_batch,
            self.config.max_chars_per_batch
        )
        self._pending = []

        loop = asyncio.get_running_loop()
        tasks = []
        for paragraphs in groups:
            batch = Batch(
                id=next(self._batch_ids),
                paragraphs=paragraphs,
                epoch=self._epoch,
                futures={p.id: self._tracked[p.id].future for p in paragraphs},
                dispatched_at=self.clock(),
            )
            self._batches[batch.id] = batch
            task = loop.create_task(self._run_batch(batch))
            self._tasks[batch.id] = task
            tasks.append(task)

        logger.info(f"Dispatching {len(groups)} batches ({sum(len(g) for g in groups)} paragraphs)")
        return tasks

    async def _run_batch(self, batch: Batch) -> None:
        epoch = batch.epoch

        def is_current() -> bool:
            return epoch == self._epoch

        try:
            results = await self._dispatch(list(batch.paragraphs), is_current)
        except asyncio.CancelledError:
            batch.state = BatchState.DISCARDED
            self._settle(batch, None)
            raise
        except Exception as e:
            if not is_current():
                batch.state = BatchState.DISCARDED
                self._settle(batch, None)
                return
            batch.state = BatchState.FAILED
            batch.error = e
            failure = BatchFailure([p.id for p in batch.paragraphs], e)
            logger.warning(f"Batch {batch.id} failed: {failure.message}")
            self._settle(batch, {
                p.id: ParagraphResult(id=p.id, status=ParagraphStatus.UNTRANSLATED, error=failure)
                for p in batch.paragraphs
            })
            return
        finally:
            batch.finished_at = self.clock()
            self._tasks.pop(batch.id, None)

        if not is_current():
            batch.state = BatchState.DISCARDED
            logger.debug(f"Discarding results of batch {batch.id} from epoch {epoch}")
            self._settle(batch, None)
            return

        by_id = {r.id: r for r in results}
        outcome = {}
        for para in batch.paragraphs:
            result = by_id.get(para.id)
            if result is None:
                result = ParagraphResult(
                    id=para.id,
                    status=ParagraphStatus.UNTRANSLATED,
                    error=BatchFailure([para.id], LookupError(f"No result for paragraph {para.id}"))
                )
            outcome[para.id] = result

        batch.state = BatchState.SETTLED
        self._settle(batch, outcome)

    def _settle(self, batch: Batch, outcome: Optional[Dict[str, ParagraphResult]]) -> None:
        """Resolve (or cancel, when ``outcome`` is None) the batch's futures."""
        for para_id, future in batch.futures.items():
            self._forget(para_id, future)
            if future.done():
                continue
            if outcome is None:
                future.cancel()
            else:
                future.set_result(outcome[para_id])

    def _forget(self, para_id: str, future: "asyncio.Future[ParagraphResult]") -> None:
        tracked = self._tracked.get(para_id)
        if tracked is not None and tracked.future is future:
            del self._tracked[para_id]

"""Ledger indexer - folds the ledger record stream into queryable indexes.

One background task owns all index mutation. Startup replay, catch-up after
a lost subscription, gap filling and live delivery all run inside that task,
so the fold never runs concurrently with itself. Readers get the current
``RecordIndex`` snapshot, which is replaced, never modified.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import TypeVar

from docnotary.application.ports import LedgerClient, RecordObserver
from docnotary.application.services.record_index import RecordIndex
from docnotary.domain.entities import NotarizationRecord
from docnotary.domain.exceptions import LedgerUnavailable, NotFound
from docnotary.domain.value_objects import IndexerState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerIndexer:
    """Replays, then follows, the ledger and serves by-id/by-recipient lookups."""

    def __init__(
        self,
        ledger: LedgerClient,
        *,
        timeout: float = 10.0,
        page_size: int = 500,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._ledger = ledger
        self._timeout = timeout
        self._page_size = page_size
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._index = RecordIndex()
        self._pending: dict[int, NotarizationRecord] = {}
        self._observers: list[RecordObserver] = []
        self._state = IndexerState.UNINITIALIZED
        self._initialized = False
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> IndexerState:
        return self._state

    @property
    def watermark(self) -> int:
        """Last ledger id up to which the index is complete."""
        return self._index.watermark

    # --- lifecycle ---

    async def start(self, timeout: float | None = None) -> None:
        """Replay the ledger, then keep following it in the background.

        Returns once the replay is complete. Raises ``LedgerUnavailable`` if
        the ledger cannot be read within ``timeout`` seconds (defaults to the
        per-call timeout); the indexer then stays uninitialized.
        """
        if self._task is not None:
            raise RuntimeError("Indexer already started")
        deadline = self._timeout if timeout is None else timeout
        ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._state = IndexerState.REPLAYING
        self._task = asyncio.create_task(self._run(deadline, ready), name="ledger-indexer")
        try:
            await ready
        except asyncio.CancelledError:
            self._task.cancel()
            self._task = None
            self._state = IndexerState.UNINITIALIZED
            raise
        except Exception:
            self._task = None
            self._state = IndexerState.UNINITIALIZED
            raise

    async def stop(self) -> None:
        """Cancel the background task. Queries keep serving the last snapshot."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._state = IndexerState.STOPPED if self._initialized else IndexerState.UNINITIALIZED

    # --- observers ---

    def add_observer(self, observer: RecordObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: RecordObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # --- queries ---

    def _snapshot(self) -> RecordIndex:
        if not self._initialized:
            raise LedgerUnavailable("Ledger index is not initialized")
        return self._index

    def by_id(self, record_id: int) -> NotarizationRecord:
        record = self._snapshot().get(record_id)
        if record is None:
            raise NotFound("NotarizationRecord", str(record_id))
        return record

    def by_recipient(self, address: str) -> list[NotarizationRecord]:
        """Records addressed to ``address``, most recent first."""
        return self._snapshot().for_recipient(address)

    def all(self) -> list[NotarizationRecord]:
        """Every indexed record in ledger order."""
        return self._snapshot().ordered()

    # --- background task ---

    async def _run(self, deadline: float, ready: asyncio.Future[None]) -> None:
        try:
            async with asyncio.timeout(deadline):
                await self._catch_up()
        except (TimeoutError, LedgerUnavailable) as e:
            logger.error("Initial ledger replay failed: %r", e)
            ready.set_exception(LedgerUnavailable(f"Initial ledger replay failed: {e!r}"))
            return
        except Exception as e:
            ready.set_exception(e)
            return

        self._initialized = True
        self._state = IndexerState.LIVE
        logger.info(
            "Ledger replay complete through id %d (%d records)",
            self._index.watermark,
            len(self._index),
        )
        ready.set_result(None)
        await self._follow_forever()

    async def _follow_forever(self) -> None:
        """Re-subscribe with exponential backoff whenever following stops.

        Any error short of cancellation degrades the indexer; the last
        snapshot keeps serving until the next attempt catches up.
        """
        delay = self._reconnect_delay
        while True:
            try:
                await self._follow()
            except (TimeoutError, LedgerUnavailable) as e:
                if self._state is IndexerState.LIVE:
                    delay = self._reconnect_delay
                self._state = IndexerState.DEGRADED
                logger.warning(
                    "Ledger subscription lost (%r); resuming after id %d in %.1fs",
                    e,
                    self._index.watermark,
                    delay,
                )
            except Exception:
                if self._state is IndexerState.LIVE:
                    delay = self._reconnect_delay
                self._state = IndexerState.DEGRADED
                logger.exception(
                    "Unexpected error following the ledger; resuming after id %d in %.1fs",
                    self._index.watermark,
                    delay,
                )
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)

    async def _follow(self) -> None:
        """Subscribe, catch up from the watermark, then fold live records."""
        subscription = await self._call(self._ledger.subscribe())
        try:
            await self._catch_up()
            if self._state is not IndexerState.LIVE:
                logger.info("Ledger indexer live again at id %d", self._index.watermark)
            self._state = IndexerState.LIVE
            async for record in subscription:
                await self._fold_live(record)
        finally:
            await subscription.close()
        raise LedgerUnavailable("Ledger subscription ended")

    async def _call(self, call: Awaitable[T]) -> T:
        async with asyncio.timeout(self._timeout):
            return await call

    async def _catch_up(self, to_id: int | None = None) -> None:
        """Query ``(watermark, to_id]`` page by page; ``to_id`` defaults to the head."""
        if to_id is None:
            to_id = await self._call(self._ledger.head())
        start = self._index.watermark + 1
        while start <= to_id:
            end = min(start + self._page_size - 1, to_id)
            records = await self._call(self._ledger.query(start, end))
            await self._commit(records, through=end)
            start = max(end, self._index.watermark) + 1

    async def _fold_live(self, record: NotarizationRecord) -> None:
        if record.id in self._index:
            logger.debug("Dropping duplicate delivery of record %d", record.id)
            return
        if record.id <= self._index.watermark:
            logger.warning(
                "Record %d became visible after id %d was indexed; folding it late",
                record.id,
                self._index.watermark,
            )
            await self._commit([record])
            return
        if record.id > self._index.watermark + 1:
            self._pending[record.id] = record
            logger.info(
                "Record %d arrived ahead of id %d; filling the gap from the ledger",
                record.id,
                self._index.watermark + 1,
            )
            await self._catch_up(record.id - 1)
        await self._commit([record])

    async def _commit(
        self, records: list[NotarizationRecord], through: int | None = None
    ) -> None:
        candidates = [*records, *self._pending.values()]
        index, accepted, held = self._index.apply(candidates, through=through)
        self._index = index
        self._pending = {r.id: r for r in held}
        for record in accepted:
            await self._notify(record)

    async def _notify(self, record: NotarizationRecord) -> None:
        for observer in list(self._observers):
            try:
                await observer.on_record(record)
            except Exception:
                logger.exception("Record observer %r failed on record %d", observer, record.id)

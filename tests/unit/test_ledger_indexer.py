"""Unit tests for LedgerIndexer replay, live follow and recovery."""

import asyncio

import pytest

from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.exceptions import LedgerUnavailable, NotFound
from docnotary.domain.hashing import hash_content
from docnotary.domain.value_objects import IndexerState

from tests.conftest import (
    OTHER_RECIPIENT,
    RECIPIENT,
    SENDER,
    FlakyLedger,
    seed,
    wait_until,
)


def _ids(records) -> list[int]:
    return [r.id for r in records]


class RecordingObserver:
    def __init__(self, fail_on: int | None = None) -> None:
        self.seen: list[int] = []
        self.fail_on = fail_on

    async def on_record(self, record) -> None:
        self.seen.append(record.id)
        if record.id == self.fail_on:
            raise RuntimeError("observer failure")


class TestLifecycle:
    def test_new_indexer_is_uninitialized(self, indexer: LedgerIndexer) -> None:
        assert indexer.state is IndexerState.UNINITIALIZED
        assert indexer.watermark == 0

    def test_queries_fail_before_start(self, indexer: LedgerIndexer) -> None:
        """An empty answer before replay would be indistinguishable from no records."""
        with pytest.raises(LedgerUnavailable):
            indexer.by_id(1)
        with pytest.raises(LedgerUnavailable):
            indexer.by_recipient(RECIPIENT)
        with pytest.raises(LedgerUnavailable):
            indexer.all()

    @pytest.mark.asyncio
    async def test_start_on_empty_ledger(self, indexer: LedgerIndexer) -> None:
        await indexer.start()
        try:
            assert indexer.state is IndexerState.LIVE
            assert indexer.all() == []
            assert indexer.by_recipient(RECIPIENT) == []
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_start_fails_when_ledger_unreachable(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        ledger.available = False
        with pytest.raises(LedgerUnavailable):
            await indexer.start()
        assert indexer.state is IndexerState.UNINITIALIZED
        with pytest.raises(LedgerUnavailable):
            indexer.all()

    @pytest.mark.asyncio
    async def test_start_times_out_on_hanging_ledger(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        ledger.hang = True
        with pytest.raises(LedgerUnavailable):
            await indexer.start(timeout=0.05)
        assert indexer.state is IndexerState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_start_can_be_retried_after_failure(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 2)
        ledger.available = False
        with pytest.raises(LedgerUnavailable):
            await indexer.start()
        ledger.available = True
        await indexer.start()
        try:
            assert _ids(indexer.all()) == [1, 2]
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_double_start_is_rejected(self, indexer: LedgerIndexer) -> None:
        await indexer.start()
        try:
            with pytest.raises(RuntimeError):
                await indexer.start()
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_stop_keeps_last_snapshot(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 3)
        await indexer.start()
        await indexer.stop()
        assert indexer.state is IndexerState.STOPPED
        assert _ids(indexer.all()) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, indexer: LedgerIndexer) -> None:
        await indexer.stop()
        assert indexer.state is IndexerState.UNINITIALIZED

    def test_page_size_must_be_positive(self, ledger: FlakyLedger) -> None:
        with pytest.raises(ValueError):
            LedgerIndexer(ledger, page_size=0)


class TestReplay:
    @pytest.mark.asyncio
    async def test_replay_indexes_history_in_pages(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 5)
        await indexer.start()
        try:
            assert _ids(indexer.all()) == [1, 2, 3, 4, 5]
            assert indexer.watermark == 5
            # page_size=2 in the fixture
            assert ledger.queries[:3] == [(1, 2), (3, 4), (5, 5)]
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_by_id_and_unknown_id(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 2)
        await indexer.start()
        try:
            record = indexer.by_id(2)
            assert record.id == 2
            assert record.content_identifier == hash_content(b"doc-1")
            with pytest.raises(NotFound):
                indexer.by_id(99)
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_by_recipient_filters_and_orders_newest_first(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 1, recipient=RECIPIENT)
        await seed(ledger, 1, recipient=OTHER_RECIPIENT)
        await seed(ledger, 1, recipient=RECIPIENT)
        await indexer.start()
        try:
            assert _ids(indexer.by_recipient(RECIPIENT)) == [3, 1]
            assert _ids(indexer.by_recipient(RECIPIENT.lower())) == [3, 1]
            assert _ids(indexer.by_recipient(OTHER_RECIPIENT)) == [2]
            assert indexer.by_recipient("0xdead") == []
        finally:
            await indexer.stop()


class TestLiveFollow:
    @pytest.mark.asyncio
    async def test_live_appends_are_indexed(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 1)
        await indexer.start()
        try:
            await ledger.append(SENDER, RECIPIENT, hash_content(b"live"), "live")
            await wait_until(lambda: indexer.watermark == 2)
            assert indexer.by_id(2).reference == "live"
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_replay_then_overlapping_live_delivery_indexes_each_id_once(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        """Replay [1,2,3], then live delivers [2,3,4]: each id appears once, ascending."""
        await seed(ledger, 3)
        await indexer.start()
        try:
            await wait_until(lambda: bool(ledger._subscriptions))
            old = await ledger.query(2, 3)
            ledger.redeliver(*old)
            await ledger.append(SENDER, RECIPIENT, hash_content(b"four"), "four")
            await wait_until(lambda: indexer.watermark == 4)
            assert _ids(indexer.all()) == [1, 2, 3, 4]
            assert _ids(indexer.by_recipient(RECIPIENT)) == [4, 3, 2, 1]
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_out_of_order_delivery_fills_gap_from_ledger(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 1)
        await indexer.start()
        try:
            await wait_until(lambda: bool(ledger._subscriptions))
            await ledger.append_silently(SENDER, RECIPIENT, hash_content(b"two"), "two")
            await ledger.append(SENDER, RECIPIENT, hash_content(b"three"), "three")
            await wait_until(lambda: indexer.watermark == 3)
            assert _ids(indexer.all()) == [1, 2, 3]
            assert (2, 2) in ledger.queries
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_snapshot_taken_before_fold_is_unchanged(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 2)
        await indexer.start()
        try:
            before = indexer.all()
            await ledger.append(SENDER, RECIPIENT, hash_content(b"new"), "new")
            await wait_until(lambda: indexer.watermark == 3)
            assert _ids(before) == [1, 2]
            assert _ids(indexer.all()) == [1, 2, 3]
        finally:
            await indexer.stop()


class TestRecovery:
    @pytest.mark.asyncio
    async def test_lost_subscription_catches_up_from_watermark(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        """Records appended while disconnected are recovered by id, not from the start."""
        await seed(ledger, 4)
        await indexer.start()
        try:
            await wait_until(lambda: bool(ledger._subscriptions))
            ledger.available = False
            ledger.disconnect()
            await wait_until(lambda: indexer.state is IndexerState.DEGRADED)

            await ledger.append_silently(SENDER, RECIPIENT, hash_content(b"five"), "five")
            await ledger.append_silently(SENDER, RECIPIENT, hash_content(b"six"), "six")
            ledger.queries.clear()
            ledger.available = True

            await wait_until(lambda: indexer.state is IndexerState.LIVE)
            await wait_until(lambda: indexer.watermark == 6)
            assert _ids(indexer.all()) == [1, 2, 3, 4, 5, 6]
            assert ledger.queries
            assert min(start for start, _ in ledger.queries) == 5
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_degraded_indexer_keeps_serving_snapshot(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await seed(ledger, 2)
        await indexer.start()
        try:
            await wait_until(lambda: bool(ledger._subscriptions))
            ledger.available = False
            ledger.disconnect()
            await wait_until(lambda: indexer.state is IndexerState.DEGRADED)
            assert _ids(indexer.all()) == [1, 2]
            assert indexer.by_id(1).id == 1
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_live_after_reconnect_follows_new_appends(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        await indexer.start()
        try:
            await wait_until(lambda: bool(ledger._subscriptions))
            ledger.disconnect()
            await wait_until(lambda: indexer.state is IndexerState.LIVE and bool(ledger._subscriptions))
            await ledger.append(SENDER, RECIPIENT, hash_content(b"after"), "after")
            await wait_until(lambda: indexer.watermark == 1)
        finally:
            await indexer.stop()


class TestObservers:
    @pytest.mark.asyncio
    async def test_observers_notified_in_fold_order(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        observer = RecordingObserver()
        indexer.add_observer(observer)
        await seed(ledger, 3)
        await indexer.start()
        try:
            await ledger.append(SENDER, RECIPIENT, hash_content(b"live"), "live")
            await wait_until(lambda: indexer.watermark == 4)
            assert observer.seen == [1, 2, 3, 4]
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_stop_indexing(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        failing = RecordingObserver(fail_on=2)
        healthy = RecordingObserver()
        indexer.add_observer(failing)
        indexer.add_observer(healthy)
        await seed(ledger, 3)
        await indexer.start()
        try:
            assert failing.seen == [1, 2, 3]
            assert healthy.seen == [1, 2, 3]
            assert indexer.state is IndexerState.LIVE
        finally:
            await indexer.stop()

    @pytest.mark.asyncio
    async def test_removed_observer_is_not_notified(
        self, ledger: FlakyLedger, indexer: LedgerIndexer
    ) -> None:
        observer = RecordingObserver()
        indexer.add_observer(observer)
        indexer.add_observer(observer)
        indexer.remove_observer(observer)
        await seed(ledger, 1)
        await indexer.start()
        await indexer.stop()
        assert observer.seen == []


@pytest.mark.asyncio
async def test_concurrent_readers_see_consistent_prefixes(
    ledger: FlakyLedger, indexer: LedgerIndexer
) -> None:
    """Every snapshot read during live folding is a contiguous prefix of the ledger."""
    await indexer.start()
    observed: list[list[int]] = []

    async def reader() -> None:
        while indexer.watermark < 20:
            observed.append(_ids(indexer.all()))
            await asyncio.sleep(0)

    try:
        task = asyncio.create_task(reader())
        await seed(ledger, 20)
        await asyncio.wait_for(task, 2.0)
    finally:
        await indexer.stop()
    for ids in observed:
        assert ids == list(range(1, len(ids) + 1))


class LateCommitLedger(FlakyLedger):
    """Ids are drawn at append but stay invisible until committed."""

    def __init__(self) -> None:
        super().__init__()
        self.uncommitted: set[int] = set()

    async def begin(self, data: bytes) -> int:
        record_id = await self.append_silently(SENDER, RECIPIENT, hash_content(data), "")
        self.uncommitted.add(record_id)
        return record_id

    def commit(self, record_id: int) -> None:
        self.uncommitted.discard(record_id)
        self.redeliver(self._records[record_id - 1])

    async def head(self) -> int:
        await self._gate()
        return max((r.id for r in self._records if r.id not in self.uncommitted), default=0)

    async def query(self, from_id: int, to_id: int):
        records = await super().query(from_id, to_id)
        return [r for r in records if r.id not in self.uncommitted]


class TestLateVisibility:
    @pytest.fixture
    def late_ledger(self) -> LateCommitLedger:
        return LateCommitLedger()

    @pytest.fixture
    def late_indexer(self, late_ledger: LateCommitLedger) -> LedgerIndexer:
        return LedgerIndexer(late_ledger, timeout=1.0, page_size=2, reconnect_delay=0.01)

    @pytest.mark.asyncio
    async def test_lower_id_committed_after_higher_id_is_still_indexed(
        self, late_ledger: LateCommitLedger, late_indexer: LedgerIndexer
    ) -> None:
        await seed(late_ledger, 4)
        await late_indexer.start()
        try:
            await wait_until(lambda: bool(late_ledger._subscriptions))
            five = await late_ledger.begin(b"five")
            six = await late_ledger.begin(b"six")
            late_ledger.commit(six)
            await wait_until(lambda: 6 in [r.id for r in late_indexer.all()])
            late_ledger.commit(five)
            await wait_until(lambda: len(late_indexer.all()) == 6)
            assert _ids(late_indexer.all()) == [1, 2, 3, 4, 5, 6]
            assert _ids(late_indexer.by_recipient(RECIPIENT)) == [6, 5, 4, 3, 2, 1]
        finally:
            await late_indexer.stop()

    @pytest.mark.asyncio
    async def test_id_missing_during_replay_is_indexed_when_committed(
        self, late_ledger: LateCommitLedger, late_indexer: LedgerIndexer
    ) -> None:
        await seed(late_ledger, 2)
        three = await late_ledger.begin(b"three")
        await late_ledger.append(SENDER, RECIPIENT, hash_content(b"four"), "")
        await late_indexer.start()
        try:
            assert _ids(late_indexer.all()) == [1, 2, 4]
            await wait_until(lambda: bool(late_ledger._subscriptions))
            late_ledger.commit(three)
            await wait_until(lambda: len(late_indexer.all()) == 4)
            assert _ids(late_indexer.all()) == [1, 2, 3, 4]
        finally:
            await late_indexer.stop()


@pytest.mark.asyncio
async def test_unexpected_subscription_error_recovers_and_catches_up(
    ledger: FlakyLedger, indexer: LedgerIndexer
) -> None:
    """An error outside the ledger's own failure type must not end indexing."""
    await seed(ledger, 1)
    await indexer.start()
    try:
        await wait_until(lambda: bool(ledger._subscriptions))
        ledger.disconnect(RuntimeError("the connection is closed"))
        await ledger.append(SENDER, RECIPIENT, hash_content(b"after error"), "")
        await wait_until(lambda: indexer.watermark == 2)
        await wait_until(lambda: indexer.state is IndexerState.LIVE)
        assert indexer._task is not None and not indexer._task.done()
    finally:
        await indexer.stop()


@pytest.mark.asyncio
async def test_unexpected_catch_up_error_is_retried(
    ledger: FlakyLedger, indexer: LedgerIndexer
) -> None:
    failures: list[tuple[int, int]] = []
    original_query = ledger.query

    async def query(from_id: int, to_id: int):
        if not failures:
            failures.append((from_id, to_id))
            raise ValueError("malformed row")
        return await original_query(from_id, to_id)

    await indexer.start()
    try:
        await wait_until(lambda: bool(ledger._subscriptions))
        ledger.query = query
        ledger.disconnect()
        await ledger.append_silently(SENDER, RECIPIENT, hash_content(b"missed"), "")
        await wait_until(lambda: indexer.watermark == 1)
        assert failures == [(1, 1)]
        assert indexer.state is IndexerState.LIVE
    finally:
        await indexer.stop()

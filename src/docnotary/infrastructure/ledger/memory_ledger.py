"""In-process append-only ledger for local development and tests."""

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from uuid import uuid4

from docnotary.domain.entities import NotarizationRecord, normalize_address
from docnotary.domain.exceptions import LedgerUnavailable
from docnotary.domain.value_objects import ContentIdentifier

logger = logging.getLogger(__name__)


class _Closed:
    """Queue sentinel that ends a subscription, optionally with an error."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error


class InMemorySubscription:
    """Queue-backed live stream from an ``InMemoryLedger``."""

    def __init__(self, ledger: "InMemoryLedger", recipient: str | None) -> None:
        self._ledger = ledger
        self._recipient = normalize_address(recipient) if recipient else None
        self._queue: asyncio.Queue[NotarizationRecord | _Closed] = asyncio.Queue()
        self._closed = False

    def deliver(self, record: NotarizationRecord) -> None:
        if self._closed:
            return
        if self._recipient is None or record.recipient_key == self._recipient:
            self._queue.put_nowait(record)

    def terminate(self, error: Exception | None = None) -> None:
        if not self._closed:
            self._queue.put_nowait(_Closed(error))

    async def __aiter__(self) -> AsyncIterator[NotarizationRecord]:
        while True:
            item = await self._queue.get()
            if isinstance(item, _Closed):
                self._closed = True
                if item.error is not None:
                    raise item.error
                return
            yield item

    async def close(self) -> None:
        self._closed = True
        self._ledger._subscriptions.discard(self)


class InMemoryLedger:
    """Append-only list of records; ids start at 1 and increase by one."""

    def __init__(self) -> None:
        self._records: list[NotarizationRecord] = []
        self._subscriptions: set[InMemorySubscription] = set()

    async def head(self) -> int:
        return len(self._records)

    async def query(self, from_id: int, to_id: int) -> list[NotarizationRecord]:
        if from_id > to_id:
            return []
        return self._records[max(from_id, 1) - 1 : max(to_id, 0)]

    async def subscribe(self, recipient: str | None = None) -> InMemorySubscription:
        subscription = InMemorySubscription(self, recipient)
        self._subscriptions.add(subscription)
        return subscription

    async def append(
        self,
        sender: str,
        recipient: str,
        content_identifier: ContentIdentifier,
        reference: str,
    ) -> int:
        record = NotarizationRecord(
            id=len(self._records) + 1,
            sender=sender,
            recipient=recipient,
            content_identifier=content_identifier,
            reference=reference,
            timestamp=datetime.now(UTC),
            source_tx_ref=f"mem-{uuid4().hex}",
        )
        self._records.append(record)
        logger.debug("Appended record %d to in-memory ledger", record.id)
        for subscription in list(self._subscriptions):
            subscription.deliver(record)
        return record.id

    def disconnect(self, error: Exception | None = None) -> None:
        """Drop every live subscription, as a lost connection would."""
        error = error or LedgerUnavailable("In-memory ledger subscription dropped")
        for subscription in list(self._subscriptions):
            subscription.terminate(error)
        self._subscriptions.clear()

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.terminate()
        self._subscriptions.clear()

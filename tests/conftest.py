"""Pytest fixtures for docnotary tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import pytest

from docnotary.application.dto.document_dto import DocumentListItem
from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.entities import NotarizationRecord, StoredDocument
from docnotary.domain.exceptions import LedgerUnavailable, StorageUnavailable
from docnotary.domain.hashing import hash_content
from docnotary.domain.value_objects import ContentIdentifier
from docnotary.infrastructure.ledger import InMemoryLedger

SENDER = "0xAAA0000000000000000000000000000000000001"
RECIPIENT = "0xBBB0000000000000000000000000000000000002"
OTHER_RECIPIENT = "0xCCC0000000000000000000000000000000000003"


# --- Fake repositories ---


class FakeDocumentRepository:
    """In-memory content-addressed document repository."""

    def __init__(self) -> None:
        self._by_identifier: dict[ContentIdentifier, StoredDocument] = {}
        self.create_calls = 0
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise StorageUnavailable("fake storage offline")

    async def get_by_identifier(
        self, content_identifier: ContentIdentifier
    ) -> StoredDocument | None:
        self._check()
        # yield so concurrent puts can interleave between lookup and insert
        await asyncio.sleep(0)
        return self._by_identifier.get(content_identifier)

    async def create_if_absent(self, document: StoredDocument) -> tuple[StoredDocument, bool]:
        self._check()
        self.create_calls += 1
        existing = self._by_identifier.get(document.content_identifier)
        if existing is not None:
            return existing, False
        self._by_identifier[document.content_identifier] = document
        return document, True

    async def list_by_owner(self, owner: str) -> list[DocumentListItem]:
        self._check()
        return [
            DocumentListItem(
                file_name=d.file_name,
                content_identifier=d.content_identifier,
                stored_at=d.stored_at,
            )
            for d in self._by_identifier.values()
            if d.owner == owner
        ]

    def add(self, document: StoredDocument) -> None:
        """Helper to seed a document directly (for tests)."""
        self._by_identifier[document.content_identifier] = document

    def __len__(self) -> int:
        return len(self._by_identifier)


# --- Fake UnitOfWork ---


class FakeUnitOfWork:
    """In-memory Unit of Work over a shared fake repository."""

    def __init__(self, documents: FakeDocumentRepository | None = None) -> None:
        self.documents = documents if documents is not None else FakeDocumentRepository()

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass


def make_uow_factory(documents: FakeDocumentRepository) -> Callable:
    """Factory yielding a UoW over the same repository for every call."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[FakeUnitOfWork]:
        yield FakeUnitOfWork(documents)

    return factory


# --- Ledger with failure injection ---


class FlakyLedger(InMemoryLedger):
    """In-memory ledger that can go offline, hang, or redeliver records."""

    def __init__(self) -> None:
        super().__init__()
        self.available = True
        self.hang = False
        self.queries: list[tuple[int, int]] = []

    async def _gate(self) -> None:
        if self.hang:
            await asyncio.Event().wait()
        if not self.available:
            raise LedgerUnavailable("ledger offline")

    async def head(self) -> int:
        await self._gate()
        return await super().head()

    async def query(self, from_id: int, to_id: int) -> list[NotarizationRecord]:
        await self._gate()
        self.queries.append((from_id, to_id))
        return await super().query(from_id, to_id)

    async def subscribe(self, recipient: str | None = None):
        await self._gate()
        return await super().subscribe(recipient)

    async def append_silently(
        self,
        sender: str,
        recipient: str,
        content_identifier: ContentIdentifier,
        reference: str = "",
    ) -> int:
        """Append without pushing to live subscribers (a missed notification)."""
        subscriptions, self._subscriptions = self._subscriptions, set()
        try:
            return await self.append(sender, recipient, content_identifier, reference)
        finally:
            self._subscriptions = subscriptions

    def redeliver(self, *records: NotarizationRecord) -> None:
        """Push already appended records to live subscribers again."""
        for subscription in list(self._subscriptions):
            for record in records:
                subscription.deliver(record)


async def seed(ledger: InMemoryLedger, count: int, recipient: str = RECIPIENT) -> list[int]:
    """Append ``count`` distinct records; returns their ids."""
    return [
        await ledger.append(SENDER, recipient, hash_content(f"doc-{i}".encode()), f"ref {i}")
        for i in range(count)
    ]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


def make_record(
    record_id: int,
    recipient: str = RECIPIENT,
    data: bytes | None = None,
) -> NotarizationRecord:
    return NotarizationRecord(
        id=record_id,
        sender=SENDER,
        recipient=recipient,
        content_identifier=hash_content(data if data is not None else f"doc-{record_id}".encode()),
        reference=f"ref {record_id}",
        timestamp=datetime(2025, 1, 1, tzinfo=UTC),
        source_tx_ref=f"tx-{record_id}",
    )


def make_document(
    data: bytes,
    owner: str = "user-1",
    file_name: str = "doc.txt",
    stored_at: datetime | None = None,
) -> StoredDocument:
    return StoredDocument(
        content_identifier=hash_content(data),
        data=data,
        mime_type="text/plain",
        file_name=file_name,
        owner=owner,
        stored_at=stored_at or datetime.now(UTC),
    )


# --- Fixtures ---


@pytest.fixture
def documents() -> FakeDocumentRepository:
    """Shared in-memory document repository for one test."""
    return FakeDocumentRepository()


@pytest.fixture
def uow_factory(documents: FakeDocumentRepository):
    """Factory returning async context manager with FakeUnitOfWork."""
    return make_uow_factory(documents)


@pytest.fixture
def ledger() -> FlakyLedger:
    return FlakyLedger()


@pytest.fixture
def indexer(ledger: FlakyLedger) -> LedgerIndexer:
    """Indexer with short timeouts and backoff, not started."""
    return LedgerIndexer(
        ledger,
        timeout=1.0,
        page_size=2,
        reconnect_delay=0.01,
        max_reconnect_delay=0.05,
    )

"""Put document use case."""

import asyncio
import logging
from datetime import UTC, datetime
from weakref import WeakValueDictionary

from docnotary.application.dto.document_dto import DocumentPutInput, DocumentPutOutput
from docnotary.domain.entities import StoredDocument
from docnotary.domain.exceptions import ValidationError
from docnotary.domain.hashing import hash_content
from docnotary.domain.value_objects import ContentIdentifier

logger = logging.getLogger(__name__)


class PutDocumentUseCase:
    """Store document bytes under their content identifier, deduplicating by content."""

    def __init__(self, unit_of_work_factory: type, max_bytes: int | None = None) -> None:
        self._uow_factory = unit_of_work_factory
        self._max_bytes = max_bytes
        self._locks: WeakValueDictionary[ContentIdentifier, asyncio.Lock] = WeakValueDictionary()

    def _lock_for(self, content_identifier: ContentIdentifier) -> asyncio.Lock:
        lock = self._locks.get(content_identifier)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[content_identifier] = lock
        return lock

    async def execute(self, input_data: DocumentPutInput) -> DocumentPutOutput:
        """Persist on first occurrence; later puts of the same bytes return the stored entry."""
        if self._max_bytes is not None and len(input_data.data) > self._max_bytes:
            raise ValidationError(f"Document exceeds {self._max_bytes} bytes")
        if not input_data.owner:
            raise ValidationError("Document owner is required")

        content_identifier = hash_content(input_data.data)
        async with self._lock_for(content_identifier):
            async with self._uow_factory() as uow:
                existing = await uow.documents.get_by_identifier(content_identifier)
                if existing is not None:
                    return DocumentPutOutput(
                        content_identifier=existing.content_identifier,
                        created=False,
                        stored_at=existing.stored_at,
                    )

                document = StoredDocument(
                    content_identifier=content_identifier,
                    data=bytes(input_data.data),
                    mime_type=input_data.mime_type or "application/octet-stream",
                    file_name=input_data.file_name,
                    owner=input_data.owner,
                    stored_at=datetime.now(UTC),
                )
                stored, created = await uow.documents.create_if_absent(document)

        if created:
            logger.info(
                "Stored document %s (%d bytes) for %s",
                content_identifier,
                len(input_data.data),
                input_data.owner,
            )
        return DocumentPutOutput(
            content_identifier=stored.content_identifier,
            created=created,
            stored_at=stored.stored_at,
        )

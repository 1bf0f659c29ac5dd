"""Document repository port."""

from typing import Protocol

from docnotary.application.dto.document_dto import DocumentListItem
from docnotary.domain.entities import StoredDocument
from docnotary.domain.value_objects import ContentIdentifier


class DocumentRepository(Protocol):
    """Port for content-addressed document persistence."""

    async def get_by_identifier(
        self, content_identifier: ContentIdentifier
    ) -> StoredDocument | None: ...

    async def create_if_absent(self, document: StoredDocument) -> tuple[StoredDocument, bool]:
        """Insert unless the identifier exists; return the persisted row and whether it was new."""
        ...

    async def list_by_owner(self, owner: str) -> list[DocumentListItem]: ...

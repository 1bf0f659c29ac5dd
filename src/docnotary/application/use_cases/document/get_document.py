"""Get document use case."""

from docnotary.domain.entities import StoredDocument
from docnotary.domain.exceptions import NotFound
from docnotary.domain.value_objects import ContentIdentifier


class GetDocumentUseCase:
    """Resolve a content identifier back to the stored bytes and metadata."""

    def __init__(self, unit_of_work_factory: type) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(self, content_identifier: ContentIdentifier) -> StoredDocument:
        async with self._uow_factory() as uow:
            document = await uow.documents.get_by_identifier(content_identifier)
        if document is None:
            raise NotFound("Document", str(content_identifier))
        return document

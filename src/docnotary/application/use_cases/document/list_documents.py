"""List documents use case."""

from docnotary.application.dto.document_dto import DocumentListItem


class ListDocumentsUseCase:
    """List an owner's documents by storage time, ties broken by identifier."""

    def __init__(self, unit_of_work_factory: type) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(self, owner: str) -> list[DocumentListItem]:
        async with self._uow_factory() as uow:
            items = await uow.documents.list_by_owner(owner)
        return sorted(items, key=lambda i: (i.stored_at, i.content_identifier.value))

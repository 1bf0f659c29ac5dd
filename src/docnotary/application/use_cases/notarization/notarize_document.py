"""Notarize document use case."""

import asyncio
import logging

from docnotary.application.dto.document_dto import DocumentPutInput
from docnotary.application.dto.notarization_dto import NotarizationInput, NotarizationOutput
from docnotary.application.ports import LedgerClient
from docnotary.application.use_cases.document.put_document import PutDocumentUseCase
from docnotary.domain.exceptions import LedgerUnavailable, ValidationError

logger = logging.getLogger(__name__)


class NotarizeDocumentUseCase:
    """Store the document, then append a record carrying its identifier to the ledger.

    The record reaches the indexes only once the indexer observes it.
    """

    def __init__(
        self,
        put_document: PutDocumentUseCase,
        ledger: LedgerClient,
        timeout: float = 10.0,
    ) -> None:
        self._put_document = put_document
        self._ledger = ledger
        self._timeout = timeout

    async def execute(self, input_data: NotarizationInput) -> NotarizationOutput:
        if not input_data.sender.strip():
            raise ValidationError("sender is required")
        if not input_data.recipient.strip():
            raise ValidationError("recipient is required")

        stored = await self._put_document.execute(
            DocumentPutInput(
                data=input_data.data,
                mime_type=input_data.mime_type,
                file_name=input_data.file_name,
                owner=input_data.owner,
            )
        )
        try:
            async with asyncio.timeout(self._timeout):
                record_id = await self._ledger.append(
                    input_data.sender.strip(),
                    input_data.recipient.strip(),
                    stored.content_identifier,
                    input_data.reference,
                )
        except TimeoutError as e:
            raise LedgerUnavailable("Ledger append timed out") from e

        logger.info(
            "Notarized %s from %s to %s as record %d",
            stored.content_identifier,
            input_data.sender,
            input_data.recipient,
            record_id,
        )
        return NotarizationOutput(
            record_id=record_id, content_identifier=stored.content_identifier
        )

"""Verify document use case."""

from docnotary.application.dto.notarization_dto import VerificationResult
from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.exceptions import NotFound, UnknownRecord
from docnotary.domain.hashing import hash_content


class VerifyDocumentUseCase:
    """Check candidate bytes against the content identifier of a notarized record."""

    def __init__(self, indexer: LedgerIndexer) -> None:
        self._indexer = indexer

    async def execute(self, record_id: int, data: bytes) -> VerificationResult:
        """Return a result for any known record; ``matched=False`` is not an error.

        Raises ``UnknownRecord`` for ids the index does not hold and
        ``LedgerUnavailable`` while the index is not initialized.
        """
        try:
            record = self._indexer.by_id(record_id)
        except NotFound as e:
            raise UnknownRecord(record_id) from e

        supplied = hash_content(data)
        return VerificationResult(
            matched=supplied == record.content_identifier,
            expected_identifier=record.content_identifier,
            supplied_identifier=supplied,
            record=record,
        )

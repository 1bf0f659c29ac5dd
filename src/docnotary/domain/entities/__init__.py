"""Domain entities."""

from docnotary.domain.entities.notarization_record import (
    NotarizationRecord,
    normalize_address,
)
from docnotary.domain.entities.stored_document import StoredDocument

__all__ = [
    "NotarizationRecord",
    "StoredDocument",
    "normalize_address",
]

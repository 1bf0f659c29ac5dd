"""Notarization and verification DTOs."""

from dataclasses import dataclass

from docnotary.domain.entities import NotarizationRecord
from docnotary.domain.value_objects import ContentIdentifier


@dataclass
class NotarizationInput:
    """Input for notarizing a document to a recipient."""

    data: bytes
    mime_type: str
    file_name: str
    owner: str
    sender: str
    recipient: str
    reference: str = ""


@dataclass
class NotarizationOutput:
    """Ledger id assigned to the appended record."""

    record_id: int
    content_identifier: ContentIdentifier


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking candidate bytes against a notarized record.

    ``matched=False`` is a normal answer, not an error.
    """

    matched: bool
    expected_identifier: ContentIdentifier
    supplied_identifier: ContentIdentifier
    record: NotarizationRecord

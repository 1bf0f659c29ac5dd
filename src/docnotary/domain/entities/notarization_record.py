"""Notarization record entity."""

from dataclasses import dataclass
from datetime import datetime

from docnotary.domain.value_objects import ContentIdentifier


def normalize_address(address: str) -> str:
    """Ledger addresses compare case-insensitively."""
    return address.strip().lower()


@dataclass(frozen=True)
class NotarizationRecord:
    """Ledger fact binding sender, recipient and content identifier.

    ``id`` is assigned by the ledger and is the only ordering key;
    ``timestamp`` is informational wall-clock time.
    """

    id: int
    sender: str
    recipient: str
    content_identifier: ContentIdentifier
    reference: str
    timestamp: datetime
    source_tx_ref: str

    @property
    def recipient_key(self) -> str:
        return normalize_address(self.recipient)

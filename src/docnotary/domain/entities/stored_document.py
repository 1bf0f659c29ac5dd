"""Stored document entity."""

from dataclasses import dataclass
from datetime import datetime

from docnotary.domain.value_objects import ContentIdentifier


@dataclass
class StoredDocument:
    """Document bytes keyed by their content identifier."""

    content_identifier: ContentIdentifier
    data: bytes
    mime_type: str
    file_name: str
    owner: str
    stored_at: datetime

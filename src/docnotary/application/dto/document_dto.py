"""Document DTOs."""

from dataclasses import dataclass
from datetime import datetime

from docnotary.domain.value_objects import ContentIdentifier


@dataclass
class DocumentPutInput:
    """Input for storing a document."""

    data: bytes
    mime_type: str
    file_name: str
    owner: str


@dataclass
class DocumentPutOutput:
    """Result of a put: identifier and whether this call stored new bytes."""

    content_identifier: ContentIdentifier
    created: bool
    stored_at: datetime


@dataclass
class DocumentListItem:
    """Listing entry for an owner's documents."""

    file_name: str
    content_identifier: ContentIdentifier
    stored_at: datetime

"""Domain value objects."""

from docnotary.domain.value_objects.content_identifier import ContentIdentifier
from docnotary.domain.value_objects.indexer_state import IndexerState

__all__ = [
    "ContentIdentifier",
    "IndexerState",
]

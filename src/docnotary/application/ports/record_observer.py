"""Record observer port - receives records after the indexer folds them."""

from typing import Protocol

from docnotary.domain.entities import NotarizationRecord


class RecordObserver(Protocol):
    """Called once per newly indexed record, in fold order."""

    async def on_record(self, record: NotarizationRecord) -> None: ...

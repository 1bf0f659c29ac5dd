"""Ledger client port - append-only source of notarization records."""

from collections.abc import AsyncIterator
from typing import Protocol

from docnotary.domain.entities import NotarizationRecord
from docnotary.domain.value_objects import ContentIdentifier


class LedgerSubscription(Protocol):
    """Live stream of newly appended records.

    Iteration raises ``LedgerUnavailable`` when the connection drops.
    """

    def __aiter__(self) -> AsyncIterator[NotarizationRecord]: ...

    async def close(self) -> None: ...


class LedgerClient(Protocol):
    """Port for the external ledger.

    Implementations raise ``LedgerUnavailable`` on connectivity failures.
    Ids should become visible in ascending order; a lower id that becomes
    visible after a higher one is still folded, but readers may briefly see
    the higher id alone.
    """

    async def head(self) -> int:
        """Highest id assigned so far, 0 for an empty ledger."""
        ...

    async def query(self, from_id: int, to_id: int) -> list[NotarizationRecord]:
        """Records with ``from_id <= id <= to_id`` in ascending id order."""
        ...

    async def subscribe(self, recipient: str | None = None) -> LedgerSubscription: ...

    async def append(
        self,
        sender: str,
        recipient: str,
        content_identifier: ContentIdentifier,
        reference: str,
    ) -> int: ...

    async def close(self) -> None: ...

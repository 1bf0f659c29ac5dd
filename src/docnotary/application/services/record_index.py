"""Immutable index over the notarization record stream.

A ``RecordIndex`` is never mutated: ``apply`` returns a new index, so
readers holding a reference always see one consistent prefix of the stream.
"""

from bisect import insort
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from docnotary.domain.entities import NotarizationRecord, normalize_address


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class RecordIndex:
    """Snapshot of indexed records.

    ``watermark`` is the highest id such that every ledger id at or below
    it has been folded (or confirmed absent by a range query).
    """

    watermark: int = 0
    records: Mapping[int, NotarizationRecord] = field(default_factory=_empty)
    recipients: Mapping[str, tuple[int, ...]] = field(default_factory=_empty)
    order: tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.order)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self.records

    def get(self, record_id: int) -> NotarizationRecord | None:
        return self.records.get(record_id)

    def for_recipient(self, address: str) -> list[NotarizationRecord]:
        """Records addressed to ``address``, most recent (highest id) first."""
        ids = self.recipients.get(normalize_address(address), ())
        return [self.records[i] for i in reversed(ids)]

    def ordered(self) -> list[NotarizationRecord]:
        """All records in ledger (ascending id) order."""
        return [self.records[i] for i in self.order]

    def apply(
        self,
        records: Iterable[NotarizationRecord],
        through: int | None = None,
    ) -> tuple["RecordIndex", list[NotarizationRecord], list[NotarizationRecord]]:
        """Fold records into a new index.

        ``through`` marks the end of a range the ledger has answered in
        full, so ids up to it that are missing from ``records`` do not exist.
        Returns ``(index, accepted, held)``: ``accepted`` in fold order,
        ``held`` are records past a gap that cannot be indexed yet.
        Already indexed ids are dropped silently. A record at or below the
        watermark that is not indexed was committed after its range was
        read; it is accepted late and placed at its id.
        """
        fresh: dict[int, NotarizationRecord] = {}
        late: dict[int, NotarizationRecord] = {}
        for record in records:
            if record.id in self.records:
                continue
            if record.id > self.watermark:
                fresh.setdefault(record.id, record)
            else:
                late.setdefault(record.id, record)

        watermark = self.watermark
        confirmed = max(watermark, through or 0)
        accepted: list[NotarizationRecord] = [late[i] for i in sorted(late)]
        held: list[NotarizationRecord] = []
        for record_id in sorted(fresh):
            if held or record_id > max(watermark, confirmed) + 1:
                held.append(fresh[record_id])
                continue
            accepted.append(fresh[record_id])
            watermark = record_id
        watermark = max(watermark, confirmed)

        if not accepted:
            if watermark == self.watermark:
                return self, [], held
            return (
                RecordIndex(
                    watermark=watermark,
                    records=self.records,
                    recipients=self.recipients,
                    order=self.order,
                ),
                [],
                held,
            )

        by_id = dict(self.records)
        by_recipient = dict(self.recipients)
        order = list(self.order)
        for record in accepted:
            by_id[record.id] = record
            key = record.recipient_key
            if record.id in late:
                ids = list(by_recipient.get(key, ()))
                insort(ids, record.id)
                by_recipient[key] = tuple(ids)
                insort(order, record.id)
            else:
                # fresh ids lie above every indexed id, so appending keeps order
                by_recipient[key] = by_recipient.get(key, ()) + (record.id,)
                order.append(record.id)

        index = RecordIndex(
            watermark=watermark,
            records=MappingProxyType(by_id),
            recipients=MappingProxyType(by_recipient),
            order=tuple(order),
        )
        return index, accepted, held

"""Notarization record API resources (read from the ledger index)."""

import falcon.asgi

from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.entities import NotarizationRecord
from docnotary.domain.exceptions import LedgerUnavailable, NotFound
from docnotary.interfaces.api.resources.common import set_unavailable


def record_to_dict(record: NotarizationRecord) -> dict:
    return {
        "id": record.id,
        "sender": record.sender,
        "recipient": record.recipient,
        "content_identifier": record.content_identifier.to_hex(),
        "reference": record.reference,
        "timestamp": record.timestamp.isoformat(),
        "source_tx_ref": record.source_tx_ref,
    }


class RecordsResource:
    """GET /v1/records - every indexed record in ledger order."""

    def __init__(self, indexer: LedgerIndexer) -> None:
        self._indexer = indexer

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        try:
            records = self._indexer.all()
        except LedgerUnavailable as e:
            set_unavailable(resp, e)
            return
        resp.media = {"items": [record_to_dict(r) for r in records]}
        resp.status = falcon.HTTP_200


class RecordResource:
    """GET /v1/records/{record_id}."""

    def __init__(self, indexer: LedgerIndexer) -> None:
        self._indexer = indexer

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, record_id: int
    ) -> None:
        try:
            record = self._indexer.by_id(record_id)
        except NotFound:
            resp.status = falcon.HTTP_404
            resp.media = {"error": f"Record {record_id} not found"}
            return
        except LedgerUnavailable as e:
            set_unavailable(resp, e)
            return
        resp.media = record_to_dict(record)
        resp.status = falcon.HTTP_200


class InboxResource:
    """GET /v1/inbox/{address} - records addressed to a recipient, newest first."""

    def __init__(self, indexer: LedgerIndexer) -> None:
        self._indexer = indexer

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, address: str
    ) -> None:
        try:
            records = self._indexer.by_recipient(address)
        except LedgerUnavailable as e:
            set_unavailable(resp, e)
            return
        resp.media = {"items": [record_to_dict(r) for r in records]}
        resp.status = falcon.HTTP_200

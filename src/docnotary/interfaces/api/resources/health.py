"""Health check endpoints."""

import falcon.asgi

from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.value_objects import IndexerState


class HealthResource:
    """Health and readiness endpoints."""

    def __init__(self, indexer: LedgerIndexer | None = None) -> None:
        self._indexer = indexer

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """GET /v1/health - liveness."""
        resp.media = {"status": "ok"}
        resp.status = falcon.HTTP_200

    async def on_get_ready(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """GET /v1/health/ready - ready once the ledger index has been replayed.

        A degraded indexer still serves its last snapshot, so it counts as ready.
        """
        if self._indexer is None:
            resp.media = {"status": "ready"}
            resp.status = falcon.HTTP_200
            return
        state = self._indexer.state
        ready = state in (IndexerState.LIVE, IndexerState.DEGRADED)
        resp.media = {
            "status": "ready" if ready else "not_ready",
            "ledger": state.value,
            "watermark": self._indexer.watermark,
        }
        resp.status = falcon.HTTP_200 if ready else falcon.HTTP_503

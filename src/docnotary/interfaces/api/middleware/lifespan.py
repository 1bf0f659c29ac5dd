"""Lifespan middleware - acquires shared resources on startup, releases them on shutdown."""

import asyncio
import contextlib
import logging
from typing import Any

from psycopg_pool import AsyncConnectionPool

from docnotary.application.ports import LedgerClient
from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.domain.exceptions import LedgerUnavailable

logger = logging.getLogger(__name__)


class LifespanMiddleware:
    """Opens pools and starts the indexer with the server; closes them in reverse order.

    A ledger outage at startup does not abort the server: the indexer
    stays uninitialized (readiness reports 503) and startup is retried in
    the background with exponential backoff.
    """

    def __init__(
        self,
        pools: list[AsyncConnectionPool],
        ledger: LedgerClient,
        indexer: LedgerIndexer,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ) -> None:
        self._pools = pools
        self._ledger = ledger
        self._indexer = indexer
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._retry_task: asyncio.Task | None = None

    async def process_startup(
        self, scope: dict[str, Any], event: dict[str, Any]
    ) -> None:
        for pool in self._pools:
            await pool.open()
        try:
            await self._indexer.start()
        except LedgerUnavailable as e:
            logger.error("Ledger index not available at startup: %s", e)
            self._retry_task = asyncio.create_task(
                self._retry_start(), name="ledger-indexer-startup"
            )

    async def _retry_start(self) -> None:
        delay = self._retry_delay
        while True:
            logger.info("Retrying ledger replay in %.1fs", delay)
            await asyncio.sleep(delay)
            try:
                await self._indexer.start()
                return
            except LedgerUnavailable as e:
                logger.error("Ledger replay retry failed: %s", e)
                delay = min(delay * 2, self._max_retry_delay)

    async def process_shutdown(
        self, scope: dict[str, Any], event: dict[str, Any]
    ) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._retry_task
        await self._indexer.stop()
        await self._ledger.close()
        for pool in reversed(self._pools):
            await pool.close()

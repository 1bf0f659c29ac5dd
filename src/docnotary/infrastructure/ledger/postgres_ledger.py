"""PostgreSQL-backed append-only ledger.

Records live in the ``notarization_event`` table (ids from an identity column,
rows never updated or deleted). An insert trigger publishes each new id on
the ``notarization_event`` channel, which subscriptions consume via
LISTEN/NOTIFY on a dedicated autocommit connection. Appends are
serialized so ids become visible in ascending order.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

import psycopg
from psycopg import sql
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from docnotary.domain.entities import NotarizationRecord, normalize_address
from docnotary.domain.exceptions import LedgerUnavailable
from docnotary.domain.value_objects import ContentIdentifier

logger = logging.getLogger(__name__)

LEDGER_CHANNEL = "notarization_event"

# Transaction-scoped advisory lock key serializing appends
APPEND_LOCK_KEY = 0x6E6F7461

_COLUMNS = "id, sender, recipient, content_identifier, reference, created_at, tx_ref"


def _row_to_record(r: tuple) -> NotarizationRecord:
    return NotarizationRecord(
        id=r[0],
        sender=r[1],
        recipient=r[2],
        content_identifier=ContentIdentifier(bytes(r[3])),
        reference=r[4],
        timestamp=r[5],
        source_tx_ref=r[6],
    )


@asynccontextmanager
async def _ledger_errors(action: str) -> AsyncIterator[None]:
    try:
        yield
    except (psycopg.Error, PoolTimeout) as e:
        raise LedgerUnavailable(f"Ledger {action} failed: {e}") from e


class PostgresSubscription:
    """LISTEN-based live stream; each notification carries a record id."""

    def __init__(
        self,
        conn: psycopg.AsyncConnection,
        ledger: "PostgresLedger",
        recipient: str | None,
    ) -> None:
        self._conn = conn
        self._ledger = ledger
        self._recipient = normalize_address(recipient) if recipient else None

    async def __aiter__(self) -> AsyncIterator[NotarizationRecord]:
        async with _ledger_errors("subscription"):
            async for notify in self._conn.notifies():
                try:
                    record_id = int(notify.payload)
                except ValueError:
                    logger.warning("Ignoring malformed ledger notification %r", notify.payload)
                    continue
                for record in await self._ledger.query(record_id, record_id):
                    if self._recipient is None or record.recipient_key == self._recipient:
                        yield record

    async def close(self) -> None:
        self._ledger._subscriptions.discard(self)
        if not self._conn.closed:
            await self._conn.close()


class PostgresLedger:
    """Ledger client over the ``notarization_event`` table."""

    def __init__(self, pool: AsyncConnectionPool, conninfo: str) -> None:
        self._pool = pool
        self._conninfo = conninfo
        self._subscriptions: set[PostgresSubscription] = set()

    async def head(self) -> int:
        async with _ledger_errors("head query"), self._pool.connection() as conn:
            cur = await conn.execute("SELECT COALESCE(MAX(id), 0) FROM notarization_event")
            r = await cur.fetchone()
        return int(r[0])

    async def query(self, from_id: int, to_id: int) -> list[NotarizationRecord]:
        if from_id > to_id:
            return []
        async with _ledger_errors("range query"), self._pool.connection() as conn:
            cur = await conn.execute(
                f"SELECT {_COLUMNS} FROM notarization_event "
                "WHERE id BETWEEN %s AND %s ORDER BY id",
                (from_id, to_id),
            )
            rows = await cur.fetchall()
        return [_row_to_record(r) for r in rows]

    async def subscribe(self, recipient: str | None = None) -> PostgresSubscription:
        async with _ledger_errors("subscribe"):
            conn = await psycopg.AsyncConnection.connect(self._conninfo, autocommit=True)
            try:
                await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(LEDGER_CHANNEL)))
            except BaseException:
                # also on cancellation by the caller's deadline
                await conn.close()
                raise
        subscription = PostgresSubscription(conn, self, recipient)
        self._subscriptions.add(subscription)
        return subscription

    async def append(
        self,
        sender: str,
        recipient: str,
        content_identifier: ContentIdentifier,
        reference: str,
    ) -> int:
        async with _ledger_errors("append"), self._pool.connection() as conn:
            # Identity values are drawn at insert but become visible at commit.
            # Holding the lock until commit makes ids visible in ascending order.
            await conn.execute("SELECT pg_advisory_xact_lock(%s)", (APPEND_LOCK_KEY,))
            cur = await conn.execute(
                "INSERT INTO notarization_event "
                "(sender, recipient, content_identifier, reference, tx_ref) "
                "VALUES (%s, %s, %s, %s, %s) RETURNING id",
                (sender, recipient, content_identifier.value, reference, uuid4().hex),
            )
            r = await cur.fetchone()
        return int(r[0])

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()

"""Ledger client adapters."""

from docnotary.infrastructure.ledger.memory_ledger import InMemoryLedger
from docnotary.infrastructure.ledger.postgres_ledger import PostgresLedger

__all__ = [
    "InMemoryLedger",
    "PostgresLedger",
]

"""Application ports - interfaces for external adapters."""

from docnotary.application.ports.ledger_client import LedgerClient, LedgerSubscription
from docnotary.application.ports.record_observer import RecordObserver
from docnotary.application.ports.unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = [
    "LedgerClient",
    "LedgerSubscription",
    "RecordObserver",
    "UnitOfWork",
    "UnitOfWorkFactory",
]

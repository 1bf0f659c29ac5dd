"""Ledger indexer lifecycle states."""

from enum import Enum


class IndexerState(str, Enum):
    """Indexer lifecycle: UNINITIALIZED -> REPLAYING -> LIVE <-> DEGRADED."""

    UNINITIALIZED = "uninitialized"
    REPLAYING = "replaying"
    LIVE = "live"
    DEGRADED = "degraded"
    STOPPED = "stopped"

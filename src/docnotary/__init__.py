"""Document notarization service: content store, ledger indexer, verification."""

__version__ = "0.1.0"

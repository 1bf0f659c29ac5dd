"""Domain exceptions."""


class NotaryError(Exception):
    """Base exception for docnotary."""

    pass


class NotFound(NotaryError):
    """Requested resource was not found."""

    pass


class UnknownRecord(NotaryError):
    """Verification requested against a record id the ledger never assigned."""

    def __init__(self, record_id: int) -> None:
        super().__init__(f"Unknown notarization record: {record_id}")
        self.record_id = record_id


class StorageUnavailable(NotaryError):
    """Content storage could not be reached; safe to retry with backoff."""

    pass


class LedgerUnavailable(NotaryError):
    """Ledger could not be reached or the index is not initialized yet."""

    pass


class ValidationError(NotaryError):
    """Validation failed for input data."""

    pass

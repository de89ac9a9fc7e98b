"""Custom exceptions for the document store."""


class DataStoreError(Exception):
    """Raised when the document store is unreachable or an operation fails."""

    pass


class DuplicateRecordError(DataStoreError):
    """Raised when a write violates a unique index (email, auth0_id)."""

    pass

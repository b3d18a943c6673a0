class NpiSyncError(Exception):
    """Base exception for npi-sync."""


class ConfigError(NpiSyncError):
    """Raised when configuration is missing or invalid."""


class SyncError(NpiSyncError):
    """Raised when the synchronisation pipeline fails."""


class SourceError(SyncError):
    """Raised when the flat-file source cannot be read."""


class ProvisioningError(SyncError):
    """Raised when the collection schema cannot be provisioned."""


class UnexpectedError(SyncError):
    """Fallback for unexpected exceptions raised during a sync run."""


# Remote store errors


class StoreError(SyncError):
    """Raised when the remote document store rejects a call."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class AlreadyExistsError(StoreError):
    pass


class NotFoundError(StoreError):
    pass


class FatalStoreError(StoreError):
    pass


# Retriable errors


class RetriableError(StoreError):
    pass


class TransientStoreError(RetriableError):
    pass


class RateLimitError(RetriableError):
    pass


def classify_store_error(code: int | None, message: str) -> StoreError:
    """
    Map a remote store status code onto the error taxonomy.
    Only store adapters call this; the sync pipeline branches on types.
    """
    if code == 409:
        return AlreadyExistsError(message, code)
    if code == 404:
        return NotFoundError(message, code)
    if code == 429:
        return RateLimitError(message, code)
    if code is not None and 500 <= code < 600:
        return TransientStoreError(message, code)
    return FatalStoreError(message, code)


def wrap_exception(error: Exception) -> SyncError:
    """
    Map foreign exceptions to suitable npi_exceptions types.
    Use this to standardise error handling in sync paths.
    """
    if isinstance(error, SyncError):
        return error

    if isinstance(error, (TimeoutError, ConnectionError)):
        return TransientStoreError(str(error))

    if isinstance(error, (FileNotFoundError, PermissionError, UnicodeError)):
        return SourceError(str(error))

    return UnexpectedError(str(error))

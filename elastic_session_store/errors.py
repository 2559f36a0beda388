from typing import Optional


class SessionStoreError(Exception):
    """Base class for session store failures."""


class StoreError(SessionStoreError):
    """A write, delete or update against Elasticsearch failed."""

    def __init__(self, message: str, storage_key: Optional[str] = None):
        super().__init__(message)
        self.storage_key = storage_key


class SessionNotFoundError(StoreError):
    """A targeted update addressed a record that does not exist."""


class RecoveryError(SessionStoreError):
    """The startup scan could not enumerate existing records."""

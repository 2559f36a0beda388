from .config import SessionStoreSettings
from .errors import RecoveryError, SessionNotFoundError, SessionStoreError, StoreError
from .services import ElasticsearchSessionStore, ExpiryClock, SessionStore

__all__ = [
    "SessionStoreSettings",
    "SessionStore",
    "ElasticsearchSessionStore",
    "ExpiryClock",
    "SessionStoreError",
    "StoreError",
    "SessionNotFoundError",
    "RecoveryError",
]

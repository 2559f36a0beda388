from .base import SessionStore
from .expiry_clock import ExpiryClock
from .keys import KeyCodec
from .record_store import RecordStore, ScanHit
from .session_store import ElasticsearchSessionStore

__all__ = [
    "SessionStore",
    "ExpiryClock",
    "KeyCodec",
    "RecordStore",
    "ScanHit",
    "ElasticsearchSessionStore",
]

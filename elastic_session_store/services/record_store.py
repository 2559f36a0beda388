import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from elasticsearch import ApiError, NotFoundError, TransportError
from elasticsearch.helpers import ScanError, async_scan

from ..errors import RecoveryError, SessionNotFoundError, StoreError

logger = logging.getLogger(__name__)

# Evaluated by Elasticsearch so a touch never clobbers a concurrent payload write.
TOUCH_SCRIPT = """
ctx._source.timestamp = params.now;
if (ctx._source.cookie != null && ctx._source.cookie.originalMaxAge != null) {
    long deadline = (long) (params.now + ctx._source.cookie.originalMaxAge);
    ctx._source.cookie.expires = Instant.ofEpochMilli(deadline).toString();
}
""".strip()


@dataclass(frozen=True)
class ScanHit:
    key: str
    timestamp: Optional[int] = None


class RecordStore:
    """Thin async adapter over the Elasticsearch document API."""

    def __init__(self, client, index: str):
        self.client = client
        self.index = index

    async def fetch(self, storage_key: str) -> dict | None:
        """Return the stored document, or None when it is absent or unreadable."""
        try:
            resp = await self.client.get(index=self.index, id=storage_key)
        except NotFoundError:
            logger.debug("Session %s not found in %s", storage_key, self.index)
            return None
        except (ApiError, TransportError) as e:
            logger.warning("Session %s unreadable, treating as absent: %s", storage_key, e)
            return None
        return resp["_source"]

    async def upsert(self, storage_key: str, record: dict) -> dict:
        """Replace the whole document stored under storage_key."""
        try:
            await self.client.index(index=self.index, id=storage_key, document=record)
        except (ApiError, TransportError) as e:
            raise StoreError(f"Failed to write session {storage_key}: {e}", storage_key) from e
        return {"session_key": storage_key, "upserted": True}

    async def remove(self, storage_key: str) -> dict:
        """Delete a document. Deleting an absent key reports ``deleted: 0``."""
        try:
            await self.client.delete(index=self.index, id=storage_key)
        except NotFoundError:
            return {"deleted": 0}
        except (ApiError, TransportError) as e:
            raise StoreError(f"Failed to delete session {storage_key}: {e}", storage_key) from e
        return {"deleted": 1}

    async def update_expiry_field(self, storage_key: str, now_ms: int) -> dict:
        """Move ``cookie.expires`` to ``now + cookie.originalMaxAge`` in place."""
        try:
            await self.client.update(
                index=self.index,
                id=storage_key,
                script={
                    "source": TOUCH_SCRIPT,
                    "lang": "painless",
                    "params": {"now": now_ms},
                },
            )
        except NotFoundError as e:
            raise SessionNotFoundError(f"Session {storage_key} does not exist", storage_key) from e
        except (ApiError, TransportError) as e:
            raise StoreError(f"Failed to touch session {storage_key}: {e}", storage_key) from e
        return {"session_key": storage_key, "updated": True}

    async def scan_all(self) -> AsyncIterator[ScanHit]:
        """Yield every document id in the index with its write timestamp.

        Each call opens a new scroll; the iterator cannot be restarted.
        """
        query = {"query": {"match_all": {}}, "_source": ["timestamp"]}
        try:
            async for hit in async_scan(self.client, query=query, index=self.index):
                source = hit.get("_source") or {}
                yield ScanHit(key=hit["_id"], timestamp=source.get("timestamp"))
        except (ApiError, TransportError, ScanError) as e:
            raise RecoveryError(f"Failed to scan index {self.index}: {e}") from e

import asyncio
import logging
import time
from collections import Counter
from typing import Any, Callable

from ..config import SessionStoreSettings
from ..errors import RecoveryError, StoreError
from .base import SessionStore
from .expiry_clock import ExpiryClock
from .keys import KeyCodec
from .record_store import RecordStore, ScanHit

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ElasticsearchSessionStore(SessionStore):
    """Session store persisting records in Elasticsearch.

    Expiry is enforced twice: actively by the expiry clock, which deletes a
    record once its TTL runs out, and passively on read, where a record whose
    ``timestamp`` is older than the TTL is reported as absent.
    """

    def __init__(
        self,
        client,
        settings: SessionStoreSettings,
        clock: ExpiryClock | None = None,
        now_ms: Callable[[], int] = _epoch_ms,
    ):
        self.settings = settings
        self.keys = KeyCodec(settings.prefix)
        self.records = RecordStore(client, settings.es_index)
        self.clock = clock if clock is not None else ExpiryClock()
        self.now_ms = now_ms
        self.recovered: int | None = None
        # Keys with a write in flight, and keys whose expiry fired during one.
        self._writes: Counter[str] = Counter()
        self._deferred: set[str] = set()

    # ------------------------------------------------------------------
    # Session store contract
    # ------------------------------------------------------------------

    async def get(self, sid: str) -> dict[str, Any] | None:
        key = self.keys.encode(sid)
        record = await self.records.fetch(key)
        if record is None:
            return None
        if self._is_expired(record):
            logger.debug("Session %s is past its TTL, reporting absent", key)
            return None
        session = dict(record)
        session.pop("timestamp", None)
        return session

    async def set(self, sid: str, session: dict[str, Any]) -> dict:
        key = self.keys.encode(sid)
        record = dict(session)
        record["timestamp"] = self.now_ms()
        self._writes[key] += 1
        try:
            result = await self.records.upsert(key, record)
        except StoreError:
            self._finish_write(key, failed=True)
            raise
        self._finish_write(key)
        self._arm(key, self.settings.ttl_seconds)
        return result

    async def destroy(self, sid: str) -> dict:
        key = self.keys.encode(sid)
        self.clock.cancel(key)
        return await self.records.remove(key)

    async def touch(self, sid: str, session: dict[str, Any]) -> dict:
        key = self.keys.encode(sid)
        self._arm(key, self.settings.ttl_seconds)
        return await self.records.update_expiry_field(key, self.now_ms())

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def recover(self) -> int:
        """Schedule expiry for every record already in the index.

        Only keys carrying this store's prefix are scheduled. Returns the
        number of timers armed.
        """
        now = self.now_ms()
        scheduled = 0
        try:
            async for hit in self.records.scan_all():
                if not self.keys.owns(hit.key):
                    continue
                self._arm(hit.key, self._recovery_delay(hit, now))
                scheduled += 1
        except RecoveryError:
            logger.exception("Session recovery failed after %d records", scheduled)
            raise
        self.recovered = scheduled
        logger.info("Recovered expiry timers for %d sessions in %s",
                    scheduled, self.settings.es_index)
        return scheduled

    def start(self) -> asyncio.Task:
        """Run recovery in the background and return its task."""
        return asyncio.get_running_loop().create_task(self.recover())

    async def initialize(self) -> int | None:
        """Run recovery, logging a failure instead of raising it.

        Without recovery the store still works; records written before the
        restart simply expire passively until the next set or touch.
        """
        try:
            return await self.recover()
        except RecoveryError as e:
            logger.warning("Continuing without recovered expiry timers: %s", e)
            return None

    async def close(self) -> None:
        await self.clock.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_expired(self, record: dict) -> bool:
        written = record.get("timestamp")
        if not isinstance(written, (int, float)):
            return False
        return self.now_ms() - written > self.settings.ttl_ms

    def _recovery_delay(self, hit: ScanHit, now: int) -> float:
        if self.settings.recovery_full_ttl or not isinstance(hit.timestamp, (int, float)):
            return self.settings.ttl_seconds
        remaining = self.settings.ttl_ms - (now - hit.timestamp)
        return max(remaining, 0) / 1000

    def _arm(self, key: str, delay: float) -> None:
        try:
            self.clock.schedule(key, delay, self._expire)
        except Exception:
            logger.exception("Could not schedule expiry for %s", key)

    def _finish_write(self, key: str, failed: bool = False) -> None:
        self._writes[key] -= 1
        if self._writes[key] > 0:
            return
        del self._writes[key]
        if key not in self._deferred:
            return
        self._deferred.discard(key)
        # The write that postponed expiry never landed, so the old record
        # still needs its delete.
        if failed and key not in self.clock:
            self._arm(key, 0)

    async def _expire(self, key: str) -> dict | None:
        sid = self.keys.decode(key)
        # A set or touch after the timer fired re-armed the key; leave it.
        if key in self.clock:
            logger.debug("Session %s was refreshed before expiry ran", sid)
            return None
        if self._writes[key]:
            logger.debug("Session %s is being rewritten, deferring expiry", sid)
            self._deferred.add(key)
            return None
        result = await self.records.remove(key)
        logger.debug("Expired session %s: %s", sid, result)
        return result

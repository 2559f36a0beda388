import logging
import time

from elasticsearch import AsyncElasticsearch

logger = logging.getLogger(__name__)


class ElasticsearchConnectionManager:
    """Owns the async Elasticsearch client for the service.

    ``es_host`` may be a bare ``host:port`` or a full URL; auth is either an
    API key or basic auth, whichever the settings carry.
    """

    def __init__(self, settings):
        self.settings = settings
        self.client: AsyncElasticsearch | None = None
        self._last_ping: tuple[float, bool] | None = None

    async def create_client(self) -> AsyncElasticsearch:
        logging.getLogger("elastic_transport").setLevel(self.settings.es_log_level)
        self.client = AsyncElasticsearch(**self.settings.client_kwargs())
        logger.info("Elasticsearch client for %s", ", ".join(self.settings.get_hosts()))
        return self.client

    async def close_client(self):
        if self.client:
            await self.client.close()
            self.client = None
            self._last_ping = None

    async def ping(self) -> bool:
        """Cluster reachability, cached for ``ping_interval`` seconds."""
        if not self.client:
            return False
        now = time.monotonic()
        if self._last_ping and now - self._last_ping[0] < self.settings.ping_interval:
            return self._last_ping[1]
        try:
            ok = bool(await self.client.ping())
        except Exception as e:
            logger.warning("Elasticsearch ping failed: %s", e)
            ok = False
        self._last_ping = (now, ok)
        return ok

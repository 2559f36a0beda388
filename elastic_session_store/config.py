import re

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional, Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class SessionStoreSettings(BaseSettings):
    """Elastic session store configuration.

    Immutable once built; every field can come from the environment with the
    ``ESSESSION_`` prefix (``ESSESSION_ES_HOST``, ``ESSESSION_TTL_MS`` ...).
    """

    es_host: str = "localhost:9200"
    es_index: str = "express"
    es_type_name: str = "session"
    es_username: Optional[str] = None
    es_password: Optional[str] = None
    es_api_key: Optional[str] = None
    request_timeout: float = 1.0
    ping_interval: float = 1.0
    ttl_ms: int = 3600000  # 1 hour
    prefix: str = ""
    log_level: LogLevel = "INFO"
    es_log_level: LogLevel = "WARNING"
    recovery_full_ttl: bool = False
    auto_init: bool = False
    service_port: int = 8100
    service_token: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="ESSESSION_",
        case_sensitive=False,
        frozen=True,
    )

    @field_validator("es_index")
    @classmethod
    def validate_index_name(cls, v: str) -> str:
        if v in (".", "..") or not re.match(r"^[a-z0-9][a-z0-9._-]*$", v):
            raise ValueError(f"Invalid Elasticsearch index name: {v!r}")
        return v

    @field_validator("ttl_ms")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("ttl_ms must be positive")
        return v

    @field_validator("log_level", "es_log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_ms / 1000

    def get_hosts(self) -> list[str]:
        """Return the node URLs for the Elasticsearch client.

        Accepts a bare ``host:port`` (the historical default) as well as a
        full URL, and a comma separated list of either.
        """
        hosts = []
        for host in self.es_host.split(","):
            host = host.strip()
            if not host:
                continue
            if "://" not in host:
                host = f"http://{host}"
            hosts.append(host)
        return hosts

    def client_kwargs(self) -> dict:
        """Keyword arguments for ``AsyncElasticsearch``."""
        kwargs = {
            "hosts": self.get_hosts(),
            "request_timeout": self.request_timeout,
        }
        if self.es_api_key:
            kwargs["api_key"] = self.es_api_key
        elif self.es_username:
            kwargs["basic_auth"] = (self.es_username, self.es_password or "")
        return kwargs

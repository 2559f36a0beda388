import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import SessionStoreSettings
from .db.connection import ElasticsearchConnectionManager
from .db.schema import init_index
from .services.session_store import ElasticsearchSessionStore
from .api import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = SessionStoreSettings()
    logging.basicConfig(level=settings.log_level)
    app.state.settings = settings

    conn_mgr = ElasticsearchConnectionManager(settings)
    client = await conn_mgr.create_client()
    app.state.conn_mgr = conn_mgr
    app.state.client = client

    if settings.auto_init:
        try:
            result = await init_index(client, settings)
            logger.info("Auto-init index: %s", result)
        except Exception as e:
            logger.warning("Auto-init failed (run POST /api/init manually): %s", e)

    session_store = ElasticsearchSessionStore(client, settings)
    app.state.session_store = session_store

    # Timers for records written before the restart are armed before serving.
    app.state.recovered = await session_store.initialize()

    yield

    # Shutdown
    await session_store.close()
    await conn_mgr.close_client()
    logger.info("Elasticsearch client closed")


app = FastAPI(
    title="Elastic Session Store",
    version="0.1.0",
    description="Session records in Elasticsearch with in-process expiry",
    lifespan=lifespan,
)


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Optional bearer token authentication.

    When ESSESSION_SERVICE_TOKEN is set, all requests must include
    a matching Authorization: Bearer <token> header.
    """

    async def dispatch(self, request: Request, call_next):
        token = request.app.state.settings.service_token
        if token:
            auth = request.headers.get("authorization", "")
            if not auth.startswith("Bearer ") or auth[7:] != token:
                return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return await call_next(request)


app.add_middleware(BearerTokenMiddleware)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    settings = SessionStoreSettings()
    uvicorn.run(
        "elastic_session_store.main:app",
        host="0.0.0.0",
        port=settings.service_port,
    )

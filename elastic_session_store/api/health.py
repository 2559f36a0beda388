from fastapi import APIRouter, Request

from ..db.schema import check_index_exists, get_schema_version

router = APIRouter()


@router.get("/api/health")
async def health(request: Request):
    settings = request.app.state.settings
    client = request.app.state.client
    conn_mgr = request.app.state.conn_mgr
    session_store = request.app.state.session_store

    reachable = await conn_mgr.ping() if conn_mgr else False

    index_exists = False
    schema_version = "unknown"
    if client and reachable:
        try:
            index_exists = await check_index_exists(client, settings.es_index)
        except Exception:
            index_exists = False
        if index_exists:
            schema_version = await get_schema_version(client, settings.es_index)

    return {
        "status": "ok",
        "elasticsearch": {
            "hosts": settings.get_hosts(),
            "reachable": reachable,
        },
        "index": {
            "name": settings.es_index,
            "exists": index_exists,
            "schema_version": schema_version,
        },
        "expiry": {
            "ttl_ms": settings.ttl_ms,
            "pending_timers": len(session_store.clock) if session_store else 0,
            "recovered": request.app.state.recovered,
        },
    }

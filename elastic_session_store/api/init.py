import logging

from fastapi import APIRouter, Request, HTTPException

from ..db.schema import init_index

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/init")
async def initialize(request: Request):
    client = request.app.state.client
    settings = request.app.state.settings

    if not client:
        raise HTTPException(status_code=503, detail="Elasticsearch client not available")

    result = await init_index(client, settings)
    logger.info("Index init result: %s", result)

    return {
        "status": "initialized",
        "index": result["index"],
        "created": result["created"],
    }

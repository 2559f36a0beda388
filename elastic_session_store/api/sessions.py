import logging

from fastapi import APIRouter, Request, HTTPException

from ..errors import SessionNotFoundError, StoreError
from ..models.sessions import SessionPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions")


def _get_session_store(request: Request):
    store = request.app.state.session_store
    if not store:
        raise HTTPException(status_code=503, detail="Session store not available")
    return store


@router.get("/{sid}")
async def get_session(request: Request, sid: str):
    store = _get_session_store(request)
    session = await store.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.put("/{sid}")
async def set_session(request: Request, sid: str, session: SessionPayload):
    store = _get_session_store(request)
    try:
        return await store.set(sid, session.model_dump(by_alias=True, exclude_unset=True))
    except StoreError as e:
        logger.error("Session write failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))


@router.delete("/{sid}")
async def destroy_session(request: Request, sid: str):
    store = _get_session_store(request)
    try:
        return await store.destroy(sid)
    except StoreError as e:
        logger.error("Session delete failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/{sid}/touch")
async def touch_session(request: Request, sid: str, session: SessionPayload):
    store = _get_session_store(request)
    try:
        return await store.touch(sid, session.model_dump(by_alias=True, exclude_unset=True))
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except StoreError as e:
        logger.error("Session touch failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

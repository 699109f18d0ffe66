"""Raw progress snapshots: load, save, delete."""

from fastapi import APIRouter, Body, Depends

from backend.service import GameService
from emberfall.storage import dump_progress, validate_progress_payload

from .common import get_service, http_errors

router = APIRouter()


@router.get("/progress/{user_id}")
async def load_progress(user_id: str, service: GameService = Depends(get_service)):
    """Saved snapshot for a user (404 when nothing was saved)."""
    with http_errors():
        snapshot = await service.load_progress(user_id)
    return dump_progress(snapshot)


@router.post("/progress/{user_id}")
async def save_progress(user_id: str, payload: dict = Body(...), service: GameService = Depends(get_service)):
    """Replace a user's saved snapshot and live session."""
    with http_errors():
        snapshot = validate_progress_payload(payload)
        await service.save_progress(user_id, snapshot)
    return {"ok": True}


@router.delete("/progress/{user_id}")
async def delete_progress(user_id: str, service: GameService = Depends(get_service)):
    """Forget a user's saved snapshot."""
    with http_errors():
        await service.delete_progress(user_id)
    return {"ok": True}

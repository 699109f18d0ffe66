"""Campaign content and character-creation reference data."""

from fastapi import APIRouter, Depends

from backend.service import GameService
from emberfall.reference import default_reference

from .common import get_service

router = APIRouter()


@router.get("/campaign")
async def get_campaign(service: GameService = Depends(get_service)):
    """The active campaign definition (scenes, map, endings)."""
    campaign = await service.campaign()
    return campaign.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/reference")
async def get_reference():
    """Races, classes, backgrounds, skills and the standard ability array."""
    return default_reference().model_dump(mode="json", by_alias=True)

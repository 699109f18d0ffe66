"""Game session endpoints, one session per user id."""

from fastapi import APIRouter, Depends, HTTPException

from backend.service import GameService
from emberfall.hero import HeroBuild

from .common import get_service, http_errors
from .models import ChooseBody, TalkBody

router = APIRouter()


@router.get("/game/{user_id}")
async def get_game(user_id: str, service: GameService = Depends(get_service)):
    """Current session view: snapshot, scene, selectable choices, completion."""
    with http_errors():
        return await service.view(user_id)


@router.delete("/game/{user_id}")
async def reset_game(user_id: str, service: GameService = Depends(get_service)):
    """Start over: discard the session and its saved progress."""
    with http_errors():
        return await service.reset(user_id)


@router.post("/game/{user_id}/hero")
async def create_hero(user_id: str, body: HeroBuild, service: GameService = Depends(get_service)):
    """Build a hero and start the campaign at its intro scene."""
    with http_errors():
        return await service.create_hero(user_id, body)


@router.post("/game/{user_id}/choose")
async def choose(user_id: str, body: ChooseBody, service: GameService = Depends(get_service)):
    """Resolve a choice in the current scene."""
    with http_errors():
        return await service.choose(user_id, body.choice_id)


@router.get("/game/{user_id}/map")
async def world_map(user_id: str, service: GameService = Depends(get_service)):
    """World map with visited/current overlay."""
    with http_errors():
        return await service.world_map(user_id)


@router.get("/game/{user_id}/epilogue")
async def epilogue(user_id: str, service: GameService = Depends(get_service)):
    """The resolved ending; only available once the campaign is complete."""
    with http_errors():
        result = await service.epilogue(user_id)
    if result is None:
        raise HTTPException(409, "The campaign is not complete yet")
    return result


@router.post("/game/{user_id}/talk")
async def talk(user_id: str, body: TalkBody, service: GameService = Depends(get_service)):
    """Ask an NPC a question as the session's hero."""
    with http_errors():
        return await service.talk(user_id, body.npc_id, body.prompt)

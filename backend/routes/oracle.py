"""Stateless NPC dialogue endpoint."""

from fastapi import APIRouter, Depends

from backend.service import GameService
from emberfall.oracle import ask_npc

from .common import get_service
from .models import OracleBody

router = APIRouter()


@router.post("/oracle")
async def oracle(body: OracleBody, service: GameService = Depends(get_service)):
    """Reply from an NPC to a prompt, given a hero snapshot."""
    reply = await ask_npc(service.oracle(), body.npc_id, body.prompt, body.hero)
    return {"reply": reply}

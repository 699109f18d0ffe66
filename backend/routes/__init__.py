"""FastAPI API endpoints under /api.

Endpoint groups: health/settings/check-connection, campaign + reference data,
game sessions (per user id, with map, epilogue and NPC talk), raw progress
load/save/delete, and the stateless dialogue oracle. Engine errors are mapped
to HTTP status codes in common.py.
"""

from fastapi import APIRouter

from .campaign import router as campaign_router
from .game import router as game_router
from .oracle import router as oracle_router
from .progress import router as progress_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(campaign_router)
router.include_router(game_router)
router.include_router(progress_router)
router.include_router(oracle_router)

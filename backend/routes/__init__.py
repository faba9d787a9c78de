"""FastAPI API endpoints under /api.

Endpoint groups: health, game (streamed turn generation).
"""

from fastapi import APIRouter

from .game import router as game_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(game_router)

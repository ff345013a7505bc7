"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from autoframe.api.v1.generate import router as generate_router
from autoframe.api.v1.previews import router as previews_router
from autoframe.api.v1.schedule import router as schedule_router

router = APIRouter(prefix="/api/v1")
router.include_router(generate_router)
router.include_router(schedule_router)
router.include_router(previews_router)

__all__ = ["generate_router", "router"]

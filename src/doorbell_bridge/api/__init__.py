from fastapi import APIRouter

from .routes import health_router

router = APIRouter()
router.include_router(health_router)

__all__ = ["router"]

"""API router aggregation."""

from fastapi import APIRouter

from src.api.approvals import router as approvals_router
from src.api.bonuses import router as bonuses_router
from src.api.commission import router as commission_router
from src.api.health import router as health_router
from src.api.tiers import router as tiers_router

# Main API router (for /api/* endpoints)
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(commission_router)
api_router.include_router(tiers_router)
api_router.include_router(bonuses_router)
api_router.include_router(approvals_router)

__all__ = ["api_router"]

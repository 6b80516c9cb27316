"""
Health check endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db import get_db
from src.models import TierDefinition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Returns 200 if the service is running."""
    return {"status": "healthy", "service": "steelix-commission-engine"}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Readiness check with database connectivity.

    Also reports whether tier definitions have been stored or the
    built-in fallback table is in use.
    """
    try:
        stored = await db.scalar(
            select(func.count(TierDefinition.id)).where(TierDefinition.is_active == True)
        )
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return {"status": "not_ready", "database": "unavailable"}

    return {
        "status": "ready",
        "database": "connected",
        "tier_config": "stored" if stored else "defaults",
    }


@router.get("/live")
async def liveness_check():
    """Used by the orchestrator to decide whether to restart the container."""
    return {"status": "alive"}

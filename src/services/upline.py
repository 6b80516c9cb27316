"""
Upline resolution.

The hierarchy is one level deep: an agent's upline is whoever recruited
them, and only that agent can earn a leadership bonus from their deals.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import Agent, utcnow
from src.schemas.commission import UplineInfo
from src.services.errors import NotFoundError, ValidationError
from src.services.tier_config import get_active_tier

logger = logging.getLogger(__name__)


async def resolve_upline(db: AsyncSession, agent_id: int) -> Optional[UplineInfo]:
    """
    Find the direct upline of an agent and the bonus rate of their tier.

    Returns None when the agent is unknown, has no recruiter, or the
    recruiter record no longer exists.
    """
    agent = await db.get(Agent, agent_id)
    if agent is None or agent.recruited_by is None:
        return None

    upline = await db.get(Agent, agent.recruited_by)
    if upline is None:
        logger.warning(
            f"Agent {agent_id} references missing upline {agent.recruited_by}"
        )
        return None

    tier_config = await get_active_tier(db, upline.agent_tier)
    return UplineInfo(
        upline_id=upline.id,
        upline_name=upline.name,
        upline_tier=upline.agent_tier,
        leadership_bonus_rate=tier_config.leadership_bonus_rate,
    )


async def set_upline(
    db: AsyncSession,
    agent_id: int,
    recruited_by: Optional[int],
    set_by: int,
) -> Agent:
    """Assign (or clear, with None) the recruiter of an agent."""
    if recruited_by is not None and recruited_by == agent_id:
        raise ValidationError("An agent cannot recruit themselves", {"agent_id": agent_id})

    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent {agent_id} not found", {"agent_id": agent_id})

    if recruited_by is not None:
        recruiter = await db.get(Agent, recruited_by)
        if recruiter is None:
            raise NotFoundError(
                f"Agent {recruited_by} not found",
                {"agent_id": recruited_by},
            )

    agent.recruited_by = recruited_by
    agent.recruited_at = utcnow() if recruited_by is not None else None
    await db.commit()
    await db.refresh(agent)

    logger.info(f"Upline of agent {agent_id} set to {recruited_by} by agent {set_by}")
    return agent


async def get_downline(db: AsyncSession, upline_id: int) -> List[Agent]:
    """Agents directly recruited by `upline_id`, newest first."""
    result = await db.execute(
        select(Agent)
        .where(Agent.recruited_by == upline_id)
        .order_by(Agent.recruited_at.desc(), Agent.id)
    )
    return list(result.scalars().all())

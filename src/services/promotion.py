"""
Agent tier promotion.

Tiers only move up. Every change updates the agent and writes an
immutable history entry in the same database transaction.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import Agent, AgentTier, TierHistoryEntry, utcnow
from src.schemas.tier import (
    AgentTierInfo,
    BulkPromotionItem,
    PerformanceMetrics,
    PromotionResult,
    RequirementCheck,
    TierConfig,
)
from src.services.errors import (
    DemotionNotAllowed,
    EngineError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from src.services.tier_config import coerce_tier, get_active_tier

logger = logging.getLogger(__name__)


def check_requirements(
    target_config: TierConfig,
    metrics: PerformanceMetrics,
) -> RequirementCheck:
    """Compare metrics with a tier's thresholds."""
    missing: List[str] = []
    if metrics.monthly_sales < target_config.required_monthly_sales:
        missing.append(
            f"Need {target_config.required_monthly_sales} monthly sales "
            f"(current: {metrics.monthly_sales})"
        )
    if metrics.team_members < target_config.required_team_members:
        missing.append(
            f"Need {target_config.required_team_members} team members "
            f"(current: {metrics.team_members})"
        )
    return RequirementCheck(eligible=not missing, missing_requirements=missing)


async def validate_requirements(
    db: AsyncSession,
    current_tier: Union[AgentTier, str],
    target_tier: Union[AgentTier, str],
    metrics: PerformanceMetrics,
) -> RequirementCheck:
    """
    Check whether metrics meet the target tier's thresholds.

    Advisory only: promote() never consults it.
    """
    current_tier = coerce_tier(current_tier)
    target_tier = coerce_tier(target_tier)
    if target_tier.rank < current_tier.rank:
        return RequirementCheck(
            eligible=False,
            missing_requirements=[
                f"{target_tier.value} ranks below current tier {current_tier.value}"
            ],
        )
    target_config = await get_active_tier(db, target_tier)
    return check_requirements(target_config, metrics)


async def promote(
    db: AsyncSession,
    agent_id: int,
    new_tier: Union[AgentTier, str],
    promoted_by: int,
    reason: str,
    performance_metrics: Optional[Union[PerformanceMetrics, Dict[str, Any]]] = None,
) -> PromotionResult:
    """
    Move an agent to a tier of equal or higher rank.

    The agent's commission split is copied from the target tier's active
    definition. Promoting to the current tier re-affirms it and still
    records history.

    Raises:
        ValidationError: empty reason or unknown tier
        NotFoundError: agent does not exist
        DemotionNotAllowed: target ranks below the current tier
        PersistenceError: storage failure
    """
    new_tier = coerce_tier(new_tier)
    if not reason or not reason.strip():
        raise ValidationError("A reason is required for a tier change")

    if isinstance(performance_metrics, PerformanceMetrics):
        performance_metrics = performance_metrics.model_dump()

    try:
        result = await db.execute(
            select(Agent).where(Agent.id == agent_id).with_for_update()
        )
        agent = result.scalar_one_or_none()
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found", {"agent_id": agent_id})

        previous_tier = agent.agent_tier
        if new_tier.rank < previous_tier.rank:
            raise DemotionNotAllowed(
                f"Cannot demote agent from {previous_tier.value} to {new_tier.value}",
                {"current_tier": previous_tier.value, "requested_tier": new_tier.value},
            )

        tier_config = await get_active_tier(db, new_tier)
        now = utcnow()

        agent.agent_tier = new_tier
        agent.company_commission_split = tier_config.commission_split
        agent.tier_effective_date = now
        agent.tier_promoted_by = promoted_by

        db.add(
            TierHistoryEntry(
                agent_id=agent.id,
                previous_tier=previous_tier,
                new_tier=new_tier,
                effective_date=now,
                promoted_by=promoted_by,
                reason=reason.strip(),
                performance_metrics=performance_metrics,
            )
        )
        await db.commit()
    except EngineError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Promotion of agent {agent_id} failed: {e}")
        raise PersistenceError(f"Could not promote agent {agent_id}") from e

    logger.info(
        f"Agent {agent_id} promoted {previous_tier.value} -> {new_tier.value} "
        f"by agent {promoted_by}"
    )
    return PromotionResult(
        success=True,
        agent_id=agent_id,
        previous_tier=previous_tier,
        new_tier=new_tier,
        effective_date=now,
    )


async def bulk_promote(
    db: AsyncSession,
    updates: List[BulkPromotionItem],
    promoted_by: int,
) -> List[PromotionResult]:
    """Promote several agents; one failure does not undo the others."""
    results: List[PromotionResult] = []
    for item in updates:
        try:
            results.append(
                await promote(db, item.agent_id, item.new_tier, promoted_by, item.reason)
            )
        except EngineError as e:
            results.append(
                PromotionResult(
                    success=False,
                    agent_id=item.agent_id,
                    previous_tier=None,
                    new_tier=item.new_tier,
                    error=e.public_message,
                    error_code=e.code,
                )
            )
    return results


async def get_tier_history(db: AsyncSession, agent_id: int) -> List[TierHistoryEntry]:
    result = await db.execute(
        select(TierHistoryEntry)
        .where(TierHistoryEntry.agent_id == agent_id)
        .order_by(TierHistoryEntry.effective_date, TierHistoryEntry.id)
    )
    return list(result.scalars().all())


async def get_agent_tier_info(db: AsyncSession, agent_id: int) -> AgentTierInfo:
    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent {agent_id} not found", {"agent_id": agent_id})

    return AgentTierInfo(
        agent_id=agent.id,
        name=agent.name,
        agent_tier=agent.agent_tier,
        company_commission_split=agent.company_commission_split,
        tier_effective_date=agent.tier_effective_date,
        tier_promoted_by=agent.tier_promoted_by,
        recruited_by=agent.recruited_by,
        tier_config=await get_active_tier(db, agent.agent_tier),
    )

"""Agent tier API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext, get_auth_context, require_admin
from src.db import get_db
from src.models import PRIVILEGED_ROLES, AgentTier
from src.schemas.commission import UplineInfo
from src.schemas.tier import (
    AgentTierInfo,
    BulkPromotionRequest,
    DownlineAgentResponse,
    PromotionRequest,
    PromotionResult,
    RequirementCheck,
    RequirementCheckRequest,
    TierConfig,
    TierHistoryResponse,
    TierUpdateRequest,
    UplineAssignRequest,
)
from src.services import promotion, tier_config, upline
from src.services.errors import AccessDenied

router = APIRouter(prefix="/tiers", tags=["Tiers"])


def _ensure_self_or_reviewer(ctx: AuthContext, agent_id: int) -> None:
    if ctx.caller_id != agent_id and ctx.role not in PRIVILEGED_ROLES:
        raise AccessDenied("You can only view your own tier information")


@router.get("", response_model=List[TierConfig])
async def list_tiers(
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Active definition of every tier, lowest first."""
    return await tier_config.get_all_tiers(db)


@router.get("/{tier}", response_model=TierConfig)
async def get_tier(
    tier: AgentTier,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    return await tier_config.get_active_tier(db, tier)


@router.post("/promote", response_model=PromotionResult)
async def promote_agent(
    data: PromotionRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    return await promotion.promote(
        db,
        data.agent_id,
        data.new_tier,
        ctx.caller_id,
        data.reason,
        data.performance_metrics,
    )


@router.post("/promote/bulk", response_model=List[PromotionResult])
async def bulk_promote_agents(
    data: BulkPromotionRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    """Promote several agents; results are reported per agent."""
    return await promotion.bulk_promote(db, data.updates, ctx.caller_id)


@router.put("/upline")
async def assign_upline(
    data: UplineAssignRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    agent = await upline.set_upline(db, data.agent_id, data.recruited_by, ctx.caller_id)
    return {
        "agent_id": agent.id,
        "recruited_by": agent.recruited_by,
        "recruited_at": agent.recruited_at,
    }


# Literal PUT paths above must be registered before this one
@router.put("/{tier}", response_model=TierConfig)
async def update_tier(
    tier: AgentTier,
    data: TierUpdateRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    """Supersede a tier's definition (admin only)."""
    return await tier_config.update_tier(db, tier, data, ctx.caller_id, data.reason)


@router.get("/agents/{agent_id}", response_model=AgentTierInfo)
async def get_agent_tier(
    agent_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    _ensure_self_or_reviewer(ctx, agent_id)
    return await promotion.get_agent_tier_info(db, agent_id)


@router.get("/agents/{agent_id}/history", response_model=List[TierHistoryResponse])
async def get_agent_tier_history(
    agent_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    _ensure_self_or_reviewer(ctx, agent_id)
    history = await promotion.get_tier_history(db, agent_id)
    return [TierHistoryResponse.model_validate(entry) for entry in history]


@router.post("/agents/{agent_id}/requirements", response_model=RequirementCheck)
async def check_agent_requirements(
    agent_id: int,
    data: RequirementCheckRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Advisory check of metrics against a target tier."""
    _ensure_self_or_reviewer(ctx, agent_id)
    info = await promotion.get_agent_tier_info(db, agent_id)
    return await promotion.validate_requirements(
        db, info.agent_tier, data.target_tier, data.performance_metrics
    )


@router.get("/agents/{agent_id}/upline", response_model=Optional[UplineInfo])
async def get_agent_upline(
    agent_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    _ensure_self_or_reviewer(ctx, agent_id)
    return await upline.resolve_upline(db, agent_id)


@router.get("/agents/{agent_id}/downline", response_model=List[DownlineAgentResponse])
async def get_agent_downline(
    agent_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    _ensure_self_or_reviewer(ctx, agent_id)
    agents = await upline.get_downline(db, agent_id)
    return [DownlineAgentResponse.model_validate(agent) for agent in agents]

"""Commission calculation API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext, get_auth_context
from src.db import get_db
from src.schemas.commission import (
    CommissionBreakdown,
    CommissionCalculateRequest,
    CommissionPreviewRequest,
    CommissionPreviewResponse,
    SettlementResponse,
)
from src.services.settlement import (
    calculate_for_agent,
    commission_preview,
    settle_transaction_commission,
)

router = APIRouter(prefix="/commission", tags=["Commission"])


@router.post("/calculate", response_model=CommissionBreakdown)
async def calculate(
    data: CommissionCalculateRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Breakdown for a deal closed by the calling agent."""
    return await calculate_for_agent(
        db,
        ctx.caller_id,
        data.property_price,
        data.commission_rate,
        data.representation_type,
        data.co_broker_split_pct,
        data.include_leadership_bonus,
    )


@router.post("/preview", response_model=CommissionPreviewResponse)
async def preview(
    data: CommissionPreviewRequest,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Preview while entering a transaction (percentage or fixed amount)."""
    return await commission_preview(
        db,
        ctx.caller_id,
        data.property_price,
        data.commission_type,
        data.commission_value,
        data.representation_type,
        data.co_broker_split_pct,
        data.include_leadership_bonus,
    )


@router.post("/transactions/{transaction_id}/settle", response_model=SettlementResponse)
async def settle(
    transaction_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Settle a stored transaction and record its leadership bonus."""
    return await settle_transaction_commission(db, ctx, transaction_id)

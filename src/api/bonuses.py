"""Leadership bonus API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import AuthContext, get_auth_context, require_admin
from src.db import get_db
from src.models import PRIVILEGED_ROLES, BonusStatus
from src.schemas.bonus import AgentBonusSummary, BonusSummary, LeadershipBonusResponse
from src.services import leadership_bonus
from src.services.errors import AccessDenied

router = APIRouter(prefix="/bonuses", tags=["Leadership Bonuses"])


@router.get("/me", response_model=AgentBonusSummary)
async def my_bonus_summary(
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Leadership bonus overview for the calling agent."""
    return await leadership_bonus.bonus_summary_for_agent(db, ctx.caller_id)


@router.get("/summary", response_model=BonusSummary)
async def bonus_summary(
    upline_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    """Pending and paid totals for reconciliation."""
    return await leadership_bonus.summarize(db, upline_id)


@router.get("/upline/{upline_id}", response_model=List[LeadershipBonusResponse])
async def bonuses_for_upline(
    upline_id: int,
    status: Optional[BonusStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    if ctx.caller_id != upline_id and ctx.role not in PRIVILEGED_ROLES:
        raise AccessDenied("You can only view your own leadership bonuses")
    payments = await leadership_bonus.list_for_upline(db, upline_id, status)
    return [LeadershipBonusResponse.model_validate(p) for p in payments]


@router.get("", response_model=List[LeadershipBonusResponse])
async def list_bonuses(
    status: Optional[BonusStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    payments = await leadership_bonus.list_payments(db, status)
    return [LeadershipBonusResponse.model_validate(p) for p in payments]


@router.post("/{payment_id}/paid", response_model=LeadershipBonusResponse)
async def mark_bonus_paid(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    payment = await leadership_bonus.mark_paid(db, payment_id)
    return LeadershipBonusResponse.model_validate(payment)


@router.post("/{payment_id}/cancel", response_model=LeadershipBonusResponse)
async def cancel_bonus(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: AuthContext = Depends(require_admin),
):
    payment = await leadership_bonus.cancel(db, payment_id)
    return LeadershipBonusResponse.model_validate(payment)

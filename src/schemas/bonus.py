"""
Leadership bonus ledger schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from src.models.agent import AgentTier
from src.models.leadership_bonus import BonusStatus


class LeadershipBonusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_id: int
    downline_agent_id: int
    upline_agent_id: int
    upline_tier: AgentTier
    original_commission_amount: Decimal
    company_share_amount: Decimal
    leadership_bonus_rate: Decimal
    leadership_bonus_amount: Decimal
    status: BonusStatus
    paid_at: Optional[datetime]
    created_at: datetime


class BonusTotals(BaseModel):
    count: int
    amount: Decimal


class BonusSummary(BaseModel):
    """Aggregate for reconciliation: count and sum per state."""

    pending: BonusTotals
    paid: BonusTotals


class AgentBonusSummary(BaseModel):
    """Leadership bonus overview for one upline."""

    current_tier: AgentTier
    leadership_bonus_rate: Decimal
    downline_count: int
    total_pending_bonus: Decimal
    total_paid_bonus: Decimal
    total_earnings: Decimal
    recent_payments: List[LeadershipBonusResponse]

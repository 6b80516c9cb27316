"""
Commission calculation schemas.

CommissionBreakdown is a value object: it is computed on demand and only
persisted as a JSON snapshot in the commission audit log.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.agent import AgentTier
from src.models.transaction import CommissionType, RepresentationType


class UplineInfo(BaseModel):
    """Direct recruiter of an agent and the bonus rate of their tier."""

    model_config = ConfigDict(frozen=True)

    upline_id: int
    upline_name: Optional[str] = None
    upline_tier: AgentTier
    leadership_bonus_rate: Decimal


class LeadershipBonusInfo(BaseModel):
    upline_id: Optional[int]
    upline_name: Optional[str] = None
    upline_tier: AgentTier
    bonus_rate: Decimal
    bonus_amount: Decimal
    from_company_share: Decimal


class CommissionSummary(BaseModel):
    """Flat view of where the total commission goes."""

    total_commission: Decimal
    co_broker_share: Optional[Decimal] = None
    agent_earnings: Decimal
    leadership_bonus: Optional[Decimal] = None
    company_share: Decimal = Field(..., description="Company share after bonus")


class CommissionBreakdown(BaseModel):
    """Itemised commission for one transaction."""

    # Level 1: property
    property_price: Decimal
    commission_rate: Decimal
    total_commission: Decimal

    # Level 2: representation
    representation_type: RepresentationType
    agent_commission_share: Decimal
    co_broker_share: Optional[Decimal] = None

    # Level 3: tier split
    agent_tier: AgentTier
    company_commission_split: Decimal
    company_share: Decimal
    agent_earnings: Decimal

    # Level 4: leadership bonus
    leadership_bonus: Optional[LeadershipBonusInfo] = None
    company_net_share: Decimal

    summary: CommissionSummary


class CommissionCalculateRequest(BaseModel):
    """Request to calculate a commission breakdown."""

    property_price: Decimal = Field(..., gt=0)
    commission_rate: Decimal = Field(..., gt=0, le=100)
    representation_type: RepresentationType
    co_broker_split_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    include_leadership_bonus: bool = True


class CommissionPreviewRequest(BaseModel):
    """Preview for a transaction being entered, fixed or percentage."""

    property_price: Decimal = Field(..., gt=0)
    commission_type: CommissionType
    commission_value: Decimal = Field(..., gt=0)
    representation_type: RepresentationType
    co_broker_split_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    include_leadership_bonus: bool = True


class TierDisplayInfo(BaseModel):
    tier: AgentTier
    display_name: str
    description: Optional[str]
    leadership_bonus_rate: Decimal


class CommissionPreviewResponse(BaseModel):
    breakdown: CommissionBreakdown
    commission_type: CommissionType
    commission_value: Decimal
    tier_info: TierDisplayInfo
    upline_info: Optional[UplineInfo] = None


class SettlementResponse(BaseModel):
    transaction_id: int
    breakdown: CommissionBreakdown
    leadership_bonus_payment_id: Optional[int] = None

"""
Tier configuration and promotion schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.agent import AgentTier


class TierConfig(BaseModel):
    """
    Snapshot of one tier definition version.

    version 0 means the built-in default is in effect because no row has
    been written for the tier yet.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    tier: AgentTier
    version: int = 0
    commission_split: Decimal
    leadership_bonus_rate: Decimal
    required_monthly_sales: int
    required_team_members: int
    display_name: str
    description: Optional[str] = None
    is_active: bool = True
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None

    @property
    def is_default(self) -> bool:
        return self.version == 0


class TierUpdateRequest(BaseModel):
    """Fields an admin may change on a tier. Omitted fields are kept."""

    commission_split: Optional[Decimal] = None
    leadership_bonus_rate: Optional[Decimal] = None
    required_monthly_sales: Optional[int] = None
    required_team_members: Optional[int] = None
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    reason: str = Field(..., max_length=1000)


class PerformanceMetrics(BaseModel):
    monthly_sales: int = Field(..., ge=0)
    team_members: int = Field(..., ge=0)


class PromotionRequest(BaseModel):
    agent_id: int
    new_tier: AgentTier
    reason: str = Field(..., min_length=1, max_length=1000)
    performance_metrics: Optional[PerformanceMetrics] = None


class BulkPromotionItem(BaseModel):
    agent_id: int
    new_tier: AgentTier
    reason: str = Field(..., min_length=1, max_length=1000)


class BulkPromotionRequest(BaseModel):
    updates: List[BulkPromotionItem] = Field(..., min_length=1, max_length=50)


class PromotionResult(BaseModel):
    success: bool
    agent_id: int
    previous_tier: Optional[AgentTier]
    new_tier: AgentTier
    effective_date: Optional[datetime] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class RequirementCheckRequest(BaseModel):
    target_tier: AgentTier
    performance_metrics: PerformanceMetrics


class RequirementCheck(BaseModel):
    eligible: bool
    missing_requirements: List[str]


class TierHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    agent_id: int
    previous_tier: Optional[AgentTier]
    new_tier: AgentTier
    effective_date: datetime
    promoted_by: Optional[int]
    reason: Optional[str]
    performance_metrics: Optional[dict]


class AgentTierInfo(BaseModel):
    """Agent's tier with the current definition of that tier."""

    agent_id: int
    name: str
    agent_tier: AgentTier
    company_commission_split: Decimal
    tier_effective_date: Optional[datetime]
    tier_promoted_by: Optional[int]
    recruited_by: Optional[int]
    tier_config: TierConfig


class UplineAssignRequest(BaseModel):
    agent_id: int
    recruited_by: Optional[int] = None


class DownlineAgentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    agent_tier: AgentTier
    recruited_at: Optional[datetime]

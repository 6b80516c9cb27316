"""Pydantic schemas for request/response validation."""

from src.schemas.approval import (
    ApprovalDetailResponse,
    ApprovalResponse,
    ApprovalStatusUpdateRequest,
    ApprovalSubmitRequest,
    BulkApprovalRequest,
    BulkApprovalResult,
    BulkFailure,
    WorkflowHistoryResponse,
)
from src.schemas.bonus import (
    AgentBonusSummary,
    BonusSummary,
    BonusTotals,
    LeadershipBonusResponse,
)
from src.schemas.commission import (
    CommissionBreakdown,
    CommissionCalculateRequest,
    CommissionPreviewRequest,
    CommissionPreviewResponse,
    LeadershipBonusInfo,
    SettlementResponse,
    UplineInfo,
)
from src.schemas.tier import (
    AgentTierInfo,
    BulkPromotionItem,
    BulkPromotionRequest,
    PerformanceMetrics,
    PromotionRequest,
    PromotionResult,
    RequirementCheck,
    TierConfig,
    TierUpdateRequest,
)

__all__ = [
    # Commission
    "CommissionBreakdown",
    "CommissionCalculateRequest",
    "CommissionPreviewRequest",
    "CommissionPreviewResponse",
    "LeadershipBonusInfo",
    "SettlementResponse",
    "UplineInfo",
    # Tiers
    "TierConfig",
    "TierUpdateRequest",
    "PerformanceMetrics",
    "PromotionRequest",
    "PromotionResult",
    "BulkPromotionItem",
    "BulkPromotionRequest",
    "RequirementCheck",
    "AgentTierInfo",
    # Leadership bonus
    "LeadershipBonusResponse",
    "BonusTotals",
    "BonusSummary",
    "AgentBonusSummary",
    # Approvals
    "ApprovalSubmitRequest",
    "ApprovalStatusUpdateRequest",
    "BulkApprovalRequest",
    "BulkApprovalResult",
    "BulkFailure",
    "ApprovalResponse",
    "WorkflowHistoryResponse",
    "ApprovalDetailResponse",
]

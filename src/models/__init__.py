"""
Database models for the commission engine.

All models are exported here for convenient imports:
    from src.models import Agent, TierDefinition, CommissionApproval, etc.
"""

from src.models.agent import (
    PRIVILEGED_ROLES,
    TIER_ORDER,
    Agent,
    AgentRole,
    AgentTier,
    Team,
)
from src.models.approval import (
    APPROVAL_SLA_HOURS,
    REVIEW_OUTCOMES,
    ApprovalPriority,
    ApprovalStatus,
    ApprovalWorkflowHistory,
    CommissionApproval,
    WorkflowAction,
)
from src.models.audit import CommissionAuditAction, CommissionAuditLog
from src.models.base import Base, TimestampMixin, utcnow
from src.models.leadership_bonus import BonusStatus, LeadershipBonusPayment
from src.models.tier import TierConfigChangeLog, TierDefinition
from src.models.tier_history import TierHistoryEntry
from src.models.transaction import (
    CommissionType,
    RepresentationType,
    Transaction,
    TransactionStatus,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utcnow",
    # Agent
    "Agent",
    "AgentRole",
    "AgentTier",
    "PRIVILEGED_ROLES",
    "TIER_ORDER",
    "Team",
    # Tier configuration
    "TierDefinition",
    "TierConfigChangeLog",
    "TierHistoryEntry",
    # Transaction
    "Transaction",
    "CommissionType",
    "RepresentationType",
    "TransactionStatus",
    # Leadership bonus
    "LeadershipBonusPayment",
    "BonusStatus",
    # Approval
    "CommissionApproval",
    "ApprovalWorkflowHistory",
    "ApprovalStatus",
    "ApprovalPriority",
    "WorkflowAction",
    "APPROVAL_SLA_HOURS",
    "REVIEW_OUTCOMES",
    # Audit
    "CommissionAuditLog",
    "CommissionAuditAction",
]

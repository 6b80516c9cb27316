"""
Commission approval requests and their workflow history.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, utcnow


class ApprovalStatus(str, Enum):
    """Review state of a commission approval."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REQUIRES_REVISION = "requires_revision"


class ApprovalPriority(str, Enum):
    """Priority, which sets the review SLA."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class WorkflowAction(str, Enum):
    """Action types recorded in the workflow history."""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REVISE = "revise"
    ESCALATE = "escalate"
    UPDATE = "update"


# Response-time budget per priority, in hours
APPROVAL_SLA_HOURS = {
    ApprovalPriority.LOW: 72,
    ApprovalPriority.NORMAL: 48,
    ApprovalPriority.HIGH: 24,
    ApprovalPriority.URGENT: 4,
}

# Reviewer decisions reachable from PENDING
REVIEW_OUTCOMES = {
    ApprovalStatus.APPROVED: WorkflowAction.APPROVE,
    ApprovalStatus.REJECTED: WorkflowAction.REJECT,
    ApprovalStatus.REQUIRES_REVISION: WorkflowAction.REVISE,
}


def _status_enum(name: str) -> SQLAlchemyEnum:
    return SQLAlchemyEnum(
        ApprovalStatus,
        name=name,
        values_callable=lambda x: [e.value for e in x],
    )


class CommissionApproval(Base, TimestampMixin):
    """
    Human review gate on the commission an agent requests for a
    transaction. One row per transaction; a resubmission after
    "requires_revision" reuses the same row.
    """

    __tablename__ = "commission_approvals"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Amounts
    requested_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    approved_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    commission_percentage: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
    )

    # Workflow
    status: Mapped[ApprovalStatus] = mapped_column(
        _status_enum("approval_status"),
        default=ApprovalStatus.PENDING,
        nullable=False,
        index=True,
    )
    priority: Mapped[ApprovalPriority] = mapped_column(
        SQLAlchemyEnum(
            ApprovalPriority,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=ApprovalPriority.NORMAL,
        nullable=False,
        index=True,
    )

    # Review
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
        index=True,
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    review_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    supporting_documents: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )
    approval_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        comment="submissionNotes, clientFeedback, escalationReason, ...",
    )

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # Relationships
    history: Mapped[List["ApprovalWorkflowHistory"]] = relationship(
        "ApprovalWorkflowHistory",
        back_populates="approval",
        order_by="ApprovalWorkflowHistory.id",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return (
            f"<CommissionApproval(id={self.id}, transaction_id={self.transaction_id}, "
            f"status={self.status})>"
        )


class ApprovalWorkflowHistory(Base):
    """Append-only log of every approval state change."""

    __tablename__ = "approval_workflow_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    approval_id: Mapped[int] = mapped_column(
        ForeignKey("commission_approvals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[Optional[ApprovalStatus]] = mapped_column(
        _status_enum("approval_status"),
        nullable=True,
        comment="NULL for the initial submission",
    )
    to_status: Mapped[ApprovalStatus] = mapped_column(
        _status_enum("approval_status"),
        nullable=False,
    )
    action_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
        index=True,
        comment="NULL for system actions such as SLA escalation",
    )
    action_type: Mapped[WorkflowAction] = mapped_column(
        SQLAlchemyEnum(
            WorkflowAction,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    action_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Actor context
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True,
        comment="IPv4 or IPv6 address",
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    approval: Mapped["CommissionApproval"] = relationship(
        "CommissionApproval",
        back_populates="history",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalWorkflowHistory(approval_id={self.approval_id}, "
            f"{self.from_status} -> {self.to_status})>"
        )

"""
CommissionAuditLog model for tracking changes to commission figures.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, utcnow


class CommissionAuditAction(str, Enum):
    """Types of auditable commission events."""
    SETTLE_COMMISSION = "settle_commission"
    ADJUST_APPROVED_AMOUNT = "adjust_approved_amount"
    RECORD_LEADERSHIP_BONUS = "record_leadership_bonus"


class CommissionAuditLog(Base):
    """
    Audit log for commission values computed or changed per transaction.

    Compliance requires old and new figures side by side, so both are
    stored as JSON snapshots.
    """

    __tablename__ = "commission_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[CommissionAuditAction] = mapped_column(
        SQLAlchemyEnum(
            CommissionAuditAction,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    old_values: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    new_values: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    changed_by: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
    )
    change_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
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

    def __repr__(self) -> str:
        return (
            f"<CommissionAuditLog(id={self.id}, transaction_id={self.transaction_id}, "
            f"action={self.action})>"
        )

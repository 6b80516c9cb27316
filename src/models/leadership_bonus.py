"""
Leadership bonus ledger.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.agent import AgentTier
from src.models.base import Base, TimestampMixin


class BonusStatus(str, Enum):
    """Payment lifecycle. Moves forward from PENDING only."""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class LeadershipBonusPayment(Base, TimestampMixin):
    """
    What the company owes an upline for one downline transaction.

    The bonus is carved out of the company's share of the downline's
    commission, never out of the downline's own earnings.
    """

    __tablename__ = "leadership_bonus_payments"
    __table_args__ = (
        UniqueConstraint(
            "transaction_id",
            "downline_agent_id",
            "upline_agent_id",
            name="uq_leadership_bonus_transaction_pair",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    downline_agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
        index=True,
    )
    upline_agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
        index=True,
    )
    upline_tier: Mapped[AgentTier] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        comment="Upline tier at the time the bonus was earned",
    )
    original_commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    company_share_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    leadership_bonus_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )
    leadership_bonus_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    status: Mapped[BonusStatus] = mapped_column(
        SQLAlchemyEnum(
            BonusStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=BonusStatus.PENDING,
        nullable=False,
        index=True,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<LeadershipBonusPayment(id={self.id}, upline={self.upline_agent_id}, "
            f"amount={self.leadership_bonus_amount}, status={self.status})>"
        )

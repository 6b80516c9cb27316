"""
Closed property transactions.

Only the fields the commission engine reads are modelled here; the rest
of the transaction record lives with the CRM.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class RepresentationType(str, Enum):
    """Whether the commission is shared with a co-broker."""
    DIRECT = "direct"
    CO_BROKING = "co_broking"


class CommissionType(str, Enum):
    """How the transaction's commission was entered."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TransactionStatus(str, Enum):
    """Settlement state; a settled transaction never gets a second bonus."""
    SUBMITTED = "submitted"
    SETTLED = "settled"


class Transaction(Base, TimestampMixin):
    """A property sale/lease submitted by an agent."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
        index=True,
    )
    property_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
    )
    commission_type: Mapped[CommissionType] = mapped_column(
        SQLAlchemyEnum(
            CommissionType,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=CommissionType.PERCENTAGE,
        nullable=False,
    )
    commission_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Percent of price, or a fixed amount, per commission_type",
    )
    representation_type: Mapped[RepresentationType] = mapped_column(
        SQLAlchemyEnum(
            RepresentationType,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=RepresentationType.DIRECT,
        nullable=False,
    )
    co_broker_split_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("50"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.SUBMITTED.value,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, agent_id={self.agent_id})>"

"""
Versioned tier configuration.

Each tier has a chain of definitions. Exactly one row per tier is active;
an edit closes the active row (effective_to, is_active=False) and appends
the next version, so commissions computed in the past can be reproduced
from the version that was active at the time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.agent import AgentTier
from src.models.base import Base, utcnow


class TierDefinition(Base):
    """One version of a tier's commission settings."""

    __tablename__ = "tier_definitions"
    __table_args__ = (
        UniqueConstraint("tier", "version", name="uq_tier_definitions_tier_version"),
        Index(
            "uq_tier_definitions_one_active",
            "tier",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    tier: Mapped[AgentTier] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    commission_split: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        comment="Agent's share (percent) of the agent-level commission",
    )
    leadership_bonus_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        comment="Percent of the company share paid to the holder's upline",
    )
    required_monthly_sales: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    required_team_members: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    display_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    effective_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    effective_to: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<TierDefinition(tier={self.tier}, version={self.version}, "
            f"active={self.is_active})>"
        )


class TierConfigChangeLog(Base):
    """Audit row written for every tier configuration edit."""

    __tablename__ = "tier_config_change_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    tier: Mapped[AgentTier] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    old_values: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    new_values: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    changed_by: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<TierConfigChangeLog(id={self.id}, tier={self.tier})>"

"""
Agent tier history for audit trail and compliance.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.agent import AgentTier
from src.models.base import Base, utcnow


class TierHistoryEntry(Base):
    """
    Immutable record of a tier change.

    Rows are only ever inserted, together with the agent update they
    describe.
    """

    __tablename__ = "agent_tier_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_tier: Mapped[Optional[AgentTier]] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
        comment="NULL for the first assignment",
    )
    new_tier: Mapped[AgentTier] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    effective_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    promoted_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    performance_metrics: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Metrics that triggered the change",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<TierHistoryEntry(agent_id={self.agent_id}, "
            f"{self.previous_tier} -> {self.new_tier})>"
        )

"""
Agent and team models.

Agents are organised in five ordered tiers. Each agent carries a copy of
its tier's commission split so later edits to the tier table do not
change what the agent was promised, plus an optional one-level recruiter
("upline").
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin, utcnow


class AgentTier(str, Enum):
    """Agent ranks, lowest first."""
    ADVISOR = "advisor"
    SALES_LEADER = "sales_leader"
    TEAM_LEADER = "team_leader"
    GROUP_LEADER = "group_leader"
    SUPREME_LEADER = "supreme_leader"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER = list(AgentTier)


class AgentRole(str, Enum):
    """Roles supplied by the identity layer."""
    AGENT = "agent"
    TEAM_LEAD = "team_lead"
    ADMIN = "admin"


PRIVILEGED_ROLES = frozenset({AgentRole.ADMIN.value, AgentRole.TEAM_LEAD.value})


class Team(Base, TimestampMixin):
    """A team of agents inside an agency."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"


class Agent(Base, TimestampMixin):
    """
    Real-estate agent account.

    - role is kept as a plain string; the engine only checks it against
      the privileged set {"admin", "team_lead"}
    - recruited_by points at the direct upline, never at the agent itself
    """

    __tablename__ = "agents"
    __table_args__ = (
        CheckConstraint(
            "recruited_by IS NULL OR recruited_by <> id",
            name="ck_agents_no_self_recruit",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default=AgentRole.AGENT.value,
        server_default=AgentRole.AGENT.value,
        nullable=False,
    )
    team_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Tier
    agent_tier: Mapped[AgentTier] = mapped_column(
        SQLAlchemyEnum(
            AgentTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=AgentTier.ADVISOR,
        nullable=False,
        index=True,
    )
    company_commission_split: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("70"),
        nullable=False,
        comment="Agent's share (percent) of the agent-level commission",
    )
    tier_effective_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    tier_promoted_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
    )

    # Upline
    recruited_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agents.id"),
        nullable=True,
        index=True,
    )
    recruited_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name='{self.name}', tier={self.agent_tier})>"

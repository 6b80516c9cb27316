"""Commission engine schema: agents, tiers, bonuses, approvals, audit.

Revision ID: 001_commission_engine
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_commission_engine"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


AGENT_TIER = postgresql.ENUM(
    "advisor",
    "sales_leader",
    "team_leader",
    "group_leader",
    "supreme_leader",
    name="agenttier",
    create_type=False,
)
REPRESENTATION_TYPE = postgresql.ENUM(
    "direct", "co_broking", name="representationtype", create_type=False
)
COMMISSION_TYPE = postgresql.ENUM(
    "percentage", "fixed", name="commissiontype", create_type=False
)
BONUS_STATUS = postgresql.ENUM(
    "pending", "paid", "cancelled", name="bonusstatus", create_type=False
)
APPROVAL_STATUS = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    "requires_revision",
    name="approval_status",
    create_type=False,
)
APPROVAL_PRIORITY = postgresql.ENUM(
    "low", "normal", "high", "urgent", name="approvalpriority", create_type=False
)
WORKFLOW_ACTION = postgresql.ENUM(
    "submit",
    "approve",
    "reject",
    "revise",
    "escalate",
    "update",
    name="workflowaction",
    create_type=False,
)
AUDIT_ACTION = postgresql.ENUM(
    "settle_commission",
    "adjust_approved_amount",
    "record_leadership_bonus",
    name="commissionauditaction",
    create_type=False,
)

ENUMS = (
    AGENT_TIER,
    REPRESENTATION_TYPE,
    COMMISSION_TYPE,
    BONUS_STATUS,
    APPROVAL_STATUS,
    APPROVAL_PRIORITY,
    WORKFLOW_ACTION,
    AUDIT_ACTION,
)


def _table_exists(table: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table in insp.get_table_names()


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    # ── teams ───────────────────────────────────────────────
    if not _table_exists("teams"):
        op.create_table(
            "teams",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(100), nullable=False),
            *_timestamps(),
        )

    # ── agents ──────────────────────────────────────────────
    if not _table_exists("agents"):
        op.create_table(
            "agents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(100), nullable=False),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("role", sa.String(20), server_default="agent", nullable=False),
            sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=True),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("agent_tier", AGENT_TIER, server_default="advisor", nullable=False),
            sa.Column("company_commission_split", sa.Numeric(5, 2), server_default="70", nullable=False),
            sa.Column("tier_effective_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("tier_promoted_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("recruited_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("recruited_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.CheckConstraint(
                "recruited_by IS NULL OR recruited_by <> id",
                name="ck_agents_no_self_recruit",
            ),
        )
        op.create_index("ix_agents_email", "agents", ["email"], unique=True)
        op.create_index("ix_agents_team_id", "agents", ["team_id"])
        op.create_index("ix_agents_agent_tier", "agents", ["agent_tier"])
        op.create_index("ix_agents_recruited_by", "agents", ["recruited_by"])

    # ── tier_definitions ────────────────────────────────────
    if not _table_exists("tier_definitions"):
        op.create_table(
            "tier_definitions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tier", AGENT_TIER, nullable=False),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column("commission_split", sa.Numeric(5, 2), nullable=False),
            sa.Column("leadership_bonus_rate", sa.Numeric(5, 2), nullable=False),
            sa.Column("required_monthly_sales", sa.Integer(), server_default="0", nullable=False),
            sa.Column("required_team_members", sa.Integer(), server_default="0", nullable=False),
            sa.Column("display_name", sa.String(100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("effective_from", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("effective_to", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.UniqueConstraint("tier", "version", name="uq_tier_definitions_tier_version"),
        )
        op.create_index("ix_tier_definitions_tier", "tier_definitions", ["tier"])
        op.create_index(
            "uq_tier_definitions_one_active",
            "tier_definitions",
            ["tier"],
            unique=True,
            postgresql_where=sa.text("is_active"),
        )

    if not _table_exists("tier_config_change_log"):
        op.create_table(
            "tier_config_change_log",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tier", AGENT_TIER, nullable=False),
            sa.Column("old_values", sa.JSON(), nullable=True),
            sa.Column("new_values", sa.JSON(), nullable=False),
            sa.Column("changed_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_tier_config_change_log_tier", "tier_config_change_log", ["tier"])

    # ── agent_tier_history ──────────────────────────────────
    if not _table_exists("agent_tier_history"):
        op.create_table(
            "agent_tier_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("previous_tier", AGENT_TIER, nullable=True),
            sa.Column("new_tier", AGENT_TIER, nullable=False),
            sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("promoted_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("performance_metrics", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_agent_tier_history_agent_id", "agent_tier_history", ["agent_id"])
        op.create_index("ix_agent_tier_history_effective_date", "agent_tier_history", ["effective_date"])

    # ── transactions ────────────────────────────────────────
    if not _table_exists("transactions"):
        op.create_table(
            "transactions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
            sa.Column("property_price", sa.Numeric(14, 2), nullable=False),
            sa.Column("commission_type", COMMISSION_TYPE, server_default="percentage", nullable=False),
            sa.Column("commission_value", sa.Numeric(12, 2), nullable=False),
            sa.Column("representation_type", REPRESENTATION_TYPE, server_default="direct", nullable=False),
            sa.Column("co_broker_split_pct", sa.Numeric(5, 2), server_default="50", nullable=False),
            sa.Column("status", sa.String(20), server_default="submitted", nullable=False),
            *_timestamps(),
        )
        op.create_index("ix_transactions_agent_id", "transactions", ["agent_id"])

    # ── leadership_bonus_payments ───────────────────────────
    if not _table_exists("leadership_bonus_payments"):
        op.create_table(
            "leadership_bonus_payments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("downline_agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
            sa.Column("upline_agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
            sa.Column("upline_tier", AGENT_TIER, nullable=False),
            sa.Column("original_commission_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("company_share_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("leadership_bonus_rate", sa.Numeric(5, 2), nullable=False),
            sa.Column("leadership_bonus_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", BONUS_STATUS, server_default="pending", nullable=False),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint(
                "transaction_id",
                "downline_agent_id",
                "upline_agent_id",
                name="uq_leadership_bonus_transaction_pair",
            ),
        )
        op.create_index("ix_leadership_bonus_payments_transaction_id", "leadership_bonus_payments", ["transaction_id"])
        op.create_index("ix_leadership_bonus_payments_downline_agent_id", "leadership_bonus_payments", ["downline_agent_id"])
        op.create_index("ix_leadership_bonus_payments_upline_agent_id", "leadership_bonus_payments", ["upline_agent_id"])
        op.create_index("ix_leadership_bonus_payments_status", "leadership_bonus_payments", ["status"])

    # ── commission_approvals ────────────────────────────────
    if not _table_exists("commission_approvals"):
        op.create_table(
            "commission_approvals",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("requested_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=True),
            sa.Column("status", APPROVAL_STATUS, server_default="pending", nullable=False),
            sa.Column("priority", APPROVAL_PRIORITY, server_default="normal", nullable=False),
            sa.Column("reviewed_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("review_notes", sa.Text(), nullable=True),
            sa.Column("supporting_documents", sa.JSON(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_commission_approvals_transaction_id", "commission_approvals", ["transaction_id"], unique=True)
        op.create_index("ix_commission_approvals_agent_id", "commission_approvals", ["agent_id"])
        op.create_index("ix_commission_approvals_status", "commission_approvals", ["status"])
        op.create_index("ix_commission_approvals_priority", "commission_approvals", ["priority"])
        op.create_index("ix_commission_approvals_reviewed_by", "commission_approvals", ["reviewed_by"])
        op.create_index("ix_commission_approvals_submitted_at", "commission_approvals", ["submitted_at"])
        op.create_index("ix_commission_approvals_due_date", "commission_approvals", ["due_date"])

    if not _table_exists("approval_workflow_history"):
        op.create_table(
            "approval_workflow_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("approval_id", sa.Integer(), sa.ForeignKey("commission_approvals.id", ondelete="CASCADE"), nullable=False),
            sa.Column("from_status", APPROVAL_STATUS, nullable=True),
            sa.Column("to_status", APPROVAL_STATUS, nullable=False),
            sa.Column("action_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=True),
            sa.Column("action_type", WORKFLOW_ACTION, nullable=False),
            sa.Column("action_notes", sa.Text(), nullable=True),
            sa.Column("ip_address", sa.String(45), nullable=True),
            sa.Column("user_agent", sa.String(512), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_approval_workflow_history_approval_id", "approval_workflow_history", ["approval_id"])
        op.create_index("ix_approval_workflow_history_action_by", "approval_workflow_history", ["action_by"])
        op.create_index("ix_approval_workflow_history_timestamp", "approval_workflow_history", ["timestamp"])

    # ── commission_audit_log ────────────────────────────────
    if not _table_exists("commission_audit_log"):
        op.create_table(
            "commission_audit_log",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
            sa.Column("action", AUDIT_ACTION, nullable=False),
            sa.Column("old_values", sa.JSON(), nullable=True),
            sa.Column("new_values", sa.JSON(), nullable=True),
            sa.Column("changed_by", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
            sa.Column("change_reason", sa.Text(), nullable=True),
            sa.Column("ip_address", sa.String(45), nullable=True),
            sa.Column("user_agent", sa.String(512), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_commission_audit_log_transaction_id", "commission_audit_log", ["transaction_id"])
        op.create_index("ix_commission_audit_log_agent_id", "commission_audit_log", ["agent_id"])
        op.create_index("ix_commission_audit_log_action", "commission_audit_log", ["action"])
        op.create_index("ix_commission_audit_log_timestamp", "commission_audit_log", ["timestamp"])


def downgrade() -> None:
    for table in (
        "commission_audit_log",
        "approval_workflow_history",
        "commission_approvals",
        "leadership_bonus_payments",
        "transactions",
        "agent_tier_history",
        "tier_config_change_log",
        "tier_definitions",
        "agents",
        "teams",
    ):
        if _table_exists(table):
            op.drop_table(table)

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)

"""
Tests for commission calculation against stored agents and transactions.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.auth.context import AuthContext
from src.models import (
    AgentTier,
    CommissionAuditAction,
    CommissionAuditLog,
    CommissionType,
    LeadershipBonusPayment,
    RepresentationType,
    Transaction,
    TransactionStatus,
)
from src.services import settlement, tier_config
from src.services.errors import (
    AccessDenied,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from src.services.upline import set_upline


def _ctx(agent) -> AuthContext:
    return AuthContext(caller_id=agent.id, role=agent.role)


async def _count(db_session, column):
    return await db_session.scalar(select(func.count(column)))


@pytest.fixture
async def recruited(make_agent):
    upline = await make_agent(name="Upline", tier=AgentTier.SALES_LEADER, split=Decimal("80"))
    agent = await make_agent(recruited_by=upline)
    return agent, upline


# ── calculate ───────────────────────────────────────────────


class TestCalculateForAgent:
    async def test_uses_agent_split_and_upline(self, db_session, recruited):
        agent, upline = recruited
        breakdown = await settlement.calculate_for_agent(
            db_session, agent.id, 500000, 2, RepresentationType.DIRECT
        )

        assert breakdown.agent_earnings == Decimal("7000")
        assert breakdown.company_share == Decimal("3000")
        assert breakdown.leadership_bonus.upline_id == upline.id
        assert breakdown.leadership_bonus.bonus_amount == Decimal("210.00")
        assert breakdown.company_net_share == Decimal("2790.00")

    async def test_bonus_can_be_left_out(self, db_session, recruited):
        agent, _ = recruited
        breakdown = await settlement.calculate_for_agent(
            db_session, agent.id, 500000, 2, "direct", include_leadership_bonus=False
        )
        assert breakdown.leadership_bonus is None
        assert breakdown.company_net_share == breakdown.company_share

    async def test_co_broking_defaults_to_half(self, db_session, make_agent):
        agent = await make_agent()
        breakdown = await settlement.calculate_for_agent(
            db_session, agent.id, 500000, 2, RepresentationType.CO_BROKING
        )
        assert breakdown.co_broker_share == Decimal("5000")

    async def test_unknown_agent(self, db_session):
        with pytest.raises(NotFoundError):
            await settlement.calculate_for_agent(db_session, 8080, 500000, 2, "direct")


class TestPreview:
    async def test_fixed_amount_becomes_rate(self, db_session, recruited):
        agent, upline = recruited
        preview = await settlement.commission_preview(
            db_session,
            agent.id,
            property_price=500000,
            commission_type=CommissionType.FIXED,
            commission_value=10000,
            representation_type="direct",
        )

        assert preview.breakdown.commission_rate == Decimal("2")
        assert preview.breakdown.total_commission == Decimal("10000")
        assert preview.commission_type == CommissionType.FIXED
        assert preview.tier_info.tier == AgentTier.ADVISOR
        assert preview.tier_info.display_name == "Advisor"
        assert preview.upline_info.upline_id == upline.id

    async def test_unknown_commission_type(self, db_session, recruited):
        agent, _ = recruited
        with pytest.raises(ValidationError):
            await settlement.commission_preview(
                db_session,
                agent.id,
                property_price=500000,
                commission_type="barter",
                commission_value=2,
                representation_type="direct",
            )


# ── settle ──────────────────────────────────────────────────


class TestSettle:
    async def test_records_bonus_and_audit(self, db_session, recruited, make_transaction):
        agent, upline = recruited
        transaction = await make_transaction(agent)

        result = await settlement.settle_transaction_commission(
            db_session, _ctx(agent), transaction.id
        )

        assert result.leadership_bonus_payment_id is not None
        payment = await db_session.get(LeadershipBonusPayment, result.leadership_bonus_payment_id)
        assert payment.upline_agent_id == upline.id
        assert payment.downline_agent_id == agent.id
        assert payment.leadership_bonus_amount == Decimal("210.00")
        assert payment.company_share_amount == Decimal("3000.00")

        audit = (await db_session.execute(select(CommissionAuditLog))).scalars().all()
        assert len(audit) == 1
        assert audit[0].action == CommissionAuditAction.SETTLE_COMMISSION
        assert audit[0].new_values["agent_earnings"] == "7000"

    async def test_marks_transaction_settled(self, db_session, recruited, make_transaction):
        agent, _ = recruited
        transaction = await make_transaction(agent)
        status_query = select(Transaction.status).where(Transaction.id == transaction.id)
        assert await db_session.scalar(status_query) == TransactionStatus.SUBMITTED.value

        await settlement.settle_transaction_commission(db_session, _ctx(agent), transaction.id)

        assert await db_session.scalar(status_query) == TransactionStatus.SETTLED.value

    async def test_settling_twice_rejected(
        self, db_session, recruited, make_agent, make_transaction
    ):
        agent, _ = recruited
        admin = await make_agent(role="admin")
        transaction = await make_transaction(agent)
        transaction_id, admin_ctx = transaction.id, _ctx(admin)

        await settlement.settle_transaction_commission(db_session, _ctx(agent), transaction_id)
        with pytest.raises(InvalidStateTransition) as exc_info:
            await settlement.settle_transaction_commission(db_session, admin_ctx, transaction_id)

        assert exc_info.value.details["status"] == TransactionStatus.SETTLED.value
        assert await _count(db_session, LeadershipBonusPayment.id) == 1
        assert await _count(db_session, CommissionAuditLog.id) == 1

    async def test_new_upline_gets_no_second_bonus(
        self, db_session, recruited, make_agent, make_transaction
    ):
        agent, upline = recruited
        admin = await make_agent(role="admin")
        new_upline = await make_agent(tier=AgentTier.GROUP_LEADER, split=Decimal("85"))
        transaction = await make_transaction(agent)
        agent_id, upline_id, transaction_id = agent.id, upline.id, transaction.id
        agent_ctx = _ctx(agent)

        await settlement.settle_transaction_commission(db_session, agent_ctx, transaction_id)
        await set_upline(db_session, agent_id, new_upline.id, admin.id)

        with pytest.raises(InvalidStateTransition):
            await settlement.settle_transaction_commission(db_session, agent_ctx, transaction_id)

        result = await db_session.execute(
            select(LeadershipBonusPayment).where(
                LeadershipBonusPayment.transaction_id == transaction_id
            )
        )
        payments = result.scalars().all()
        assert len(payments) == 1
        assert payments[0].upline_agent_id == upline_id

    async def test_rate_change_leaves_recorded_bonus(
        self, db_session, recruited, make_agent, make_transaction
    ):
        agent, _ = recruited
        admin = await make_agent(role="admin")
        transaction = await make_transaction(agent)
        transaction_id, agent_ctx = transaction.id, _ctx(agent)

        first = await settlement.settle_transaction_commission(
            db_session, agent_ctx, transaction_id
        )
        payment_id = first.leadership_bonus_payment_id
        await tier_config.update_tier(
            db_session, AgentTier.SALES_LEADER, {"leadership_bonus_rate": 10}, admin.id, "Raise"
        )

        with pytest.raises(InvalidStateTransition):
            await settlement.settle_transaction_commission(db_session, agent_ctx, transaction_id)

        amount = await db_session.scalar(
            select(LeadershipBonusPayment.leadership_bonus_amount).where(
                LeadershipBonusPayment.id == payment_id
            )
        )
        assert amount == Decimal("210.00")
        assert await _count(db_session, LeadershipBonusPayment.id) == 1

    async def test_no_upline_no_payment(self, db_session, make_agent, make_transaction):
        agent = await make_agent()
        transaction = await make_transaction(agent)

        result = await settlement.settle_transaction_commission(
            db_session, _ctx(agent), transaction.id
        )
        assert result.leadership_bonus_payment_id is None
        assert await _count(db_session, LeadershipBonusPayment.id) == 0

    async def test_other_agent_denied(self, db_session, recruited, make_agent, make_transaction):
        agent, _ = recruited
        stranger = await make_agent()
        transaction = await make_transaction(agent)

        with pytest.raises(AccessDenied):
            await settlement.settle_transaction_commission(
                db_session, _ctx(stranger), transaction.id
            )
        assert await _count(db_session, LeadershipBonusPayment.id) == 0
        assert await _count(db_session, CommissionAuditLog.id) == 0

    async def test_unknown_transaction(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        with pytest.raises(NotFoundError):
            await settlement.settle_transaction_commission(db_session, _ctx(admin), 5150)

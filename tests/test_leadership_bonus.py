"""
Tests for the leadership bonus ledger.
"""

from decimal import Decimal

import pytest

from src.models import AgentTier, BonusStatus
from src.services import leadership_bonus
from src.services.errors import (
    DuplicateBonusError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def record(db_session):
    async def _record(transaction, upline, amount="210.00", rate="7"):
        return await leadership_bonus.record_bonus(
            db_session,
            transaction_id=transaction.id,
            downline_agent_id=transaction.agent_id,
            upline_agent_id=upline.id,
            upline_tier=upline.agent_tier,
            original_commission_amount=Decimal("10000.00"),
            company_share_amount=Decimal("3000.00"),
            leadership_bonus_rate=Decimal(rate),
            leadership_bonus_amount=Decimal(amount),
        )

    return _record


@pytest.fixture
async def deal(make_agent, make_transaction):
    upline = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
    agent = await make_agent(recruited_by=upline)
    transaction = await make_transaction(agent)
    return transaction, upline


# ── record ──────────────────────────────────────────────────


class TestRecordBonus:
    async def test_recorded_as_pending(self, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)
        assert payment.id is not None
        assert payment.status == BonusStatus.PENDING
        assert payment.leadership_bonus_amount == Decimal("210.00")
        assert payment.paid_at is None

    async def test_duplicate_triple_rejected(self, db_session, deal, record):
        transaction, upline = deal
        await record(transaction, upline)
        with pytest.raises(DuplicateBonusError):
            await record(transaction, upline)

        payments = await leadership_bonus.list_payments(db_session)
        assert len(payments) == 1

    async def test_self_bonus_rejected(self, db_session, make_agent, make_transaction):
        agent = await make_agent()
        transaction = await make_transaction(agent)
        with pytest.raises(ValidationError):
            await leadership_bonus.record_bonus(
                db_session,
                transaction_id=transaction.id,
                downline_agent_id=agent.id,
                upline_agent_id=agent.id,
                upline_tier=AgentTier.ADVISOR,
                original_commission_amount=Decimal("1"),
                company_share_amount=Decimal("1"),
                leadership_bonus_rate=Decimal("5"),
                leadership_bonus_amount=Decimal("0.05"),
            )

    @pytest.mark.parametrize("rate", ["0", "-1", "100.01"])
    async def test_rate_out_of_range(self, deal, record, rate):
        transaction, upline = deal
        with pytest.raises(ValidationError):
            await record(transaction, upline, rate=rate)

    async def test_negative_amount_rejected(self, deal, record):
        transaction, upline = deal
        with pytest.raises(ValidationError):
            await record(transaction, upline, amount="-0.01")


# ── lifecycle ─────────────────────────────────────────────


class TestLifecycle:
    async def test_mark_paid(self, db_session, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)

        paid = await leadership_bonus.mark_paid(db_session, payment.id)
        assert paid.status == BonusStatus.PAID
        assert paid.paid_at is not None

    async def test_cancel(self, db_session, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)

        cancelled = await leadership_bonus.cancel(db_session, payment.id)
        assert cancelled.status == BonusStatus.CANCELLED
        assert cancelled.cancelled_at is not None

    async def test_paid_cannot_be_cancelled(self, db_session, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)
        payment_id = payment.id
        await leadership_bonus.mark_paid(db_session, payment_id)

        with pytest.raises(InvalidStateTransition):
            await leadership_bonus.cancel(db_session, payment_id)
        with pytest.raises(InvalidStateTransition):
            await leadership_bonus.mark_paid(db_session, payment_id)

    async def test_cancelled_cannot_be_paid(self, db_session, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)
        await leadership_bonus.cancel(db_session, payment.id)

        with pytest.raises(InvalidStateTransition):
            await leadership_bonus.mark_paid(db_session, payment.id)

    async def test_unknown_payment(self, db_session):
        with pytest.raises(NotFoundError):
            await leadership_bonus.mark_paid(db_session, 31337)


# ── queries ───────────────────────────────────────────────


class TestQueries:
    async def test_summary_per_state(self, db_session, make_agent, make_transaction, record):
        upline = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
        agent = await make_agent(recruited_by=upline)
        first = await make_transaction(agent)
        second = await make_transaction(agent)
        third = await make_transaction(agent)

        paid = await record(first, upline, amount="210.00")
        await record(second, upline, amount="140.50")
        cancelled = await record(third, upline, amount="99.99")
        await leadership_bonus.mark_paid(db_session, paid.id)
        await leadership_bonus.cancel(db_session, cancelled.id)

        summary = await leadership_bonus.summarize(db_session)
        assert summary.pending.count == 1
        assert summary.pending.amount == Decimal("140.50")
        assert summary.paid.count == 1
        assert summary.paid.amount == Decimal("210.00")

        pending = await leadership_bonus.list_payments(db_session, BonusStatus.PENDING)
        assert [p.leadership_bonus_amount for p in pending] == [Decimal("140.50")]

    async def test_empty_summary(self, db_session):
        summary = await leadership_bonus.summarize(db_session)
        assert summary.pending.count == 0
        assert summary.paid.amount == Decimal("0")

    async def test_list_for_upline(self, db_session, make_agent, make_transaction, record):
        upline = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
        other = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
        agent = await make_agent(recruited_by=upline)
        transaction = await make_transaction(agent)
        await record(transaction, upline)
        await record(transaction, other)

        mine = await leadership_bonus.list_for_upline(db_session, upline.id)
        assert [p.upline_agent_id for p in mine] == [upline.id]

    async def test_agent_bonus_summary(self, db_session, deal, record):
        transaction, upline = deal
        payment = await record(transaction, upline)
        await leadership_bonus.mark_paid(db_session, payment.id)

        summary = await leadership_bonus.bonus_summary_for_agent(db_session, upline.id)
        assert summary.current_tier == AgentTier.SALES_LEADER
        assert summary.leadership_bonus_rate == Decimal("7")
        assert summary.downline_count == 1
        assert summary.total_paid_bonus == Decimal("210.00")
        assert summary.total_pending_bonus == Decimal("0")
        assert summary.total_earnings == Decimal("210.00")
        assert len(summary.recent_payments) == 1

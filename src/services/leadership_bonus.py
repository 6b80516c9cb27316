"""
Leadership bonus ledger.

One payment per (transaction, downline, upline). Payments start as
pending and move forward once, to paid or cancelled.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import (
    Agent,
    AgentTier,
    BonusStatus,
    LeadershipBonusPayment,
    utcnow,
)
from src.schemas.bonus import (
    AgentBonusSummary,
    BonusSummary,
    BonusTotals,
    LeadershipBonusResponse,
)
from src.services.errors import (
    DuplicateBonusError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from src.services.tier_config import get_active_tier

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def _validate_amounts(
    downline_agent_id: int,
    upline_agent_id: int,
    original_commission_amount: Decimal,
    company_share_amount: Decimal,
    leadership_bonus_rate: Decimal,
    leadership_bonus_amount: Decimal,
) -> None:
    if downline_agent_id == upline_agent_id:
        raise ValidationError("An agent cannot earn a leadership bonus on their own deal")
    if original_commission_amount < 0 or company_share_amount < 0:
        raise ValidationError("Commission amounts cannot be negative")
    if leadership_bonus_amount < 0:
        raise ValidationError("Leadership bonus amount cannot be negative")
    if leadership_bonus_rate <= 0 or leadership_bonus_rate > HUNDRED:
        raise ValidationError("Leadership bonus rate must be between 0 and 100")


async def find_bonus(
    db: AsyncSession,
    transaction_id: int,
    downline_agent_id: int,
    upline_agent_id: int,
) -> Optional[LeadershipBonusPayment]:
    result = await db.execute(
        select(LeadershipBonusPayment).where(
            and_(
                LeadershipBonusPayment.transaction_id == transaction_id,
                LeadershipBonusPayment.downline_agent_id == downline_agent_id,
                LeadershipBonusPayment.upline_agent_id == upline_agent_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def list_for_transaction(
    db: AsyncSession,
    transaction_id: int,
    downline_agent_id: int,
) -> List[LeadershipBonusPayment]:
    """Payments already recorded for a downline's transaction, any upline."""
    result = await db.execute(
        select(LeadershipBonusPayment)
        .where(
            and_(
                LeadershipBonusPayment.transaction_id == transaction_id,
                LeadershipBonusPayment.downline_agent_id == downline_agent_id,
            )
        )
        .order_by(LeadershipBonusPayment.id)
    )
    return list(result.scalars().all())


async def add_bonus(
    db: AsyncSession,
    transaction_id: int,
    downline_agent_id: int,
    upline_agent_id: int,
    upline_tier: AgentTier,
    original_commission_amount: Decimal,
    company_share_amount: Decimal,
    leadership_bonus_rate: Decimal,
    leadership_bonus_amount: Decimal,
) -> LeadershipBonusPayment:
    """
    Add a pending payment to the session and flush it.

    The caller owns the transaction; use record_bonus() to commit
    straight away.
    """
    _validate_amounts(
        downline_agent_id,
        upline_agent_id,
        original_commission_amount,
        company_share_amount,
        leadership_bonus_rate,
        leadership_bonus_amount,
    )

    if await find_bonus(db, transaction_id, downline_agent_id, upline_agent_id):
        raise DuplicateBonusError(
            f"Leadership bonus already recorded for transaction {transaction_id}",
            {
                "transaction_id": transaction_id,
                "downline_agent_id": downline_agent_id,
                "upline_agent_id": upline_agent_id,
            },
        )

    payment = LeadershipBonusPayment(
        transaction_id=transaction_id,
        downline_agent_id=downline_agent_id,
        upline_agent_id=upline_agent_id,
        upline_tier=upline_tier,
        original_commission_amount=original_commission_amount,
        company_share_amount=company_share_amount,
        leadership_bonus_rate=leadership_bonus_rate,
        leadership_bonus_amount=leadership_bonus_amount,
        status=BonusStatus.PENDING,
    )
    db.add(payment)
    await db.flush()
    return payment


async def record_bonus(
    db: AsyncSession,
    transaction_id: int,
    downline_agent_id: int,
    upline_agent_id: int,
    upline_tier: AgentTier,
    original_commission_amount: Decimal,
    company_share_amount: Decimal,
    leadership_bonus_rate: Decimal,
    leadership_bonus_amount: Decimal,
) -> LeadershipBonusPayment:
    """Record a pending leadership bonus payment."""
    try:
        payment = await add_bonus(
            db,
            transaction_id,
            downline_agent_id,
            upline_agent_id,
            upline_tier,
            original_commission_amount,
            company_share_amount,
            leadership_bonus_rate,
            leadership_bonus_amount,
        )
        await db.commit()
    except IntegrityError as e:
        # Concurrent writer got the same triple in first
        await db.rollback()
        raise DuplicateBonusError(
            f"Leadership bonus already recorded for transaction {transaction_id}",
            {"transaction_id": transaction_id},
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Recording leadership bonus for transaction {transaction_id} failed: {e}")
        raise PersistenceError("Could not record leadership bonus") from e

    logger.info(
        f"Leadership bonus {payment.leadership_bonus_amount} recorded for upline "
        f"{upline_agent_id} on transaction {transaction_id}"
    )
    return payment


async def _transition(
    db: AsyncSession,
    payment_id: int,
    target: BonusStatus,
) -> LeadershipBonusPayment:
    try:
        result = await db.execute(
            select(LeadershipBonusPayment)
            .where(LeadershipBonusPayment.id == payment_id)
            .with_for_update()
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError(
                f"Leadership bonus payment {payment_id} not found",
                {"payment_id": payment_id},
            )
        if payment.status != BonusStatus.PENDING:
            raise InvalidStateTransition(
                f"Payment {payment_id} is {payment.status.value}, only pending payments "
                f"can become {target.value}",
                {"current_status": payment.status.value, "requested_status": target.value},
            )

        payment.status = target
        if target == BonusStatus.PAID:
            payment.paid_at = utcnow()
        else:
            payment.cancelled_at = utcnow()
        await db.commit()
    except (NotFoundError, InvalidStateTransition):
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Updating leadership bonus {payment_id} failed: {e}")
        raise PersistenceError("Could not update leadership bonus payment") from e

    logger.info(f"Leadership bonus {payment_id} marked {target.value}")
    return payment


async def mark_paid(db: AsyncSession, payment_id: int) -> LeadershipBonusPayment:
    return await _transition(db, payment_id, BonusStatus.PAID)


async def cancel(db: AsyncSession, payment_id: int) -> LeadershipBonusPayment:
    return await _transition(db, payment_id, BonusStatus.CANCELLED)


async def list_for_upline(
    db: AsyncSession,
    upline_id: int,
    status: Optional[BonusStatus] = None,
    limit: Optional[int] = None,
) -> List[LeadershipBonusPayment]:
    """Payments earned by an upline, newest first."""
    query = select(LeadershipBonusPayment).where(
        LeadershipBonusPayment.upline_agent_id == upline_id
    )
    if status is not None:
        query = query.where(LeadershipBonusPayment.status == status)
    query = query.order_by(
        LeadershipBonusPayment.created_at.desc(),
        LeadershipBonusPayment.id.desc(),
    )
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_payments(
    db: AsyncSession,
    status: Optional[BonusStatus] = None,
) -> List[LeadershipBonusPayment]:
    query = select(LeadershipBonusPayment)
    if status is not None:
        query = query.where(LeadershipBonusPayment.status == status)
    result = await db.execute(query.order_by(LeadershipBonusPayment.id))
    return list(result.scalars().all())


async def summarize(
    db: AsyncSession,
    upline_id: Optional[int] = None,
) -> BonusSummary:
    """Count and total per state, optionally for one upline."""
    query = select(
        LeadershipBonusPayment.status,
        func.count(LeadershipBonusPayment.id),
        func.coalesce(func.sum(LeadershipBonusPayment.leadership_bonus_amount), 0),
    ).group_by(LeadershipBonusPayment.status)
    if upline_id is not None:
        query = query.where(LeadershipBonusPayment.upline_agent_id == upline_id)

    result = await db.execute(query)
    totals = {
        status: BonusTotals(count=count, amount=Decimal(str(amount)).quantize(CENT))
        for status, count, amount in result.all()
    }
    empty = BonusTotals(count=0, amount=ZERO)
    return BonusSummary(
        pending=totals.get(BonusStatus.PENDING, empty),
        paid=totals.get(BonusStatus.PAID, empty),
    )


async def bonus_summary_for_agent(
    db: AsyncSession,
    agent_id: int,
    recent_limit: int = 10,
) -> AgentBonusSummary:
    """Leadership bonus overview for an upline."""
    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent {agent_id} not found", {"agent_id": agent_id})

    tier_config = await get_active_tier(db, agent.agent_tier)
    downline_count = await db.scalar(
        select(func.count(Agent.id)).where(Agent.recruited_by == agent_id)
    )
    summary = await summarize(db, upline_id=agent_id)
    recent = await list_for_upline(db, agent_id, limit=recent_limit)

    return AgentBonusSummary(
        current_tier=agent.agent_tier,
        leadership_bonus_rate=tier_config.leadership_bonus_rate,
        downline_count=downline_count or 0,
        total_pending_bonus=summary.pending.amount,
        total_paid_bonus=summary.paid.amount,
        total_earnings=summary.pending.amount + summary.paid.amount,
        recent_payments=[LeadershipBonusResponse.model_validate(p) for p in recent],
    )

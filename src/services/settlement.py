"""
Commission orchestration for stored agents and transactions.

Loads what the pure calculation needs (agent split, upline, tier
definitions), runs it, and on settlement records the leadership bonus
obligation and an audit entry.
"""

import logging
from typing import Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.context import AuthContext
from src.config import settings
from src.models import (
    Agent,
    CommissionAuditAction,
    CommissionType,
    RepresentationType,
    Transaction,
    TransactionStatus,
)
from src.schemas.commission import (
    CommissionBreakdown,
    CommissionPreviewResponse,
    SettlementResponse,
    TierDisplayInfo,
    UplineInfo,
)
from src.services.commission import (
    Number,
    calculate_commission,
    fixed_amount_to_rate,
    round_money,
    to_decimal,
)
from src.services.errors import (
    AccessDenied,
    EngineError,
    InvalidInputError,
    InvalidStateTransition,
    NotFoundError,
    PersistenceError,
)
from src.services.leadership_bonus import add_bonus, list_for_transaction
from src.services.tier_config import get_active_tier
from src.services.upline import resolve_upline
from src.utils.audit import log_commission_audit

logger = logging.getLogger(__name__)


async def _load_agent(db: AsyncSession, agent_id: int) -> Agent:
    agent = await db.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError(f"Agent {agent_id} not found", {"agent_id": agent_id})
    return agent


async def _calculate(
    db: AsyncSession,
    agent: Agent,
    property_price: Number,
    commission_rate: Number,
    representation_type: Union[RepresentationType, str],
    co_broker_split_pct: Optional[Number],
    include_leadership_bonus: bool,
) -> Tuple[CommissionBreakdown, Optional[UplineInfo]]:
    upline = await resolve_upline(db, agent.id) if include_leadership_bonus else None
    if co_broker_split_pct is None:
        co_broker_split_pct = settings.default_co_broker_split_pct

    breakdown = calculate_commission(
        property_price=property_price,
        commission_rate=commission_rate,
        representation_type=representation_type,
        agent_tier=agent.agent_tier,
        company_split=agent.company_commission_split,
        co_broker_split_pct=co_broker_split_pct,
        upline_info=upline,
    )
    return breakdown, upline


async def calculate_for_agent(
    db: AsyncSession,
    agent_id: int,
    property_price: Number,
    commission_rate: Number,
    representation_type: Union[RepresentationType, str],
    co_broker_split_pct: Optional[Number] = None,
    include_leadership_bonus: bool = True,
) -> CommissionBreakdown:
    """Breakdown for a deal closed by `agent_id`, using their current split."""
    agent = await _load_agent(db, agent_id)
    breakdown, _ = await _calculate(
        db,
        agent,
        property_price,
        commission_rate,
        representation_type,
        co_broker_split_pct,
        include_leadership_bonus,
    )
    return breakdown


async def commission_preview(
    db: AsyncSession,
    agent_id: int,
    property_price: Number,
    commission_type: Union[CommissionType, str],
    commission_value: Number,
    representation_type: Union[RepresentationType, str],
    co_broker_split_pct: Optional[Number] = None,
    include_leadership_bonus: bool = True,
) -> CommissionPreviewResponse:
    """
    Preview the breakdown while a transaction is being entered.

    A fixed commission is turned into a rate of the price first.
    """
    try:
        commission_type = CommissionType(commission_type)
    except ValueError as e:
        raise InvalidInputError(
            f"Unknown commission type: {commission_type}",
            {"field": "commission_type"},
        ) from e
    if commission_type == CommissionType.FIXED:
        commission_rate = fixed_amount_to_rate(property_price, commission_value)
    else:
        commission_rate = commission_value

    agent = await _load_agent(db, agent_id)
    breakdown, upline = await _calculate(
        db,
        agent,
        property_price,
        commission_rate,
        representation_type,
        co_broker_split_pct,
        include_leadership_bonus,
    )
    tier_config = await get_active_tier(db, agent.agent_tier)

    return CommissionPreviewResponse(
        breakdown=breakdown,
        commission_type=commission_type,
        commission_value=to_decimal(commission_value, "commission_value"),
        tier_info=TierDisplayInfo(
            tier=tier_config.tier,
            display_name=tier_config.display_name,
            description=tier_config.description,
            leadership_bonus_rate=tier_config.leadership_bonus_rate,
        ),
        upline_info=upline,
    )


async def settle_transaction_commission(
    db: AsyncSession,
    ctx: AuthContext,
    transaction_id: int,
) -> SettlementResponse:
    """
    Compute a stored transaction's commission and record its obligations.

    A transaction is settled once. The leadership bonus recorded then is
    the only one it will ever carry, even if the agent's upline or the
    tier rates change afterwards.

    Raises:
        NotFoundError: transaction or agent missing
        AccessDenied: caller is neither an admin nor the transaction's agent
        InvalidStateTransition: transaction already settled
        InvalidInputError: stored figures are out of range
        PersistenceError: storage failure
    """
    try:
        result = await db.execute(
            select(Transaction).where(Transaction.id == transaction_id).with_for_update()
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                {"transaction_id": transaction_id},
            )
        if not ctx.is_admin and transaction.agent_id != ctx.caller_id:
            raise AccessDenied("Only admins or the transaction's agent can settle it")

        existing = await list_for_transaction(db, transaction.id, transaction.agent_id)
        if transaction.status == TransactionStatus.SETTLED.value or existing:
            raise InvalidStateTransition(
                f"Transaction {transaction_id} is already settled",
                {
                    "transaction_id": transaction_id,
                    "status": transaction.status,
                    "leadership_bonus_payment_ids": [p.id for p in existing],
                },
            )

        agent = await _load_agent(db, transaction.agent_id)
        if transaction.commission_type == CommissionType.FIXED:
            commission_rate = fixed_amount_to_rate(
                transaction.property_price, transaction.commission_value
            )
        else:
            commission_rate = transaction.commission_value

        breakdown, _ = await _calculate(
            db,
            agent,
            transaction.property_price,
            commission_rate,
            transaction.representation_type,
            transaction.co_broker_split_pct,
            include_leadership_bonus=True,
        )

        payment_id = None
        bonus = breakdown.leadership_bonus
        if bonus is not None:
            payment = await add_bonus(
                db,
                transaction_id=transaction.id,
                downline_agent_id=agent.id,
                upline_agent_id=bonus.upline_id,
                upline_tier=bonus.upline_tier,
                original_commission_amount=round_money(breakdown.agent_commission_share),
                company_share_amount=round_money(breakdown.company_share),
                leadership_bonus_rate=bonus.bonus_rate,
                leadership_bonus_amount=bonus.bonus_amount,
            )
            payment_id = payment.id

        transaction.status = TransactionStatus.SETTLED.value
        log_commission_audit(
            db,
            transaction_id=transaction.id,
            agent_id=agent.id,
            action=CommissionAuditAction.SETTLE_COMMISSION,
            changed_by=ctx.caller_id,
            new_values=breakdown.model_dump(mode="json"),
            change_reason="Commission settled",
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        await db.commit()
    except EngineError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Settling transaction {transaction_id} failed: {e}")
        raise PersistenceError(f"Could not settle transaction {transaction_id}") from e

    logger.info(
        f"Transaction {transaction_id} settled by agent {ctx.caller_id}: "
        f"agent earnings {round_money(breakdown.agent_earnings)}, "
        f"bonus payment {payment_id}"
    )
    return SettlementResponse(
        transaction_id=transaction_id,
        breakdown=breakdown,
        leadership_bonus_payment_id=payment_id,
    )

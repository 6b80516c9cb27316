"""
Multi-level commission calculation for agents.

Levels, applied in order:
1. Property: total = price x commission rate
2. Representation: a co-broking deal gives part of the total to the co-broker
3. Tier split: the agent keeps `company_split` percent of their share, the
   company keeps the rest
4. Leadership bonus: the agent's direct upline receives a percentage of the
   company's share (never of the agent's earnings)

All intermediate amounts keep full Decimal precision. Only the bonus amount
and the company's net share are rounded to cents, half-up.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from src.models.agent import AgentTier
from src.models.transaction import RepresentationType
from src.schemas.commission import (
    CommissionBreakdown,
    CommissionSummary,
    LeadershipBonusInfo,
    UplineInfo,
)
from src.services.errors import InvalidInputError

Number = Union[Decimal, int, float, str]

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DEFAULT_CO_BROKER_SPLIT_PCT = Decimal("50")


def to_decimal(value: Number, field: str) -> Decimal:
    """Convert user input to Decimal without picking up float noise."""
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number", {"field": field})
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidInputError(f"{field} must be a number", {"field": field}) from e
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number", {"field": field})
    return result


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_commission(
    property_price: Number,
    commission_rate: Number,
    representation_type: Union[RepresentationType, str],
    agent_tier: Union[AgentTier, str],
    company_split: Number,
    co_broker_split_pct: Number = DEFAULT_CO_BROKER_SPLIT_PCT,
    upline_info: Optional[UplineInfo] = None,
) -> CommissionBreakdown:
    """Calculate the itemised commission for a transaction.

    Pure: no I/O, no hidden state; the same inputs always give the same
    breakdown.

    Args:
        property_price: Sale price, > 0
        commission_rate: Percent of the price, 0 < rate <= 100
        representation_type: "direct" or "co_broking"
        agent_tier: Tier of the agent who closed the deal
        company_split: Agent's share (percent) of their commission, 0 < split <= 100
        co_broker_split_pct: Co-broker's percent of the total (co_broking only)
        upline_info: The agent's direct upline, or None

    Returns:
        CommissionBreakdown

    Raises:
        InvalidInputError: if any input is out of range
    """
    price = to_decimal(property_price, "property_price")
    rate = to_decimal(commission_rate, "commission_rate")
    split = to_decimal(company_split, "company_split")
    co_broker_pct = to_decimal(co_broker_split_pct, "co_broker_split_pct")

    if price <= 0:
        raise InvalidInputError("Property price must be positive")
    if rate <= 0 or rate > HUNDRED:
        raise InvalidInputError("Commission rate must be between 0 and 100")
    if split <= 0 or split > HUNDRED:
        raise InvalidInputError("Company commission split must be between 0 and 100")
    if co_broker_pct < 0 or co_broker_pct > HUNDRED:
        raise InvalidInputError("Co-broker split must be between 0 and 100")

    try:
        representation = RepresentationType(representation_type)
    except ValueError as e:
        raise InvalidInputError(
            f"Unknown representation type: {representation_type}"
        ) from e
    try:
        tier = AgentTier(agent_tier)
    except ValueError as e:
        raise InvalidInputError(f"Unknown agent tier: {agent_tier}") from e

    # Level 1: property
    total_commission = price * rate / HUNDRED

    # Level 2: representation
    co_broker_share: Optional[Decimal] = None
    if representation == RepresentationType.CO_BROKING:
        agent_commission_share = total_commission * (HUNDRED - co_broker_pct) / HUNDRED
        co_broker_share = total_commission - agent_commission_share
    else:
        agent_commission_share = total_commission

    # Level 3: tier split
    agent_earnings = agent_commission_share * split / HUNDRED
    company_share = agent_commission_share - agent_earnings

    # Level 4: leadership bonus out of the company's share
    leadership_bonus: Optional[LeadershipBonusInfo] = None
    company_net_share = company_share

    if upline_info is not None and upline_info.leadership_bonus_rate > 0:
        bonus_rate = to_decimal(upline_info.leadership_bonus_rate, "leadership_bonus_rate")
        if bonus_rate > HUNDRED:
            raise InvalidInputError("Leadership bonus rate must be between 0 and 100")
        bonus_amount = round_money(company_share * bonus_rate / HUNDRED)
        company_net_share = round_money(company_share - bonus_amount)
        leadership_bonus = LeadershipBonusInfo(
            upline_id=upline_info.upline_id,
            upline_name=upline_info.upline_name,
            upline_tier=upline_info.upline_tier,
            bonus_rate=bonus_rate,
            bonus_amount=bonus_amount,
            from_company_share=company_share,
        )

    return CommissionBreakdown(
        property_price=price,
        commission_rate=rate,
        total_commission=total_commission,
        representation_type=representation,
        agent_commission_share=agent_commission_share,
        co_broker_share=co_broker_share,
        agent_tier=tier,
        company_commission_split=split,
        company_share=company_share,
        agent_earnings=agent_earnings,
        leadership_bonus=leadership_bonus,
        company_net_share=company_net_share,
        summary=CommissionSummary(
            total_commission=total_commission,
            co_broker_share=co_broker_share,
            agent_earnings=agent_earnings,
            leadership_bonus=leadership_bonus.bonus_amount if leadership_bonus else None,
            company_share=company_net_share,
        ),
    )


def fixed_amount_to_rate(property_price: Number, commission_amount: Number) -> Decimal:
    """Express a fixed commission amount as a percent of the price."""
    price = to_decimal(property_price, "property_price")
    amount = to_decimal(commission_amount, "commission_value")
    if price <= 0:
        raise InvalidInputError("Property price must be positive")
    return amount / price * HUNDRED

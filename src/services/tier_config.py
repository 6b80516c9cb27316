"""
Tier configuration store.

Tier settings live in a versioned chain of `tier_definitions` rows. Reads
go through a short-lived in-process cache; every write supersedes the
active row instead of editing it, logs the change and drops the cache
entry for that tier before returning.
"""

import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models import TIER_ORDER, AgentTier, TierConfigChangeLog, TierDefinition, utcnow
from src.schemas.tier import TierConfig, TierUpdateRequest
from src.services.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

# Used until an admin writes the first definition for a tier
DEFAULT_TIER_CONFIG: Dict[AgentTier, Dict[str, Any]] = {
    AgentTier.ADVISOR: {
        "commission_split": Decimal("70"),
        "leadership_bonus_rate": Decimal("0"),
        "required_monthly_sales": 0,
        "required_team_members": 0,
        "display_name": "Advisor",
        "description": "Entry level agent",
    },
    AgentTier.SALES_LEADER: {
        "commission_split": Decimal("80"),
        "leadership_bonus_rate": Decimal("7"),
        "required_monthly_sales": 2,
        "required_team_members": 0,
        "display_name": "Sales Leader",
        "description": "2+ monthly sales",
    },
    AgentTier.TEAM_LEADER: {
        "commission_split": Decimal("83"),
        "leadership_bonus_rate": Decimal("5"),
        "required_monthly_sales": 3,
        "required_team_members": 3,
        "display_name": "Team Leader",
        "description": "3+ sales, 3+ team members",
    },
    AgentTier.GROUP_LEADER: {
        "commission_split": Decimal("85"),
        "leadership_bonus_rate": Decimal("8"),
        "required_monthly_sales": 5,
        "required_team_members": 5,
        "display_name": "Group Leader",
        "description": "5+ sales, 5+ team members",
    },
    AgentTier.SUPREME_LEADER: {
        "commission_split": Decimal("85"),
        "leadership_bonus_rate": Decimal("6"),
        "required_monthly_sales": 8,
        "required_team_members": 10,
        "display_name": "Supreme Leader",
        "description": "8+ sales, 10+ team members",
    },
}

EDITABLE_FIELDS = (
    "commission_split",
    "leadership_bonus_rate",
    "required_monthly_sales",
    "required_team_members",
    "display_name",
    "description",
)


class TierConfigCache:
    """Per-tier TTL cache of active definitions."""

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[AgentTier, tuple] = {}

    def get(self, tier: AgentTier) -> Optional[TierConfig]:
        entry = self._entries.get(tier)
        if entry is None:
            return None
        expires_at, config = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(tier, None)
            return None
        return config

    def put(self, tier: AgentTier, config: TierConfig) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[tier] = (time.monotonic() + self.ttl_seconds, config)

    def invalidate(self, tier: Optional[AgentTier] = None) -> None:
        if tier is None:
            self._entries.clear()
        else:
            self._entries.pop(tier, None)


_cache = TierConfigCache(settings.tier_cache_ttl_seconds)
_write_locks: Dict[AgentTier, asyncio.Lock] = defaultdict(asyncio.Lock)


def invalidate_tier_cache(tier: Optional[AgentTier] = None) -> None:
    """Drop cached definitions (all tiers when `tier` is None)."""
    _cache.invalidate(tier)


def coerce_tier(value: Union[AgentTier, str]) -> AgentTier:
    try:
        return AgentTier(value)
    except ValueError as e:
        raise ValidationError(f"Unknown agent tier: {value}", {"tier": str(value)}) from e


def default_tier_config(tier: AgentTier) -> TierConfig:
    return TierConfig(tier=tier, version=0, **DEFAULT_TIER_CONFIG[tier])


def _snapshot(config: TierConfig) -> Dict[str, Any]:
    """JSON-safe copy of the editable values for the change log."""
    data = config.model_dump(mode="json", include={"version", *EDITABLE_FIELDS})
    return data


async def _load_active_row(
    db: AsyncSession,
    tier: AgentTier,
    for_update: bool = False,
) -> Optional[TierDefinition]:
    query = select(TierDefinition).where(
        and_(
            TierDefinition.tier == tier,
            TierDefinition.is_active == True,
        )
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_active_tier(
    db: AsyncSession,
    tier: Union[AgentTier, str],
) -> TierConfig:
    """Get the definition currently in effect for a tier."""
    tier = coerce_tier(tier)

    cached = _cache.get(tier)
    if cached is not None:
        return cached

    row = await _load_active_row(db, tier)
    config = TierConfig.model_validate(row) if row else default_tier_config(tier)
    _cache.put(tier, config)
    return config


async def get_all_tiers(db: AsyncSession) -> List[TierConfig]:
    """Active definitions for every tier, lowest rank first."""
    return [await get_active_tier(db, tier) for tier in TIER_ORDER]


async def get_tier_as_of(
    db: AsyncSession,
    tier: Union[AgentTier, str],
    at: datetime,
) -> TierConfig:
    """
    Get the definition that was in effect at a point in time.

    Falls back to the built-in default for moments before the first
    stored version.
    """
    tier = coerce_tier(tier)
    result = await db.execute(
        select(TierDefinition)
        .where(
            and_(
                TierDefinition.tier == tier,
                TierDefinition.effective_from <= at,
                or_(
                    TierDefinition.effective_to.is_(None),
                    TierDefinition.effective_to > at,
                ),
            )
        )
        .order_by(TierDefinition.version.desc())
        .limit(1)
    )
    row = result.scalar_one_or_none()
    return TierConfig.model_validate(row) if row else default_tier_config(tier)


def _validate_new_values(new_values: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(new_values) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown tier fields: {', '.join(sorted(unknown))}",
            {"fields": sorted(unknown)},
        )

    cleaned: Dict[str, Any] = {}
    for field in ("commission_split", "leadership_bonus_rate"):
        if new_values.get(field) is None:
            continue
        try:
            value = Decimal(str(new_values[field]))
        except ArithmeticError as e:
            raise ValidationError(f"{field} must be a number", {"field": field}) from e
        if not value.is_finite() or value < 0 or value > 100:
            raise ValidationError(f"{field} must be between 0 and 100", {"field": field})
        cleaned[field] = value

    for field in ("required_monthly_sales", "required_team_members"):
        if new_values.get(field) is None:
            continue
        value = new_values[field]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                f"{field} must be a non-negative integer",
                {"field": field},
            )
        cleaned[field] = value

    if new_values.get("display_name") is not None:
        display_name = str(new_values["display_name"]).strip()
        if not display_name:
            raise ValidationError("display_name cannot be empty", {"field": "display_name"})
        cleaned["display_name"] = display_name

    if "description" in new_values:
        cleaned["description"] = new_values["description"]

    return cleaned


async def update_tier(
    db: AsyncSession,
    tier: Union[AgentTier, str],
    new_values: Union[Dict[str, Any], TierUpdateRequest],
    changed_by: int,
    reason: str,
) -> TierConfig:
    """
    Supersede a tier's active definition.

    The active row is closed (effective_to = now, is_active = False) and a
    new version is appended with the merged values. A change log entry
    records old and new values. Everything happens in one transaction.

    Args:
        db: Database session
        tier: Tier to change
        new_values: Fields to change; omitted fields keep their value
        changed_by: Agent ID of the admin making the change
        reason: Why the change was made (required)

    Returns:
        The new active definition

    Raises:
        ValidationError: bad values or empty reason, before any write
        PersistenceError: storage failure, nothing written
    """
    tier = coerce_tier(tier)
    if isinstance(new_values, TierUpdateRequest):
        new_values = new_values.model_dump(exclude_unset=True, exclude={"reason"})

    if not reason or not reason.strip():
        raise ValidationError("A reason is required to change tier configuration")
    cleaned = _validate_new_values(new_values)
    if not cleaned:
        raise ValidationError("No tier fields to update")

    async with _write_locks[tier]:
        try:
            current_row = await _load_active_row(db, tier, for_update=True)
            old_config = (
                TierConfig.model_validate(current_row)
                if current_row
                else default_tier_config(tier)
            )

            latest_version = await db.scalar(
                select(func.max(TierDefinition.version)).where(TierDefinition.tier == tier)
            )
            now = utcnow()

            if current_row is not None:
                current_row.is_active = False
                current_row.effective_to = now
                # The one-active-row index must see the old row closed first
                await db.flush()

            merged = {
                field: getattr(old_config, field) for field in EDITABLE_FIELDS
            }
            merged.update(cleaned)

            new_row = TierDefinition(
                tier=tier,
                version=(latest_version or 0) + 1,
                is_active=True,
                effective_from=now,
                effective_to=None,
                created_by=changed_by,
                **merged,
            )
            db.add(new_row)

            new_config = TierConfig(
                tier=tier,
                version=new_row.version,
                is_active=True,
                effective_from=now,
                **merged,
            )
            db.add(
                TierConfigChangeLog(
                    tier=tier,
                    old_values=_snapshot(old_config),
                    new_values=_snapshot(new_config),
                    changed_by=changed_by,
                    reason=reason.strip(),
                    changed_at=now,
                )
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Tier update for {tier.value} failed: {e}")
            raise PersistenceError(f"Could not update tier {tier.value}") from e
        finally:
            _cache.invalidate(tier)

    logger.info(
        f"Tier {tier.value} updated to version {new_config.version} "
        f"by agent {changed_by}: {reason.strip()}"
    )
    return new_config


async def get_tier_change_log(
    db: AsyncSession,
    tier: Union[AgentTier, str],
) -> List[TierConfigChangeLog]:
    """Change log entries for a tier, oldest first."""
    tier = coerce_tier(tier)
    result = await db.execute(
        select(TierConfigChangeLog)
        .where(TierConfigChangeLog.tier == tier)
        .order_by(TierConfigChangeLog.changed_at, TierConfigChangeLog.id)
    )
    return list(result.scalars().all())

"""
Tests for the versioned tier configuration store.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.models import AgentTier, TierConfigChangeLog, TierDefinition, utcnow
from src.schemas.tier import TierUpdateRequest
from src.services import tier_config
from src.services.errors import ValidationError


# ── defaults ────────────────────────────────────────────────


class TestDefaults:
    async def test_falls_back_to_defaults(self, db_session):
        config = await tier_config.get_active_tier(db_session, AgentTier.TEAM_LEADER)
        assert config.is_default
        assert config.commission_split == Decimal("83")
        assert config.leadership_bonus_rate == Decimal("5")
        assert config.required_monthly_sales == 3
        assert config.required_team_members == 3

    async def test_all_tiers_in_rank_order(self, db_session):
        configs = await tier_config.get_all_tiers(db_session)
        assert [c.tier for c in configs] == list(AgentTier)
        assert [c.commission_split for c in configs] == [
            Decimal("70"), Decimal("80"), Decimal("83"), Decimal("85"), Decimal("85"),
        ]
        assert [c.leadership_bonus_rate for c in configs] == [
            Decimal("0"), Decimal("7"), Decimal("5"), Decimal("8"), Decimal("6"),
        ]

    async def test_unknown_tier_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await tier_config.get_active_tier(db_session, "platinum")


# ── update_tier ─────────────────────────────────────────────


class TestUpdateTier:
    async def test_update_appends_version_and_logs(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        updated = await tier_config.update_tier(
            db_session,
            AgentTier.SALES_LEADER,
            {"leadership_bonus_rate": Decimal("7.5")},
            admin.id,
            "Quarterly review",
        )
        assert updated.version == 1
        assert updated.leadership_bonus_rate == Decimal("7.5")
        # Untouched fields carry over from the previous definition
        assert updated.commission_split == Decimal("80")

        logs = (await db_session.execute(select(TierConfigChangeLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].reason == "Quarterly review"
        assert logs[0].old_values["leadership_bonus_rate"] == "7"
        assert logs[0].new_values["leadership_bonus_rate"] == "7.5"

    async def test_second_update_closes_previous_row(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        await tier_config.update_tier(
            db_session, "advisor", {"commission_split": 72}, admin.id, "First"
        )
        second = await tier_config.update_tier(
            db_session, "advisor", {"commission_split": 74}, admin.id, "Second"
        )
        assert second.version == 2

        rows = (
            await db_session.execute(
                select(TierDefinition)
                .where(TierDefinition.tier == AgentTier.ADVISOR)
                .order_by(TierDefinition.version)
            )
        ).scalars().all()
        assert [r.version for r in rows] == [1, 2]
        assert [r.is_active for r in rows] == [False, True]
        assert rows[0].effective_to is not None
        # Historical split is never rewritten
        assert rows[0].commission_split == Decimal("72")

        active_count = await db_session.scalar(
            select(func.count(TierDefinition.id)).where(
                TierDefinition.tier == AgentTier.ADVISOR,
                TierDefinition.is_active == True,
            )
        )
        assert active_count == 1

    async def test_update_invalidates_cache(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        before = await tier_config.get_active_tier(db_session, "group_leader")
        assert before.commission_split == Decimal("85")

        await tier_config.update_tier(
            db_session, "group_leader", {"commission_split": 86}, admin.id, "Raise"
        )
        after = await tier_config.get_active_tier(db_session, "group_leader")
        assert after.commission_split == Decimal("86")

    async def test_accepts_update_request_schema(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        request = TierUpdateRequest(display_name="Senior Advisor", reason="Rename")
        updated = await tier_config.update_tier(
            db_session, "advisor", request, admin.id, request.reason
        )
        assert updated.display_name == "Senior Advisor"

    @pytest.mark.parametrize(
        "values",
        [
            {"commission_split": 101},
            {"commission_split": -1},
            {"leadership_bonus_rate": Decimal("100.5")},
            {"required_monthly_sales": -1},
            {"required_team_members": 2.5},
            {"unknown_field": 1},
            {},
        ],
    )
    async def test_invalid_values_write_nothing(self, db_session, make_agent, values):
        admin = await make_agent(role="admin")
        with pytest.raises(ValidationError):
            await tier_config.update_tier(db_session, "advisor", values, admin.id, "Bad")

        count = await db_session.scalar(select(func.count(TierDefinition.id)))
        assert count == 0

    async def test_empty_reason_rejected(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        with pytest.raises(ValidationError):
            await tier_config.update_tier(
                db_session, "advisor", {"commission_split": 71}, admin.id, "   "
            )
        count = await db_session.scalar(select(func.count(TierConfigChangeLog.id)))
        assert count == 0


# ── point-in-time lookup ──────────────────────────────────


class TestTierAsOf:
    async def test_returns_version_in_effect(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        first = await tier_config.update_tier(
            db_session, "advisor", {"commission_split": 71}, admin.id, "v1"
        )
        second = await tier_config.update_tier(
            db_session, "advisor", {"commission_split": 72}, admin.id, "v2"
        )

        before_any = await tier_config.get_tier_as_of(
            db_session, "advisor", first.effective_from - timedelta(days=1)
        )
        assert before_any.is_default

        at_first = await tier_config.get_tier_as_of(
            db_session, "advisor", first.effective_from
        )
        assert at_first.version == 1

        now = await tier_config.get_tier_as_of(
            db_session, "advisor", utcnow() + timedelta(seconds=1)
        )
        assert now.version == second.version == 2

    async def test_change_log_listed_in_order(self, db_session, make_agent):
        admin = await make_agent(role="admin")
        await tier_config.update_tier(db_session, "advisor", {"commission_split": 71}, admin.id, "a")
        await tier_config.update_tier(db_session, "advisor", {"commission_split": 72}, admin.id, "b")
        log = await tier_config.get_tier_change_log(db_session, "advisor")
        assert [entry.reason for entry in log] == ["a", "b"]

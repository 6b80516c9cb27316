"""
Pytest configuration and fixtures.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.models import (
    Agent,
    AgentRole,
    AgentTier,
    Base,
    CommissionType,
    RepresentationType,
    Team,
    Transaction,
)
from src.services.tier_config import invalidate_tier_cache

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def fresh_tier_cache():
    """Each test gets its own database, so cached tiers must not leak."""
    invalidate_tier_cache()
    yield
    invalidate_tier_cache()


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_team(db_session):
    async def _make(name: str = "Team") -> Team:
        team = Team(name=name)
        db_session.add(team)
        await db_session.commit()
        return team

    return _make


@pytest_asyncio.fixture
async def make_agent(db_session):
    counter = {"n": 0}

    async def _make(
        name: str = None,
        role: str = AgentRole.AGENT.value,
        tier: AgentTier = AgentTier.ADVISOR,
        split: Decimal = Decimal("70"),
        team: Team = None,
        recruited_by: Agent = None,
    ) -> Agent:
        counter["n"] += 1
        agent = Agent(
            name=name or f"Agent {counter['n']}",
            email=f"agent{counter['n']}@steelix.test",
            role=role,
            team_id=team.id if team else None,
            agent_tier=tier,
            company_commission_split=split,
            recruited_by=recruited_by.id if recruited_by else None,
        )
        db_session.add(agent)
        await db_session.commit()
        return agent

    return _make


@pytest_asyncio.fixture
async def make_transaction(db_session):
    async def _make(
        agent: Agent,
        property_price: Decimal = Decimal("500000"),
        commission_value: Decimal = Decimal("2"),
        commission_type: CommissionType = CommissionType.PERCENTAGE,
        representation_type: RepresentationType = RepresentationType.DIRECT,
        co_broker_split_pct: Decimal = Decimal("50"),
    ) -> Transaction:
        transaction = Transaction(
            agent_id=agent.id,
            property_price=property_price,
            commission_type=commission_type,
            commission_value=commission_value,
            representation_type=representation_type,
            co_broker_split_pct=co_broker_split_pct,
        )
        db_session.add(transaction)
        await db_session.commit()
        return transaction

    return _make


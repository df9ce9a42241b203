"""Shared test fixtures for the clinic subscription API tests.

Each test gets its own SQLite database file through aiosqlite, so tests run
without PostgreSQL and never share state.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("TRIAL_SWEEP_ENABLED", "false")
os.environ.setdefault("SEED_PLAN_PRICES", "false")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.core.clock import get_clock
from app.core.database import Base, get_db, get_session_factory
from app.main import app
from app.services.auth import create_access_token
from app.services.plan_store import get_clinic

# Import all models to ensure they're registered with Base.metadata
from app.models.clinic import Clinic
from app.models.plan_price import PlanPrice
from app.models.subscription_analytics import SubscriptionAnalytics  # noqa: F401
from app.models.trial_history import TrialHistory, TrialStatus
from app.models.user import User


NOW = datetime(2026, 3, 2, 12, 0, 0)


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'subscriptions.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """Direct DB session for test setup/assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, clock):
    """Async HTTP test client wired to the per-test database and clock."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_clinic(db):
    """Create a clinic and return its id."""

    async def _make_clinic(
        name: str = "Clinica Exemplo",
        plan: str = "scheduling",
        total_patients: int = 0,
        monthly_revenue: str = "0",
        trial_expires_at: datetime = None,
    ):
        clinic = Clinic(
            name=name,
            subscription_plan=plan,
            total_patients=total_patients,
            monthly_revenue=Decimal(monthly_revenue),
            trial_pro_enabled=trial_expires_at is not None,
            trial_pro_expires_at=trial_expires_at,
        )
        db.add(clinic)
        await db.commit()
        return clinic.id

    return _make_clinic


@pytest.fixture
def make_user(db):
    """Create a user and return (user_id, auth headers)."""

    async def _make_user(email: str, role: str = "user", clinic_id=None, full_name: str = None):
        user = User(email=email, role=role, clinic_id=clinic_id, full_name=full_name, is_active=True)
        db.add(user)
        await db.commit()
        token = create_access_token({"sub": str(user.id)})
        return user.id, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest_asyncio.fixture
async def operator(make_user):
    """Superadmin operator: returns (user_id, headers)."""
    return await make_user("ops@example.com", role="superadmin", full_name="Ops Person")


@pytest_asyncio.fixture
async def plan_prices(db):
    db.add_all([
        PlanPrice(plan_name="pro", price_per_patient=Decimal("35.00"), active=True),
        PlanPrice(plan_name="scheduling", price_per_patient=Decimal("15.00"), active=True),
        PlanPrice(plan_name="legacy", price_per_patient=Decimal("50.00"), active=False),
    ])
    await db.commit()


@pytest.fixture
def assert_trial_invariant(db):
    """Check that the trial flag is set exactly when one history record is active."""

    async def _check(clinic_id):
        clinic = await get_clinic(db, clinic_id)
        result = await db.execute(
            select(func.count(TrialHistory.id)).where(
                TrialHistory.clinic_id == clinic_id,
                TrialHistory.status == TrialStatus.ACTIVE.value,
            )
        )
        active_records = result.scalar()
        assert active_records <= 1
        assert clinic.trial_pro_enabled == (active_records == 1)
        if clinic.trial_pro_enabled:
            assert clinic.trial_pro_expires_at is not None
        else:
            assert clinic.trial_pro_expires_at is None

    return _check

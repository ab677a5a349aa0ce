"""
Shared fixtures: an in-memory SQLite database per test, the plan catalog,
a funded user and an HTTP client authenticated as that user.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.pop("TELEGRAM_BOT_TOKEN", None)

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from workstation.core.config import settings
from workstation.core.database import Base, get_db
from workstation.main import app
from workstation.models import WorkstationPlan
from workstation.services.auth_service import create_session_token
from workstation.services.user_service import UserService

from factories import NOW


@pytest.fixture
def now():
    return NOW


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def plans(db):
    catalog = {
        "daily": WorkstationPlan(name="Daily Plan", slug="daily", price=Decimal("5000.00"), duration_days=1),
        "monthly": WorkstationPlan(name="Monthly Plan", slug="monthly", price=Decimal("10000.00"), duration_days=30),
        "quarterly": WorkstationPlan(
            name="Quarterly Plan",
            slug="quarterly",
            price=Decimal("24000.00"),
            duration_days=90,
            allows_installments=True,
            installment_months=3,
            installment_amount=Decimal("8000.00"),
        ),
        "yearly": WorkstationPlan(
            name="Yearly Plan",
            slug="yearly",
            price=Decimal("100000.00"),
            duration_days=365,
            allows_installments=True,
            installment_months=12,
            installment_amount=Decimal("8333.33"),
        ),
    }
    db.add_all(catalog.values())
    await db.commit()
    return catalog


@pytest_asyncio.fixture
async def user(db):
    return await UserService(db).create_user(
        "ada@example.com", first_name="Ada", last_name="Obi", wallet_balance=Decimal("100000.00")
    )


@pytest_asyncio.fixture
async def client(session_factory, user):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.cookies.set(settings.session_cookie_name, create_session_token(user.id))
        yield client
    app.dependency_overrides.clear()

"""
Test Configuration — Fixtures for async DB, test client, and seeded trade data.

Each test gets its own in-memory SQLite database (StaticPool keeps the
single connection alive for the engine's lifetime), so commits made by
app code and rollbacks made by failed cascades both behave as they do
against a real database.
"""

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_current_user, get_db
from api.main import app
from db.session import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

WINDOW_START = datetime(2026, 1, 1)
WINDOW_END = datetime(2026, 1, 31)


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Session bound to the per-test database."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_user():
    """Mock authenticated user."""
    return {
        "sub": "test-user",
        "email": "test@tradeops.local",
        "role": "admin",
    }


@pytest.fixture
async def client(test_db, mock_user):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """
    Seed one complete chain:
      Need (1000 t, January 2026) ← Request ← Contract (approved)
        ← Vessel (discharged 400 t on Jan 15)
    plus an unallocated 500 t letter of credit.
    """
    from db.models import Contract, LetterOfCredit, Need, TradeRequest, Vessel

    need = Need(
        title="Wheat Q1",
        description="Milling wheat for Q1",
        category="raw_materials",
        required_quantity=1000,
        unit_of_measure="tons",
        fulfillment_start_date=WINDOW_START,
        fulfillment_end_date=WINDOW_END,
        priority="high",
    )
    test_db.add(need)
    await test_db.flush()

    request = TradeRequest(
        need_id=need.need_id,
        title="Wheat import request",
        quantity=1000,
        unit_of_measure="tons",
        price_per_ton=250.0,
        cargo_type="wheat",
        country_of_origin="Canada",
        status="applied",
    )
    test_db.add(request)
    await test_db.flush()

    contract = Contract(
        request_id=request.request_id,
        supplier_name="Prairie Grain Co",
        cargo_type="wheat",
        quantity=1000,
        status="approved",
    )
    test_db.add(contract)
    await test_db.flush()

    vessel = Vessel(
        contract_id=contract.contract_id,
        vessel_name="MV Northern Star",
        cargo_type="wheat",
        quantity=500,
        status="discharged",
        actual_quantity=400,
        discharge_end_date=datetime(2026, 1, 15),
    )
    test_db.add(vessel)
    await test_db.flush()

    lc = LetterOfCredit(
        lc_number="LC-2026-001",
        currency="USD",
        quantity=500,
        issuing_bank="First Trade Bank",
    )
    test_db.add(lc)
    await test_db.flush()

    await test_db.commit()

    return {
        "need": need,
        "request": request,
        "contract": contract,
        "vessel": vessel,
        "lc": lc,
    }

"""Test configuration and fixtures"""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tablehaus.main import app
from tablehaus.database import Base, get_db
from tablehaus.api.deps import ROLE_CUSTOMER, ROLE_STAFF, create_access_token, get_blob_store, get_invalidation
from tablehaus.core.lifecycle import Channel
from tablehaus.core.policy import BookingPolicy
from tablehaus.models import BlockedDate, DiningTable, MenuItem, Promotion
from tablehaus.schemas.booking import DiningTable as DiningTableInfo
from tablehaus.stores.blob import InMemoryBlobStore
from tablehaus.stores.invalidation import InProcessInvalidationChannel
from tablehaus.stores.memory import InMemoryReservationStore


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TIMEZONE = "Asia/Bangkok"
BLOCKED_DAY = date(2030, 1, 1)


@pytest.fixture
async def session_factory():
    """Create test database; every session shares the one in-memory connection"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_tables(test_db):
    """Create dining tables T1 (2 seats), T2 (4 seats), T3 (6 seats)"""
    tables = [
        DiningTable(id=uuid4(), name="T1", capacity=2),
        DiningTable(id=uuid4(), name="T2", capacity=4),
        DiningTable(id=uuid4(), name="T3", capacity=6),
    ]
    for table in tables:
        test_db.add(table)
    await test_db.commit()
    return tables


@pytest.fixture
async def test_menu_items(test_db):
    """Create test menu items"""
    items = [
        MenuItem(id=uuid4(), name="Ribeye", price=60000, category="Mains"),
        MenuItem(id=uuid4(), name="Caesar Salad", price=25000, category="Starters"),
        MenuItem(id=uuid4(), name="Sold Out Special", price=10000, category="Mains", is_available=False),
    ]
    for item in items:
        test_db.add(item)
    await test_db.commit()
    return items


@pytest.fixture
async def test_promotions(test_db):
    """SAVE10 (10% off) and a fixed-amount code with a minimum spend"""
    promotions = [
        Promotion(id=uuid4(), code="SAVE10", discount_type="percent", discount_value=10, min_subtotal=0),
        Promotion(id=uuid4(), code="BIG500", discount_type="fixed", discount_value=50000, min_subtotal=200000),
    ]
    for promotion in promotions:
        test_db.add(promotion)
    await test_db.commit()
    return promotions


@pytest.fixture
async def test_blocked_date(test_db):
    blocked = BlockedDate(id=uuid4(), date=BLOCKED_DAY, reason="Private event")
    test_db.add(blocked)
    await test_db.commit()
    return blocked


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def invalidation_channel():
    return InProcessInvalidationChannel()


@pytest.fixture
async def client(session_factory, blob_store, invalidation_channel):
    """Create test client with overridden database, blob storage and invalidation"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_invalidation] = lambda: invalidation_channel

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers():
    return {"Authorization": f"Bearer {create_access_token('customer-1', ROLE_CUSTOMER)}"}


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {create_access_token('staff-1', ROLE_STAFF)}"}


# --- in-memory core fixtures ---------------------------------------------


@pytest.fixture
def policy():
    return BookingPolicy(timezone=TIMEZONE)


@pytest.fixture
def memory_store(policy):
    return InMemoryReservationStore(policy.timezone, policy.durations)


@pytest.fixture
def tables():
    return [
        DiningTableInfo(id=uuid4(), name="T1", capacity=2),
        DiningTableInfo(id=uuid4(), name="T2", capacity=4),
        DiningTableInfo(id=uuid4(), name="T3", capacity=6),
    ]


@pytest.fixture
def durations():
    return {Channel.DINE_IN: timedelta(minutes=120), Channel.PICKUP: timedelta(minutes=30)}

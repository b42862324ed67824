"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool, Pool

from fleet_backend.app.main import app
from fleet_backend.app.db.session import get_db, Base
from fleet_backend.app.core.redis_client import get_redis
from fleet_backend.app.core.jwt import create_access_token
from fleet_backend.app.core.security import get_password_hash
from fleet_backend.app.models.company import Company
from fleet_backend.app.models.driver_vehicle import DriverVehicle
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.user import User
from fleet_backend.app.models.vehicle import Vehicle

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class MockRedis:
    """In-process stand-in for the token revocation store."""

    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}


mock_redis = MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Route the app's database and Redis dependencies to the test doubles."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await mock_redis.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(setup_database):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session(setup_database):
    async with TestingSessionLocal() as session:
        yield session


# Domain fixtures

async def make_user(db, company, username, role=UserRole.DRIVER, password="secret123", is_active=True):
    user = User(
        email=f"{username}@test.com",
        username=username,
        hashed_password=get_password_hash(password),
        role=role,
        company_id=company.id,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_headers(user) -> dict:
    token = create_access_token(data={
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
        "company_id": user.company_id,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def company(db_session):
    company = Company(name="Acme Logistics")
    db_session.add(company)
    await db_session.commit()
    await db_session.refresh(company)
    return company


@pytest.fixture
async def other_company(db_session):
    company = Company(name="Rival Transport")
    db_session.add(company)
    await db_session.commit()
    await db_session.refresh(company)
    return company


@pytest.fixture
async def admin(db_session, company):
    return await make_user(db_session, company, "admin", role=UserRole.ADMIN)


@pytest.fixture
async def driver(db_session, company):
    return await make_user(db_session, company, "maria")


@pytest.fixture
async def other_driver(db_session, company):
    return await make_user(db_session, company, "joao")


@pytest.fixture
async def vehicle(db_session, company):
    vehicle = Vehicle(company_id=company.id, plate="ABC1D23", model="Fiat Strada", odometer=14000)
    db_session.add(vehicle)
    await db_session.commit()
    await db_session.refresh(vehicle)
    return vehicle


@pytest.fixture
async def assigned_vehicle(db_session, driver, vehicle):
    """Vehicle the driver fixture is authorized to drive."""
    db_session.add(DriverVehicle(driver_id=driver.id, vehicle_id=vehicle.id))
    await db_session.commit()
    return vehicle


@pytest.fixture
def driver_headers(driver):
    return auth_headers(driver)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


async def add_trip(db, driver, vehicle, departure_at, arrival_at, final_odometer, purpose="Delivery"):
    """Insert a trip directly, bypassing the API rules."""
    trip = Trip(
        company_id=vehicle.company_id,
        driver_id=driver.id,
        vehicle_id=vehicle.id,
        departure_at=departure_at,
        arrival_at=arrival_at,
        purpose=purpose,
        final_odometer=final_odometer,
    )
    db.add(trip)
    await db.commit()
    await db.refresh(trip)
    return trip


@pytest.fixture
async def ledger_trip(db_session, driver, assigned_vehicle):
    """The vehicle's prior trip: 15000 km, departed 2024-01-10 08:00."""
    return await add_trip(
        db_session, driver, assigned_vehicle,
        departure_at=datetime(2024, 1, 10, 8, 0),
        arrival_at=datetime(2024, 1, 10, 12, 0),
        final_odometer=15000,
    )


@pytest.fixture
def trip_factory(db_session):
    async def _make(driver, vehicle, departure_at, arrival_at, final_odometer, purpose="Delivery"):
        return await add_trip(db_session, driver, vehicle, departure_at, arrival_at, final_odometer, purpose)
    return _make


@pytest.fixture
def user_factory(db_session):
    async def _make(company, username, role=UserRole.DRIVER, **kwargs):
        return await make_user(db_session, company, username, role=role, **kwargs)
    return _make


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def fake_redis():
    return mock_redis

"""Shared fixtures: in-memory database, API client and signed-in users."""

import os
import tempfile
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="daycare-uploads-"))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import daycare.models  # noqa: F401
from daycare.core.database import Base, get_db
from daycare.core.security import create_access_token, get_password_hash
from daycare.main import app
from daycare.models import PayFrequency, PaymentType, User, UserRole


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


async def make_user(db, email: str, role: UserRole, password: str = "secret123", **fields) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=fields.pop("first_name", email.split("@")[0].title()),
        last_name=fields.pop("last_name", "Tester"),
        role=role,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@test.local", UserRole.ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
async def educator(db):
    return await make_user(
        db,
        "educator@test.local",
        UserRole.EDUCATOR,
        first_name="Eve",
        last_name="Educator",
        payment_type=PaymentType.HOURLY,
        hourly_rate=Decimal("20.00"),
        pay_frequency=PayFrequency.BI_WEEKLY,
    )


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def educator_headers(educator):
    return auth_headers(educator)


FAMILY_PAYLOAD = {
    "parent1": {
        "first_name": "Priya",
        "last_name": "Sharma",
        "email": "priya@example.com",
        "phone": "403-555-0101",
    },
    "parent2": {
        "first_name": "Raj",
        "last_name": "Sharma",
        "email": "raj@example.com",
    },
    "child": {
        "first_name": "Arjun",
        "last_name": "Sharma",
        "date_of_birth": "2021-03-14",
        "monthly_rate": "1150.00",
    },
    "emergency_contact": {"name": "Nani Sharma", "phone": "403-555-0199", "relationship": "Grandmother"},
}


@pytest.fixture
async def family(client, admin_headers):
    """A two-parent family with one active child, created through the API."""
    response = await client.post("/api/families", json=FAMILY_PAYLOAD, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()

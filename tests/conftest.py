import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

# Settings are read at import time; tests run against SQLite
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_app.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.security import create_access_token, get_password_hash
from app.core.slots import compute_ends_at
from app.database import get_db
from app.dependencies import get_cache_manager
from app.main import app
from app.models import appointments, departments, doctors, metadata, users

TEST_PASSWORD = "correct-horse-battery"

# Hashed once; bcrypt is slow
PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

CARDIOLOGY_ID = 1
DERMATOLOGY_ID = 2

HOUSE_USER_ID = 10
GREY_USER_ID = 11
PATIENT_ID = 20
PATIENT_2_ID = 21
ADMIN_ID = 30

HOUSE_DOCTOR_ID = 1
GREY_DOCTOR_ID = 2


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test SQLite database with the full schema."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Factory for independent sessions (one per concurrent caller)."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client (no Redis)."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def _user(user_id: int, name: str, email: str, role: str) -> dict[str, Any]:
    now = datetime.now(UTC)
    return {
        "id": user_id,
        "name": name,
        "email": email,
        "password_hash": PASSWORD_HASH,
        "role": role,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> None:
    """
    Two departments, two Cardiology doctors, two patients and an admin.

    Dr House (doctor 1) and Dr Grey (doctor 2) both work in Cardiology.
    """
    now = datetime.now(UTC)
    await db_session.execute(
        insert(departments),
        [
            {"id": CARDIOLOGY_ID, "name": "Cardiology", "code": "CARD", "is_active": True,
             "created_at": now, "updated_at": now},
            {"id": DERMATOLOGY_ID, "name": "Dermatology", "code": "DERM", "is_active": True,
             "created_at": now, "updated_at": now},
        ],
    )
    await db_session.execute(
        insert(users),
        [
            _user(HOUSE_USER_ID, "Dr House", "house@example.com", "doctor"),
            _user(GREY_USER_ID, "Dr Grey", "grey@example.com", "doctor"),
            _user(PATIENT_ID, "Alice Patient", "alice@example.com", "patient"),
            _user(PATIENT_2_ID, "Bob Patient", "bob@example.com", "patient"),
            _user(ADMIN_ID, "Ada Admin", "admin@example.com", "admin"),
        ],
    )
    await db_session.execute(
        insert(doctors),
        [
            {"id": HOUSE_DOCTOR_ID, "user_id": HOUSE_USER_ID, "department_id": CARDIOLOGY_ID,
             "title": "Cardiologist", "is_active": True, "created_at": now, "updated_at": now},
            {"id": GREY_DOCTOR_ID, "user_id": GREY_USER_ID, "department_id": CARDIOLOGY_ID,
             "title": "Surgeon", "is_active": True, "created_at": now, "updated_at": now},
        ],
    )
    await db_session.commit()


def headers_for(user_id: int) -> dict[str, str]:
    """Bearer header for an account."""
    token = create_access_token(data={"sub": str(user_id)}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(seed) -> dict[str, str]:
    return headers_for(PATIENT_ID)


@pytest.fixture
def patient2_headers(seed) -> dict[str, str]:
    return headers_for(PATIENT_2_ID)


@pytest.fixture
def house_headers(seed) -> dict[str, str]:
    return headers_for(HOUSE_USER_ID)


@pytest.fixture
def grey_headers(seed) -> dict[str, str]:
    return headers_for(GREY_USER_ID)


@pytest.fixture
def admin_headers(seed) -> dict[str, str]:
    return headers_for(ADMIN_ID)


@pytest.fixture
def future_slot() -> datetime:
    """A slot start two days ahead, on the hour."""
    return (datetime.now(UTC) + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)


@pytest.fixture
def make_appointment(
    db_session: AsyncSession, seed
) -> Callable[..., Awaitable[int]]:
    """Insert an appointment row directly; returns its id."""

    async def _make(starts_at: datetime, **overrides: Any) -> int:
        now = datetime.now(UTC)
        values = {
            "doctor_id": HOUSE_DOCTOR_ID,
            "patient_id": PATIENT_ID,
            "department_id": CARDIOLOGY_ID,
            "starts_at": starts_at,
            "ends_at": compute_ends_at(starts_at),
            "status": "PENDING",
            "reason": "Chest pain",
            "source": "API",
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        result = await db_session.execute(
            insert(appointments).values(**values).returning(appointments.c.id)
        )
        await db_session.commit()
        return result.scalar_one()

    return _make


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant from a response body."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))

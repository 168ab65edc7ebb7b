"""Seed demo departments, doctors and one appointment per doctor."""

import asyncio
from datetime import UTC, datetime

import structlog
from sqlalchemy import insert, select

from app.core.exceptions import SlotTakenException
from app.core.security import get_password_hash
from app.database import AsyncSessionLocal, engine
from app.middleware.logging import configure_logging
from app.models import departments, doctors, users
from app.schemas.appointments import AppointmentSource
from app.schemas.users import Caller, UserRole
from app.services.booking_service import BookingService

logger = structlog.get_logger(__name__)

DEMO_PASSWORD = "demo-password"

DEPARTMENTS = [
    {"name": "Cardiology", "code": "CARD", "location": "Block A, Floor 2", "phone": "5550100"},
    {"name": "Dermatology", "code": "DERM", "location": "Block B, Floor 1", "phone": "5550200"},
    {"name": "Neurology", "code": "NEUR", "location": "Block C, Floor 3", "phone": "5550300"},
]

DOCTORS = [
    {"name": "Dr House", "email": "house@example.com", "department": "Cardiology",
     "title": "Cardiologist", "room": "A-204"},
    {"name": "Dr Grey", "email": "grey@example.com", "department": "Neurology",
     "title": "Neurologist", "room": "C-310"},
]

DEMO_PATIENT = {"name": "Demo Patient", "email": "patient@example.com"}


# Fixed so that re-running the seed finds the slots it booked before
SEED_SLOT = datetime(2030, 1, 7, 9, 0, tzinfo=UTC)


async def ensure_department(session, data: dict) -> int:
    result = await session.execute(select(departments.c.id).where(departments.c.name == data["name"]))
    department_id = result.scalar_one_or_none()
    if department_id is None:
        now = datetime.now(UTC)
        result = await session.execute(
            insert(departments)
            .values(**data, is_active=True, created_at=now, updated_at=now)
            .returning(departments.c.id)
        )
        department_id = result.scalar_one()
        logger.info("department_seeded", name=data["name"])
    return department_id


async def ensure_user(session, name: str, email: str, role: UserRole) -> int:
    result = await session.execute(select(users.c.id).where(users.c.email == email))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        now = datetime.now(UTC)
        result = await session.execute(
            insert(users)
            .values(
                name=name,
                email=email,
                password_hash=get_password_hash(DEMO_PASSWORD),
                role=role.value,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            .returning(users.c.id)
        )
        user_id = result.scalar_one()
        logger.info("user_seeded", email=email, role=role.value)
    return user_id


async def ensure_doctor(session, user_id: int, department_id: int, data: dict) -> int:
    result = await session.execute(select(doctors.c.id).where(doctors.c.user_id == user_id))
    doctor_id = result.scalar_one_or_none()
    if doctor_id is None:
        now = datetime.now(UTC)
        result = await session.execute(
            insert(doctors)
            .values(
                user_id=user_id,
                department_id=department_id,
                title=data["title"],
                room=data["room"],
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            .returning(doctors.c.id)
        )
        doctor_id = result.scalar_one()
    return doctor_id


async def seed_data(session, starts_at: datetime = SEED_SLOT) -> int:
    """
    Upsert the demo directory and book ``starts_at`` with every doctor.

    Returns the number of appointments booked; slots already taken by an
    earlier run are skipped.
    """
    department_ids = {d["name"]: await ensure_department(session, d) for d in DEPARTMENTS}

    doctor_rows = []
    for data in DOCTORS:
        user_id = await ensure_user(session, data["name"], data["email"], UserRole.DOCTOR)
        department_id = department_ids[data["department"]]
        doctor_id = await ensure_doctor(session, user_id, department_id, data)
        doctor_rows.append((doctor_id, department_id))

    patient_id = await ensure_user(
        session, DEMO_PATIENT["name"], DEMO_PATIENT["email"], UserRole.PATIENT
    )
    await session.commit()

    service = BookingService(session)
    caller = Caller(account_id=patient_id, role=UserRole.PATIENT)

    booked = 0
    for doctor_id, department_id in doctor_rows:
        try:
            view = await service.create_appointment(
                caller,
                doctor_id,
                department_id,
                starts_at,
                reason="Demo booking",
                source=AppointmentSource.SEED,
            )
        except SlotTakenException:
            logger.info("seed_slot_already_booked", doctor_id=doctor_id)
            continue
        booked += 1
        logger.info("appointment_seeded", appointment_id=view.id, doctor_id=doctor_id)

    return booked


async def seed() -> None:
    async with AsyncSessionLocal() as session:
        booked = await seed_data(session)

    await engine.dispose()
    print(f"✓ Demo data seeded, {booked} new appointment(s) (password: {DEMO_PASSWORD})")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed())

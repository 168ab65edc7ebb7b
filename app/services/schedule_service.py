"""Read-side projections of appointments."""

from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.slots import as_utc
from app.models.appointments import appointments
from app.models.departments import departments
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.appointments import (
    AppointmentView,
    DepartmentRef,
    DoctorRef,
    PatientRef,
)
from app.services.directory_service import UNKNOWN_NAME, DirectoryService
from app.services.lookups import load_by_ids

logger = structlog.get_logger(__name__)

UNKNOWN_DEPARTMENT = "Unknown department"


class ScheduleService:
    """
    Builds doctor schedules and patient appointment lists.

    Foreign references are resolved batch-then-map: one query per referenced
    table regardless of how many appointments are projected. A dangling
    reference degrades to a placeholder label instead of failing the read.
    """

    def __init__(self, db: AsyncSession, directory: DirectoryService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.directory = directory or DirectoryService(db)

    async def enrich(self, rows: Sequence[Any]) -> list[AppointmentView]:
        """
        Project appointment rows into display views.

        Args:
            rows: Appointment rows (mappings)

        Returns:
            Views in the same order as ``rows``
        """
        if not rows:
            return []

        doctor_map = await load_by_ids(
            self.db,
            doctors,
            (r["doctor_id"] for r in rows),
            doctors.c.user_id,
            doctors.c.title,
        )
        account_ids = {d["user_id"] for d in doctor_map.values()}
        account_ids.update(r["patient_id"] for r in rows)
        account_map = await load_by_ids(self.db, users, account_ids, users.c.name)
        department_map = await load_by_ids(
            self.db,
            departments,
            (r["department_id"] for r in rows),
            departments.c.name,
            departments.c.is_active,
        )

        def account_name(account_id: int | None) -> str:
            account = account_map.get(account_id) if account_id is not None else None
            return (account or {}).get("name") or UNKNOWN_NAME

        views = []
        for row in rows:
            doctor = doctor_map.get(row["doctor_id"])
            department = department_map.get(row["department_id"])
            if department and not department["is_active"]:
                department = None

            views.append(
                AppointmentView(
                    id=row["id"],
                    doctor=DoctorRef(
                        id=row["doctor_id"],
                        name=account_name(doctor["user_id"]) if doctor else UNKNOWN_NAME,
                        title=doctor["title"] if doctor else None,
                    ),
                    patient=PatientRef(id=row["patient_id"], name=account_name(row["patient_id"])),
                    department=DepartmentRef(
                        id=row["department_id"],
                        name=department["name"] if department else UNKNOWN_DEPARTMENT,
                    ),
                    starts_at=as_utc(row["starts_at"]),
                    ends_at=as_utc(row["ends_at"]),
                    status=row["status"],
                    reason=row["reason"],
                    cancellation_note=row["cancellation_note"],
                    cancelled_by=row["cancelled_by"],
                    source=row["source"],
                    created_at=as_utc(row["created_at"]),
                    updated_at=as_utc(row["updated_at"]),
                )
            )

        return views

    async def get_doctor_schedule(self, doctor_account_id: int) -> list[AppointmentView]:
        """
        Get every appointment of the doctor owned by an account.

        Args:
            doctor_account_id: Account ID of the doctor

        Returns:
            Enriched appointments ordered by start

        Raises:
            NotFoundException: If the account has no active doctor profile
        """
        doctor = await self.directory.get_doctor_by_user_id(doctor_account_id)
        if not doctor:
            raise NotFoundException("Doctor profile not found")

        stmt = (
            select(appointments)
            .where(appointments.c.doctor_id == doctor["id"])
            .order_by(appointments.c.starts_at.asc(), appointments.c.id.asc())
        )
        result = await self.db.execute(stmt)
        rows = result.mappings().all()

        logger.debug("doctor_schedule_loaded", doctor_id=doctor["id"], count=len(rows))
        return await self.enrich(rows)

    async def get_patient_appointments(self, patient_account_id: int) -> list[AppointmentView]:
        """Get every appointment booked by a patient, ordered by start."""
        stmt = (
            select(appointments)
            .where(appointments.c.patient_id == patient_account_id)
            .order_by(appointments.c.starts_at.asc(), appointments.c.id.asc())
        )
        result = await self.db.execute(stmt)

        return await self.enrich(result.mappings().all())


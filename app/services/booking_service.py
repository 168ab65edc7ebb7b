"""Appointment booking."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import and_, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SlotTakenException
from app.core.slots import as_utc, compute_ends_at
from app.models.appointments import SLOT_UNIQUE_CONSTRAINT, appointments
from app.schemas.appointments import (
    DEFAULT_REASON,
    AppointmentSource,
    AppointmentStatus,
    AppointmentView,
)
from app.schemas.users import Caller
from app.services.directory_service import DirectoryService
from app.services.schedule_service import ScheduleService

logger = structlog.get_logger(__name__)


def is_slot_conflict(error: IntegrityError) -> bool:
    """Check whether an integrity error comes from the (doctor, start) constraint."""
    message = str(error.orig) if error.orig is not None else str(error)
    if SLOT_UNIQUE_CONSTRAINT in message:
        return True
    # SQLite reports the columns instead of the constraint name
    return "appointments.doctor_id" in message and "appointments.starts_at" in message


class BookingService:
    """
    Books doctor slots.

    The pre-check gives a fast rejection for the common case; the unique
    constraint on (doctor_id, starts_at) decides races between concurrent
    bookings, and its violation is reported as ``SlotTakenException`` too.
    """

    def __init__(
        self,
        db: AsyncSession,
        directory: DirectoryService | None = None,
        projector: ScheduleService | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.directory = directory or DirectoryService(db)
        self.projector = projector or ScheduleService(db, self.directory)

    async def find_appointment_at(self, doctor_id: int, starts_at: datetime) -> int | None:
        """Return the id of the doctor's appointment starting at ``starts_at``, if any."""
        stmt = select(appointments.c.id).where(
            and_(
                appointments.c.doctor_id == doctor_id,
                appointments.c.starts_at == starts_at,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_appointment(
        self,
        caller: Caller,
        doctor_id: int,
        department_id: int,
        starts_at: datetime,
        reason: str | None = None,
        source: AppointmentSource = AppointmentSource.MOBILE,
    ) -> AppointmentView:
        """
        Book a slot for the calling patient.

        Args:
            caller: Authenticated caller; becomes the appointment's patient
            doctor_id: Doctor profile ID
            department_id: Department the doctor must currently belong to
            starts_at: Slot start instant
            reason: Optional complaint text
            source: Origin tag stored on the appointment

        Returns:
            Enriched appointment in PENDING status

        Raises:
            DoctorNotAvailableException: If the doctor cannot be booked in the department
            SlotTakenException: If the doctor already has an appointment at ``starts_at``
        """
        doctor = await self.directory.find_bookable_doctor(doctor_id, department_id)

        starts_at = as_utc(starts_at)
        ends_at = compute_ends_at(starts_at)

        if await self.find_appointment_at(doctor["id"], starts_at) is not None:
            logger.info("slot_taken", doctor_id=doctor["id"], starts_at=starts_at.isoformat())
            raise SlotTakenException()

        now = datetime.now(UTC)
        values = {
            "doctor_id": doctor["id"],
            "patient_id": caller.account_id,
            "department_id": doctor["department_id"],
            "starts_at": starts_at,
            "ends_at": ends_at,
            "status": AppointmentStatus.PENDING.value,
            "reason": (reason or "").strip() or DEFAULT_REASON,
            "source": source.value,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            row = result.mappings().one()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if is_slot_conflict(e):
                logger.info(
                    "slot_taken",
                    doctor_id=doctor["id"],
                    starts_at=starts_at.isoformat(),
                    detected_by="constraint",
                )
                raise SlotTakenException() from e
            raise

        logger.info(
            "appointment_created",
            appointment_id=row["id"],
            doctor_id=row["doctor_id"],
            patient_id=row["patient_id"],
            starts_at=starts_at.isoformat(),
            source=source.value,
        )

        (view,) = await self.projector.enrich([row])
        return view

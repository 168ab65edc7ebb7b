"""Appointment status lifecycle."""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ForbiddenException,
    InvalidCancellationReasonException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.slots import as_utc
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus, AppointmentView, CancelledBy
from app.schemas.users import Caller
from app.services.directory_service import DirectoryService
from app.services.schedule_service import ScheduleService

logger = structlog.get_logger(__name__)

MIN_CANCELLATION_NOTE_LENGTH = 3

# PENDING is the only live state; every other status is final
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.APPROVED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.APPROVED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check whether ``current -> target`` is a legal single step."""
    return target in ALLOWED_TRANSITIONS[current]


def is_valid_cancellation_note(note: str | None) -> bool:
    """A doctor's note needs at least three non-whitespace characters."""
    if not note:
        return False
    return len("".join(note.split())) >= MIN_CANCELLATION_NOTE_LENGTH


class AppointmentStatusService:
    """
    Applies role-gated status transitions.

    Ownership is checked before anything else on every transition, then the
    current state. The write itself only matches rows still PENDING, so the
    loser of two concurrent transitions fails instead of overwriting.
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

    async def get_appointment(self, appointment_id: int) -> dict[str, Any]:
        """
        Load an appointment row.

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Appointment not found")

        return dict(row)

    async def _check_owner(
        self,
        caller: Caller,
        appointment: dict[str, Any],
        target: AppointmentStatus,
    ) -> CancelledBy:
        """
        Return which side the caller acts for, or raise Forbidden.

        The side follows the caller's relation to the appointment, not the
        account role: any account that booked it is its patient.
        """
        if caller.is_doctor:
            doctor = await self.directory.get_doctor_by_user_id(
                caller.account_id, active_only=False
            )
            if doctor and doctor["id"] == appointment["doctor_id"]:
                return CancelledBy.DOCTOR

        if appointment["patient_id"] != caller.account_id:
            raise ForbiddenException("Access denied to this appointment")
        if target is not AppointmentStatus.CANCELLED:
            raise ForbiddenException("Patients can only cancel appointments")
        return CancelledBy.PATIENT

    @staticmethod
    def _check_state(appointment: dict[str, Any], target: AppointmentStatus) -> None:
        """Raise InvalidTransition unless ``target`` is reachable from the current status."""
        current = AppointmentStatus(appointment["status"])
        if can_transition(current, target):
            return

        if current is not AppointmentStatus.PENDING:
            if appointment["cancelled_by"] == CancelledBy.PATIENT.value:
                raise InvalidTransitionException(
                    "This appointment was cancelled by the patient and cannot be changed"
                )
            raise InvalidTransitionException(
                f"Appointment is already finalized ({current.value})"
            )

        raise InvalidTransitionException(f"Cannot move a pending appointment to {target.value}")

    async def update_status(
        self,
        caller: Caller,
        appointment_id: int,
        target: AppointmentStatus,
        cancellation_note: str | None = None,
    ) -> AppointmentView:
        """
        Approve or cancel a pending appointment.

        Args:
            caller: Authenticated caller (owning doctor or owning patient)
            appointment_id: Appointment ID
            target: APPROVED or CANCELLED
            cancellation_note: Required for doctor cancellations

        Returns:
            Authoritative post-transition view

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller does not own the appointment
            InvalidTransitionException: If the appointment is no longer pending
            InvalidCancellationReasonException: If a doctor's note is too short
        """
        appointment = await self.get_appointment(appointment_id)
        actor = await self._check_owner(caller, appointment, target)
        self._check_state(appointment, target)

        now = datetime.now(UTC)
        values: dict[str, Any] = {"status": target.value, "updated_at": now}

        if target is AppointmentStatus.CANCELLED:
            if actor is CancelledBy.DOCTOR:
                if not is_valid_cancellation_note(cancellation_note):
                    raise InvalidCancellationReasonException()
                values["cancellation_note"] = cancellation_note.strip()  # type: ignore[union-attr]
            elif as_utc(appointment["starts_at"]) <= now:
                raise InvalidTransitionException("Only future appointments can be cancelled")
            values["cancelled_by"] = actor.value

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == AppointmentStatus.PENDING.value,
                )
            )
            .values(**values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if not row:
            await self.db.rollback()
            logger.info(
                "appointment_transition_rejected",
                appointment_id=appointment_id,
                target=target.value,
                reason="no_longer_pending",
            )
            raise InvalidTransitionException()

        await self.db.commit()

        logger.info(
            "appointment_status_changed",
            appointment_id=appointment_id,
            old_status=appointment["status"],
            new_status=target.value,
            actor=actor.value,
        )

        (view,) = await self.projector.enrich([row])
        return view

"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from app.schemas.common import CamelModel


class AppointmentStatus(str, Enum):
    """Canonical appointment status enumeration."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class AppointmentSource(str, Enum):
    """How an appointment was created."""

    MOBILE = "MOBILE"
    API = "API"
    SEED = "SEED"


class CancelledBy(str, Enum):
    """Which side cancelled an appointment."""

    DOCTOR = "doctor"
    PATIENT = "patient"


# Client vocabulary accepted on status updates
REQUESTED_STATUS_MAP: dict[str, AppointmentStatus] = {
    "upcoming": AppointmentStatus.APPROVED,
    "approved": AppointmentStatus.APPROVED,
    "cancelled": AppointmentStatus.CANCELLED,
}

DEFAULT_REASON = "General consultation"


class AppointmentCreate(CamelModel):
    """Schema for booking a slot."""

    doctor_id: int = Field(..., gt=0)
    department_id: int = Field(..., gt=0)
    starts_at: datetime
    reason: str | None = Field(None, max_length=500)


class AppointmentStatusUpdate(CamelModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    cancellation_reason: str | None = Field(None, max_length=1000)

    @field_validator("status", mode="before")
    @classmethod
    def map_client_status(cls, v: object) -> AppointmentStatus:
        """Map the client vocabulary onto the canonical statuses."""
        key = v.value if isinstance(v, AppointmentStatus) else str(v)
        try:
            return REQUESTED_STATUS_MAP[key.strip().lower()]
        except KeyError:
            allowed = ", ".join(sorted(REQUESTED_STATUS_MAP))
            raise ValueError(f"status must be one of: {allowed}") from None


class DoctorRef(CamelModel):
    """Doctor reference resolved for display."""

    id: int
    name: str
    title: str | None = None


class PatientRef(CamelModel):
    """Patient reference resolved for display."""

    id: int
    name: str


class DepartmentRef(CamelModel):
    """Department reference resolved for display."""

    id: int
    name: str


class AppointmentView(CamelModel):
    """Appointment enriched with doctor, patient and department names."""

    id: int
    doctor: DoctorRef
    patient: PatientRef
    department: DepartmentRef
    starts_at: datetime
    ends_at: datetime
    status: AppointmentStatus
    reason: str | None = None
    cancellation_note: str | None = None
    cancelled_by: CancelledBy | None = None
    source: AppointmentSource
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(CamelModel):
    """A patient's appointments ordered by start."""

    appointments: list[AppointmentView]


class DoctorScheduleResponse(CamelModel):
    """A doctor's appointments ordered by start."""

    schedule: list[AppointmentView]

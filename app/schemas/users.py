"""User schemas and caller identity."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.schemas.common import CamelModel


class UserRole(str, Enum):
    """Account role enumeration."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity passed explicitly into every core operation."""

    account_id: int
    role: UserRole

    @property
    def is_doctor(self) -> bool:
        """Check if the caller acts as a doctor."""
        return self.role is UserRole.DOCTOR


class UserResponse(CamelModel):
    """User schema for API responses."""

    id: int
    name: str
    email: str
    phone: str | None = None
    role: UserRole
    is_active: bool
    doctor_id: int | None = None
    created_at: datetime

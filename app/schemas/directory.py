"""Department and doctor directory schemas."""

from pydantic import Field

from app.schemas.common import CamelModel


class DepartmentResponse(CamelModel):
    """Active department as listed to patients."""

    id: int
    name: str
    code: str | None = None
    description: str | None = None
    phone: str | None = None
    location: str | None = None
    is_active: bool = True


class DepartmentListResponse(CamelModel):
    """Departments ordered by name."""

    departments: list[DepartmentResponse]


class DoctorListItem(CamelModel):
    """Bookable doctor with resolved display name."""

    id: int
    name: str
    title: str | None = None
    department_id: int | None = None


class DoctorListResponse(CamelModel):
    """Doctors ordered by resolved name."""

    doctors: list[DoctorListItem]


class DepartmentUpdate(CamelModel):
    """Admin toggle for a department."""

    is_active: bool


class DoctorProfileUpdate(CamelModel):
    """Admin update for a doctor profile."""

    is_active: bool | None = None
    department_id: int | None = Field(None, gt=0)


class DoctorProfileResponse(CamelModel):
    """Doctor profile as stored."""

    id: int
    user_id: int
    department_id: int | None = None
    title: str | None = None
    bio: str | None = None
    room: str | None = None
    room_phone: str | None = None
    is_active: bool

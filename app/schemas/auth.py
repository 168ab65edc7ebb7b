"""Authentication schemas."""

import re

from pydantic import EmailStr, Field, field_validator

from app.schemas.common import CamelModel
from app.schemas.users import UserResponse, UserRole

_NON_DIGITS = re.compile(r"\D")


def _digits_only(value: str | None) -> str | None:
    """Strip separators and truncate to the stored column width."""
    if not value:
        return None
    return _NON_DIGITS.sub("", value)[:20] or None


class RegisterRequest(CamelModel):
    """Account registration request."""

    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    phone: str | None = None
    role: UserRole = Field(default=UserRole.PATIENT, validation_alias="usertype")
    # Accepted when role is doctor
    department_id: int | None = Field(None, gt=0)
    title: str | None = Field(None, max_length=50)
    bio: str | None = Field(None, max_length=2000)
    room: str | None = Field(None, max_length=20)
    room_phone: str | None = None

    @field_validator("phone", "room_phone")
    @classmethod
    def clean_phone(cls, v: str | None) -> str | None:
        """Keep digits only."""
        return _digits_only(v)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: object) -> object:
        """Only patients and doctors may self-register."""
        if isinstance(v, str):
            v = v.strip().lower()
        if v == UserRole.ADMIN.value or v is UserRole.ADMIN:
            raise ValueError("role must be 'patient' or 'doctor'")
        return v


class LoginRequest(CamelModel):
    """Email/password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class Token(CamelModel):
    """JWT token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(CamelModel):
    """Token refresh request schema."""

    refresh_token: str


class LoginResponse(CamelModel):
    """Login response with tokens and user info."""

    user: UserResponse
    tokens: Token

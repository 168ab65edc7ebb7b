"""Database models."""

from app.models.appointments import appointments
from app.models.base import metadata
from app.models.departments import departments
from app.models.doctors import doctors
from app.models.users import users

__all__ = [
    "appointments",
    "departments",
    "doctors",
    "metadata",
    "users",
]

"""Directory of departments and bookable doctors."""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import DoctorNotAvailableException, NotFoundException
from app.core.redis_client import CacheManager
from app.models.departments import departments
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.directory import DoctorProfileUpdate
from app.services.lookups import load_by_ids

logger = structlog.get_logger(__name__)

UNKNOWN_NAME = "Unknown"

DEPARTMENT_LIST_COLUMNS = (
    departments.c.id,
    departments.c.name,
    departments.c.code,
    departments.c.description,
    departments.c.phone,
    departments.c.location,
    departments.c.is_active,
)


class DirectoryService:
    """Resolves departments and doctors for booking and display."""

    DEPARTMENTS_CACHE_KEY = "directory:departments"

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _doctors_cache_key(department_id: int) -> str:
        """Generate cache key for a department's doctor list."""
        return f"directory:doctors:{department_id}"

    def invalidate_cache(self) -> None:
        """Drop every cached directory listing."""
        if self.cache:
            self.cache.delete_pattern("directory:*")

    async def find_bookable_doctor(self, doctor_id: int, department_id: int) -> dict[str, Any]:
        """
        Resolve a doctor that can take bookings in a department.

        Args:
            doctor_id: Doctor profile ID
            department_id: Department the caller intends to book in

        Returns:
            Doctor profile row

        Raises:
            DoctorNotAvailableException: If the doctor is missing, inactive or
                assigned to another department
        """
        stmt = select(doctors).where(
            and_(
                doctors.c.id == doctor_id,
                doctors.c.is_active.is_(True),
                doctors.c.department_id == department_id,
            )
        )
        result = await self.db.execute(stmt)
        doctor = result.mappings().first()

        if not doctor:
            raise DoctorNotAvailableException()

        return dict(doctor)

    async def get_doctor_by_user_id(
        self,
        user_id: int,
        active_only: bool = True,
    ) -> dict[str, Any] | None:
        """Get the doctor profile owned by an account."""
        conditions = [doctors.c.user_id == user_id]
        if active_only:
            conditions.append(doctors.c.is_active.is_(True))

        result = await self.db.execute(select(doctors).where(and_(*conditions)))
        doctor = result.mappings().first()

        return dict(doctor) if doctor else None

    async def list_active_departments(self) -> list[dict[str, Any]]:
        """List active departments ordered by name."""
        if self.cache:
            cached = self.cache.get_json(self.DEPARTMENTS_CACHE_KEY)
            if cached is not None:
                return cached

        stmt = (
            select(*DEPARTMENT_LIST_COLUMNS)
            .where(departments.c.is_active.is_(True))
            .order_by(departments.c.name.asc())
        )
        result = await self.db.execute(stmt)
        items = [dict(row) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                self.DEPARTMENTS_CACHE_KEY, items, ttl=settings.directory_cache_ttl
            )

        return items

    async def list_active_doctors_in_department(self, department_id: int) -> list[dict[str, Any]]:
        """
        List active doctors of a department ordered by display name.

        Display names come from the owning accounts, fetched in one batch.

        Args:
            department_id: Department ID

        Returns:
            Doctors with id, name, title and department_id
        """
        cache_key = self._doctors_cache_key(department_id)
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                return cached

        stmt = select(doctors.c.id, doctors.c.user_id, doctors.c.title, doctors.c.department_id).where(
            and_(
                doctors.c.department_id == department_id,
                doctors.c.is_active.is_(True),
            )
        )
        result = await self.db.execute(stmt)
        profiles = result.mappings().all()

        owners = await load_by_ids(
            self.db, users, (p["user_id"] for p in profiles), users.c.name
        )

        items = [
            {
                "id": p["id"],
                "name": owners.get(p["user_id"], {}).get("name") or UNKNOWN_NAME,
                "title": p["title"],
                "department_id": p["department_id"],
            }
            for p in profiles
        ]
        items.sort(key=lambda d: (d["name"].casefold(), d["id"]))

        if self.cache:
            self.cache.set_json(cache_key, items, ttl=settings.directory_cache_ttl)

        return items

    async def set_department_active(self, department_id: int, is_active: bool) -> dict[str, Any]:
        """
        Toggle a department's active flag.

        Raises:
            NotFoundException: If the department does not exist
        """
        stmt = (
            update(departments)
            .where(departments.c.id == department_id)
            .values(is_active=is_active, updated_at=datetime.now(UTC))
            .returning(*DEPARTMENT_LIST_COLUMNS)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if not row:
            await self.db.rollback()
            raise NotFoundException("Department not found")

        department = dict(row)
        await self.db.commit()
        self.invalidate_cache()

        logger.info("department_updated", department_id=department_id, is_active=is_active)
        return department

    async def update_doctor_profile(
        self,
        doctor_id: int,
        data: DoctorProfileUpdate,
    ) -> dict[str, Any]:
        """
        Update a doctor's active flag and/or department assignment.

        Existing appointments keep the department captured at booking time.

        Raises:
            NotFoundException: If the doctor or the target department does not exist
        """
        update_values = data.model_dump(exclude_unset=True, exclude_none=True)

        if "department_id" in update_values:
            found = await load_by_ids(self.db, departments, [update_values["department_id"]])
            if not found:
                raise NotFoundException("Department not found")

        update_values["updated_at"] = datetime.now(UTC)

        stmt = (
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(**update_values)
            .returning(doctors)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if not row:
            await self.db.rollback()
            raise NotFoundException("Doctor not found")

        doctor = dict(row)
        await self.db.commit()
        self.invalidate_cache()

        logger.info(
            "doctor_profile_updated",
            doctor_id=doctor_id,
            fields=sorted(k for k in update_values if k != "updated_at"),
        )
        return doctor

"""User account service."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.users import users
from app.services.directory_service import DirectoryService


class UserService:
    """Service for account lookups."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_id(self, user_id: int) -> dict[str, Any] | None:
        """Get user by ID."""
        result = await self.db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        """Get user by email (case-insensitive)."""
        result = await self.db.execute(select(users).where(users.c.email == email.lower()))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_profile(self, user: dict[str, Any]) -> dict[str, Any]:
        """Public view of an account, with its doctor profile id when it has one."""
        doctor = await DirectoryService(self.db).get_doctor_by_user_id(user["id"], active_only=False)
        profile = {k: v for k, v in user.items() if k != "password_hash"}
        profile["doctor_id"] = doctor["id"] if doctor else None
        return profile

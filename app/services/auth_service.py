"""Authentication service: registration, login and JWT issuance."""

from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from app.models.departments import departments
from app.models.doctors import doctors
from app.models.users import users
from app.schemas.auth import RegisterRequest, Token
from app.schemas.users import UserRole
from app.services.directory_service import DirectoryService
from app.services.lookups import load_by_ids
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for account creation and token handling."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize auth service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager
        self.users = UserService(db)

    async def register(self, data: RegisterRequest) -> dict[str, Any]:
        """
        Create an account; doctors also get an active doctor profile.

        Args:
            data: Registration payload

        Returns:
            Created account (profile view)

        Raises:
            ConflictException: If the email is already registered
            NotFoundException: If a doctor registers into an unknown department
            ValidationException: If the name is only whitespace
        """
        name = data.name.strip()
        if not name:
            raise ValidationException("Name must not be blank")

        email = str(data.email).lower()
        if await self.users.get_user_by_email(email):
            raise ConflictException("Email already in use")

        is_doctor = data.role is UserRole.DOCTOR
        if is_doctor and data.department_id is not None:
            found = await load_by_ids(self.db, departments, [data.department_id])
            if not found:
                raise NotFoundException("Department not found")

        now = datetime.now(UTC)
        try:
            result = await self.db.execute(
                insert(users)
                .values(
                    name=name,
                    email=email,
                    password_hash=get_password_hash(data.password),
                    phone=data.phone,
                    role=data.role.value,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
                .returning(users)
            )
            user = dict(result.mappings().one())

            if is_doctor:
                await self.db.execute(
                    insert(doctors).values(
                        user_id=user["id"],
                        department_id=data.department_id,
                        title=data.title,
                        bio=data.bio,
                        room=data.room,
                        room_phone=data.room_phone,
                        is_active=True,
                        created_at=now,
                        updated_at=now,
                    )
                )

            await self.db.commit()
        except IntegrityError as e:
            # Lost a race on the unique email
            await self.db.rollback()
            raise ConflictException("Email already in use") from e

        if is_doctor:
            # New profile must show up in cached doctor listings
            DirectoryService(self.db, cache_manager=self.cache).invalidate_cache()

        logger.info("user_registered", user_id=user["id"], role=user["role"])
        return await self.users.get_profile(user)

    async def login(self, email: str, password: str) -> tuple[dict[str, Any], Token]:
        """
        Check credentials and issue a token pair.

        Raises:
            UnauthorizedException: If credentials are invalid or the account is inactive
        """
        user = await self.users.get_user_by_email(email)
        if not user or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email=email.lower())
            raise UnauthorizedException("Invalid credentials")

        if not user["is_active"]:
            raise UnauthorizedException("User account is deactivated")

        logger.info("user_logged_in", user_id=user["id"])
        return await self.users.get_profile(user), self.create_tokens(user)

    async def refresh(self, refresh_token: str) -> Token:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            UnauthorizedException: If the refresh token is invalid or its account is gone
        """
        payload = decode_refresh_token(refresh_token)
        if payload is None or not str(payload.get("sub", "")).isdigit():
            raise UnauthorizedException("Invalid refresh token")

        user = await self.users.get_user_by_id(int(payload["sub"]))
        if not user or not user["is_active"]:
            raise UnauthorizedException("Invalid refresh token")

        return self.create_tokens(user)

    @staticmethod
    def create_tokens(user: dict[str, Any]) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user: Account row

        Returns:
            Token pair (access and refresh)
        """
        claims = {"sub": str(user["id"]), "email": user["email"], "role": user["role"]}
        return Token(
            access_token=create_access_token(claims),
            refresh_token=create_refresh_token({"sub": str(user["id"])}),
        )

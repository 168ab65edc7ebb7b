"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CacheManagerDep, CurrentUser, DatabaseSession
from app.schemas.auth import LoginRequest, LoginResponse, RegisterRequest, Token, TokenRefresh
from app.schemas.users import UserResponse
from app.services.auth_service import AuthService
from app.services.user_service import UserService

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient or doctor account",
)
async def register(
    data: RegisterRequest,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> UserResponse:
    """
    Create an account.

    Registering with role `doctor` also creates an active doctor profile in
    the given department.
    """
    user = await AuthService(db, cache_manager=cache_manager).register(data)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Email/password login",
)
async def login(data: LoginRequest, db: DatabaseSession) -> LoginResponse:
    """Check credentials and return a JWT token pair."""
    user, tokens = await AuthService(db).login(str(data.email), data.password)
    return LoginResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(data: TokenRefresh, db: DatabaseSession) -> Token:
    """Exchange a refresh token for a new token pair."""
    return await AuthService(db).refresh(data.refresh_token)


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Current account",
)
async def me(current_user: CurrentUser, db: DatabaseSession) -> UserResponse:
    """Return the authenticated account."""
    profile = await UserService(db).get_profile(current_user)
    return UserResponse.model_validate(profile)

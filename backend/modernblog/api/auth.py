import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from modernblog.database import get_db
from modernblog.models.user import User
from modernblog.schemas.auth import (
    AccessTokenResponse,
    AuthResponse,
    AuthStatusResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
)
from modernblog.schemas.user import UserCreate, UserResponse
from modernblog.services.user_service import (
    InactiveUserError,
    InvalidCredentialsError,
    UserConflictError,
    UserService,
)
from modernblog.utils.auth import CurrentIdentity, OptionalIdentity, TokenManagerDep
from modernblog.utils.tokens import SigningError, TokenError, TokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_response(user: User, token_manager: TokenManager) -> AuthResponse:
    try:
        tokens = token_manager.issue_token_pair(user.id, user.username, user.email)
    except SigningError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate tokens",
        ) from None

    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    token_manager: TokenManagerDep,
) -> AuthResponse:
    user_service = UserService(db)

    try:
        user = await user_service.create(UserCreate(**data.model_dump()))
    except UserConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from None

    logger.info("Registered user %s", user.id)
    return _auth_response(user, token_manager)


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    token_manager: TokenManagerDep,
) -> AuthResponse:
    user_service = UserService(db)

    try:
        user = await user_service.authenticate(credentials.email, credentials.password)
    except (InvalidCredentialsError, InactiveUserError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        ) from None

    await user_service.update_last_login(user)
    return _auth_response(user, token_manager)


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    data: RefreshRequest,
    token_manager: TokenManagerDep,
) -> AccessTokenResponse:
    try:
        access_token = token_manager.refresh_access_token(data.refresh_token)
    except TokenError as e:
        logger.info("Refresh rejected: %s", type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        ) from None
    except SigningError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate tokens",
        ) from None

    return AccessTokenResponse(access_token=access_token)


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    identity: CurrentIdentity,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ProfileResponse:
    user = await UserService(db).get_by_id(identity.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return ProfileResponse(user=UserResponse.model_validate(user))


@router.delete("/logout", response_model=MessageResponse)
async def logout(identity: CurrentIdentity) -> MessageResponse:
    # Tokens are stateless; the client discards them and they lapse at expiry.
    logger.info("User %s logged out", identity.user_id)
    return MessageResponse(message="Logged out successfully")


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(identity: OptionalIdentity) -> AuthStatusResponse:
    if identity is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(
        authenticated=True,
        user_id=identity.user_id,
        username=identity.username,
        email=identity.email,
    )

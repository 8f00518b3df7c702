"""
Authentication API endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_db
from src.auth.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    ResetPasswordRequest,
    SignupRequest,
    UserResponse,
    VerifyResponse,
)
from src.auth.jwt import get_token_expiry_seconds
from src.auth.service import auth_service, FORGOT_PASSWORD_MESSAGE
from src.auth.dependencies import get_current_user
from src.auth.models import UserModel


router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(message: str, user: UserModel, tokens: dict) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserResponse.model_validate(user),
        token=tokens["token"],
        refresh_token=tokens["refresh_token"],
        expires_in=get_token_expiry_seconds(),
    )


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Register with full name, email and password. Returns the user and an access token."
)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user, tokens = await auth_service.signup(
        db=db,
        full_name=request.full_name,
        email=request.email,
        password=request.password,
        avatar_path=request.avatar_path,
    )
    await db.commit()
    return _auth_response("User created successfully", user, tokens)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Sign in",
    description="Authenticate with email and password."
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user, tokens = await auth_service.login(db=db, email=request.email, password=request.password)
    await db.commit()
    return _auth_response("Login successful", user, tokens)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset",
    description="Issue a single-use reset token. The response is identical whether or not the account exists."
)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_service.forgot_password(db=db, email=request.email)
    await db.commit()
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password",
    description="Set a new password using a reset token from forgot-password."
)
async def reset_password(
    request: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await auth_service.reset_password(db=db, token=request.token, new_password=request.new_password)
    await db.commit()
    return MessageResponse(message="Password reset successfully")


@router.get(
    "/profile",
    response_model=ProfileResponse,
    summary="Get current user profile",
)
async def get_profile(
    user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    profile = await auth_service.profile(db, user.id)
    return ProfileResponse(user=UserResponse.model_validate(profile))


@router.get(
    "/verify",
    response_model=VerifyResponse,
    summary="Verify access token",
    description="Succeeds while the bearer token is valid and its user exists."
)
async def verify(user: UserModel = Depends(get_current_user)) -> VerifyResponse:
    return VerifyResponse(user=UserResponse.model_validate(user))


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Sign out",
    description="Tokens are stateless; clients discard their token."
)
async def logout() -> MessageResponse:
    return MessageResponse(message="Logged out successfully")

"""
Authentication module for the Globetrotter backend.
Provides email/password accounts, JWT bearer tokens and password reset.
"""
from src.auth.models import UserModel, PasswordResetModel
from src.auth.schemas import (
    UserResponse,
    AuthResponse,
    SignupRequest,
    LoginRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
)
from src.auth.dependencies import (
    Principal,
    get_current_user,
    get_current_user_optional,
    get_principal,
    require_admin,
)
from src.auth.jwt import create_access_token, create_refresh_token, verify_token

__all__ = [
    # Models
    "UserModel",
    "PasswordResetModel",
    # Schemas
    "UserResponse",
    "AuthResponse",
    "SignupRequest",
    "LoginRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    # Dependencies
    "Principal",
    "get_current_user",
    "get_current_user_optional",
    "get_principal",
    "require_admin",
    # JWT
    "create_access_token",
    "create_refresh_token",
    "verify_token",
]

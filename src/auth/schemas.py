"""
Pydantic schemas for authentication API requests and responses.
"""
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime

from src.domain.models import UserRole


# =============================================================================
# User Responses
# =============================================================================

class UserResponse(BaseModel):
    """User data returned to client. Never includes the password hash."""
    id: int
    email: str
    full_name: str
    avatar_path: Optional[str] = None
    role: UserRole
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Returned after signup and login."""
    message: str
    user: UserResponse
    token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # Access token expiration in seconds


class ProfileResponse(BaseModel):
    user: UserResponse


class VerifyResponse(BaseModel):
    valid: bool = True
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Signup / Login
# =============================================================================
# Fields are optional here so missing values surface as MISSING_FIELDS
# rather than a generic validation error.

class SignupRequest(BaseModel):
    """Request to create an account."""
    full_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("full_name", "fullName"),
        description="User's display name",
    )
    email: Optional[str] = Field(None, description="Login email")
    password: Optional[str] = Field(None, description="Password, at least 6 characters")
    avatar_path: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("avatar_path", "avatarPath"),
        description="Relative path of an uploaded avatar image",
    )


class LoginRequest(BaseModel):
    """Request to sign in with email and password."""
    email: Optional[str] = None
    password: Optional[str] = None


# =============================================================================
# Password Reset
# =============================================================================

class ForgotPasswordRequest(BaseModel):
    """Request a single-use password reset token."""
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    """Set a new password with a reset token."""
    token: Optional[str] = Field(None, description="Reset token from the forgot-password flow")
    new_password: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("new_password", "newPassword", "password"),
    )

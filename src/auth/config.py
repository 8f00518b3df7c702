"""
Authentication configuration settings.
Loaded from environment variables via Pydantic Settings.
"""
import hashlib
from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Authentication-related settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # JWT Configuration
    jwt_secret: str = Field(
        default="CHANGE_ME_IN_PRODUCTION_USE_SECURE_RANDOM_STRING",
        validation_alias=AliasChoices("jwt_secret", "jwt_secret_key"),
        description="Secret key for signing access tokens. MUST be changed in production!"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Algorithm for JWT signing"
    )
    jwt_expires_in: str = Field(
        default="24h",
        description="Access token lifetime: plain seconds or a number suffixed with s, m, h or d"
    )
    jwt_refresh_secret: Optional[str] = Field(
        default=None,
        description="Secret key for refresh tokens. Derived from JWT_SECRET when unset."
    )
    jwt_refresh_expires_in: str = Field(
        default="7d",
        description="Refresh token lifetime"
    )

    # Passwords
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor (12 is roughly 250 ms per hash)"
    )
    min_password_length: int = Field(
        default=6,
        description="Minimum password length accepted at signup and reset"
    )
    strict_password_policy: bool = Field(
        default=False,
        description="Require 8-128 characters with upper case, lower case and a digit"
    )

    # Password reset
    password_reset_expire_minutes: int = Field(
        default=15,
        description="Reset token expiration time in minutes"
    )
    reset_token_dev_mode: bool = Field(
        default=True,
        description="If True, log reset tokens instead of mailing them (for development)"
    )

    @property
    def refresh_secret(self) -> str:
        if self.jwt_refresh_secret:
            return self.jwt_refresh_secret
        return hashlib.sha256(f"refresh:{self.jwt_secret}".encode()).hexdigest()


# Global auth settings instance
auth_settings = AuthSettings()

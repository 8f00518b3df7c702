"""
Authentication service - business logic for user authentication.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from src.auth.config import auth_settings
from src.auth.jwt import (
    create_access_token,
    create_refresh_token,
    generate_reset_token,
    hash_token,
)
from src.auth.models import PasswordResetModel, UserModel
from src.auth.passwords import (
    hash_password_async,
    validate_password,
    verify_password_async,
)
from src.domain.errors import (
    InvalidCredentials,
    InvalidEmail,
    InvalidResetToken,
    MissingFields,
    UserNotFound,
)
from src.repositories import users as users_repo


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent"


def validate_email(email: str) -> None:
    if not EMAIL_RE.match(email or ""):
        raise InvalidEmail()


def _require(**fields: Any) -> None:
    missing = [name for name, value in fields.items() if value is None or (isinstance(value, str) and not value.strip())]
    if missing:
        raise MissingFields(
            f"Missing required fields: {', '.join(missing)}",
            details=[{"field": name, "message": "This field is required", "value": None} for name in missing],
        )


class AuthService:
    """Service class for authentication operations."""

    def issue_tokens(self, user: UserModel) -> Dict[str, str]:
        return {
            "token": create_access_token(user.id, user.email),
            "refresh_token": create_refresh_token(user.id),
        }

    async def signup(
        self,
        db: AsyncSession,
        full_name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        avatar_path: Optional[str] = None,
    ) -> Tuple[UserModel, Dict[str, str]]:
        """
        Register a new account.

        Args:
            db: Database session
            full_name: Display name
            email: Login email (case-insensitive)
            password: Plain-text password, hashed before storage
            avatar_path: Optional relative path of an uploaded avatar

        Returns:
            The created user and its tokens

        Raises:
            MissingFields, InvalidEmail, InvalidPassword, EmailExists
        """
        _require(full_name=full_name, email=email, password=password)
        email = email.strip().lower()
        validate_email(email)
        validate_password(password)

        password_hash = await hash_password_async(password)
        user = await users_repo.create(
            db,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar_path=avatar_path,
        )
        logger.info(f"User {user.id} signed up")
        return user, self.issue_tokens(user)

    async def login(
        self,
        db: AsyncSession,
        email: Optional[str],
        password: Optional[str],
    ) -> Tuple[UserModel, Dict[str, str]]:
        """
        Authenticate with email and password.

        An unknown email and a wrong password fail identically.

        Raises:
            MissingFields, InvalidCredentials
        """
        _require(email=email, password=password)

        user = await users_repo.find_by_email(db, email)
        if not user or not await verify_password_async(password, user.password_hash):
            raise InvalidCredentials()

        await users_repo.touch_last_login(db, user)
        return user, self.issue_tokens(user)

    async def profile(self, db: AsyncSession, user_id: int) -> UserModel:
        user = await users_repo.find_by_id(db, user_id)
        if not user:
            raise UserNotFound()
        return user

    async def forgot_password(self, db: AsyncSession, email: Optional[str]) -> Optional[str]:
        """
        Issue a single-use password reset token.

        The caller's response must not reveal whether the account exists.
        Email delivery is out of scope; in dev mode the token is logged.

        Returns:
            The raw token, or None if no account uses that email
        """
        _require(email=email)
        user = await users_repo.find_by_email(db, email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return None

        token = generate_reset_token()
        db.add(PasswordResetModel(
            user_id=user.id,
            token_hash=hash_token(token),
            expires_at=datetime.utcnow() + timedelta(minutes=auth_settings.password_reset_expire_minutes),
        ))
        await db.flush()

        if auth_settings.reset_token_dev_mode:
            logger.info(f"Password reset token for user {user.id}: {token}")
        return token

    async def reset_password(
        self,
        db: AsyncSession,
        token: Optional[str],
        new_password: Optional[str],
    ) -> UserModel:
        """
        Set a new password using a reset token. The token is consumed, and
        every other outstanding token of the same user is revoked.

        Raises:
            MissingFields, InvalidPassword, InvalidResetToken
        """
        _require(token=token, new_password=new_password)
        validate_password(new_password)

        result = await db.execute(
            select(PasswordResetModel).where(PasswordResetModel.token_hash == hash_token(token))
        )
        reset = result.scalar_one_or_none()
        if not reset or not reset.is_valid:
            raise InvalidResetToken()

        user = await users_repo.find_by_id(db, reset.user_id)
        if not user:
            raise InvalidResetToken()

        await users_repo.update_password(db, user.id, await hash_password_async(new_password))
        await db.execute(
            update(PasswordResetModel)
            .where(PasswordResetModel.user_id == user.id, PasswordResetModel.used_at.is_(None))
            .values(used_at=datetime.utcnow())
        )
        logger.info(f"Password reset for user {user.id}")
        return user


# Global service instance
auth_service = AuthService()

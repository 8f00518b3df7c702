"""
FastAPI dependencies for authentication and authorization.
"""
import logging
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_db
from src.auth.models import UserModel
from src.auth.jwt import verify_token, token_user_id
from src.domain.errors import (
    DomainError,
    InsufficientPrivileges,
    MissingToken,
    UserNotFound,
)
from src.repositories import users as users_repo


logger = logging.getLogger(__name__)

# Extracts the bearer token if present; missing tokens are reported as MISSING_TOKEN
bearer_scheme = HTTPBearer(auto_error=False)


async def authenticate_token(db: AsyncSession, token: Optional[str]) -> UserModel:
    """
    Resolve a bearer token to a user.

    Checks, in order: a token is present, it verifies as an access token,
    and the user it names still exists.

    Raises:
        MissingToken, InvalidToken, TokenExpired, UserNotFound (401)
    """
    if not token:
        raise MissingToken()

    payload = verify_token(token, expected_type="access")
    user = await users_repo.find_by_id(db, token_user_id(payload))
    if not user:
        raise UserNotFound("User not found", status_code=401)
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """
    Get the current authenticated user. Raises 401 if not authenticated.

    Use this for endpoints that require authentication.
    """
    return await authenticate_token(db, credentials.credentials if credentials else None)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[UserModel]:
    """
    Get the current authenticated user if a valid token is provided.
    Returns None if no token or invalid token.

    Use this for public endpoints that behave slightly differently for signed-in callers.
    """
    if not credentials:
        return None
    try:
        return await authenticate_token(db, credentials.credentials)
    except DomainError as e:
        logger.debug(f"Ignoring unusable token on public endpoint: {e.code}")
        return None


async def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    """
    Get the current user and require the admin role. Raises 403 otherwise.
    """
    if not user.is_admin:
        raise InsufficientPrivileges()
    return user


class Principal:
    """
    Caller identity: anonymous, a regular user, or an admin.
    """
    def __init__(self, user: Optional[UserModel] = None):
        self.user = user

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    @property
    def kind(self) -> str:
        if self.is_admin:
            return "admin"
        return "user" if self.is_authenticated else "anonymous"


async def get_principal(
    user: Optional[UserModel] = Depends(get_current_user_optional),
) -> Principal:
    return Principal(user=user)


def check_trip_ownership(trip_user_id: int, user: UserModel) -> bool:
    """
    Check if the user may act on a trip owned by ``trip_user_id``:
    the owner or an admin.
    """
    return trip_user_id == user.id or user.is_admin

"""
JWT token utilities for creating and verifying access/refresh tokens.
"""
import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import jwt

from src.auth.config import auth_settings
from src.domain.errors import InvalidToken, TokenExpired


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> timedelta:
    """
    Parse a lifetime such as "24h", "7d", "30m" or "3600" into a timedelta.
    """
    match = _DURATION_RE.match(str(value).lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit])


def create_access_token(
    user_id: int,
    email: str,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[Dict[str, Any]] = None
) -> str:
    """
    Create an access token for API authentication.

    Args:
        user_id: The user's id, stored as the ``sub`` claim
        email: The user's email
        expires_delta: Lifetime override; defaults to JWT_EXPIRES_IN
        additional_claims: Optional additional claims to include in token

    Returns:
        Encoded JWT access token string
    """
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta if expires_delta is not None else parse_duration(auth_settings.jwt_expires_in))

    payload = {
        "sub": str(user_id),
        "email": email,
        "type": "access",
        "iat": now,
        "exp": expires,
    }

    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(
        payload,
        auth_settings.jwt_secret,
        algorithm=auth_settings.jwt_algorithm
    )


def create_refresh_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a long-lived refresh token.

    Refresh tokens are signed with a separate secret and carry ``type=refresh``,
    so the access path never accepts them.
    """
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta if expires_delta is not None else parse_duration(auth_settings.jwt_refresh_expires_in))

    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "iat": now,
        "exp": expires,
    }

    return jwt.encode(
        payload,
        auth_settings.refresh_secret,
        algorithm=auth_settings.jwt_algorithm
    )


def verify_token(token: str, expected_type: str = "access") -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string
        expected_type: Expected token type ("access" or "refresh")

    Returns:
        Decoded token payload

    Raises:
        TokenExpired: If token has expired
        InvalidToken: If token is invalid, tampered with or of the wrong type
    """
    secret = auth_settings.jwt_secret if expected_type == "access" else auth_settings.refresh_secret
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[auth_settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError as e:
        raise InvalidToken(f"Invalid token: {str(e)}")

    # Verify token type
    if payload.get("type") != expected_type:
        raise InvalidToken(f"Expected {expected_type} token, got {payload.get('type')}")

    return payload


def token_user_id(payload: Dict[str, Any]) -> int:
    """Extract the user id from the ``sub`` claim."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidToken("Token subject is not a user id")


def generate_reset_token() -> str:
    """Generate an unguessable single-use token for password resets."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """
    Create a hash of a token for storage (used for reset tokens).
    We don't store raw tokens in the database.

    Args:
        token: The token string to hash

    Returns:
        Hashed token string
    """
    return hashlib.sha256(token.encode()).hexdigest()


def get_token_expiry_seconds() -> int:
    """Get access token expiration time in seconds."""
    return int(parse_duration(auth_settings.jwt_expires_in).total_seconds())

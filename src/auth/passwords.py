"""
Password hashing and password policy.
"""
import re
from typing import Optional

import bcrypt
from starlette.concurrency import run_in_threadpool

from src.auth.config import auth_settings
from src.domain.errors import InvalidPassword


# bcrypt only looks at the first 72 bytes and newer releases reject longer input
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with a fresh per-password salt."""
    salt = bcrypt.gensalt(rounds=rounds or auth_settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash (constant-time)."""
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


async def hash_password_async(password: str) -> str:
    """Hash off the event loop; a hash costs hundreds of milliseconds."""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


def validate_password(password: Optional[str]) -> None:
    """
    Enforce the password policy.

    The baseline is a minimum length; STRICT_PASSWORD_POLICY adds a
    length cap and requires upper case, lower case and a digit.

    Raises:
        InvalidPassword: If the password does not satisfy the policy
    """
    password = password or ""
    if len(password) < auth_settings.min_password_length:
        raise InvalidPassword(
            f"Password must be at least {auth_settings.min_password_length} characters long"
        )

    if not auth_settings.strict_password_policy:
        return

    if not 8 <= len(password) <= 128:
        raise InvalidPassword("Password must be between 8 and 128 characters")
    if not (re.search(r"[a-z]", password) and re.search(r"[A-Z]", password) and re.search(r"\d", password)):
        raise InvalidPassword(
            "Password must contain at least one lowercase letter, one uppercase letter and one number"
        )

"""
SQLAlchemy ORM models for authentication tables.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum
from datetime import datetime

from src.infrastructure.database import Base
from src.domain.models import UserRole, enum_values


class UserModel(Base):
    """
    User account model.
    Email is stored lower-cased, so the unique index is case-insensitive in effect.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar_path = Column(String(500), nullable=True)
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=enum_values),
        nullable=False,
        default=UserRole.USER,
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class PasswordResetModel(Base):
    """
    Single-use password reset token.
    Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    token_hash = Column(String(64), nullable=False, unique=True)

    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_valid(self) -> bool:
        """Check if the token is unused and not expired."""
        return self.used_at is None and self.expires_at > datetime.utcnow()

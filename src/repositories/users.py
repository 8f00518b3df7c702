"""
Users repository: the single code path that reads or writes user rows.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete as sa_delete, func, or_, select, update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.models import UserModel
from src.domain.errors import EmailExists, InvalidInput, UserNotFound
from src.domain.models import UserRole
from src.infrastructure.models import TripModel
from src.repositories.common import (
    clamp_limit,
    contains_ci,
    count_by_day,
    count_by_month,
    days_ago,
    model_to_dict,
    months_ago,
    order_clause,
    page_offset,
    pagination,
)


ADMIN_UPDATABLE_FIELDS = {"full_name", "email", "role"}

ADMIN_SORT_COLUMNS = {
    "created_at": UserModel.created_at,
    "full_name": UserModel.full_name,
    "email": UserModel.email,
    "last_login": UserModel.last_login,
}


def public_user(user: UserModel) -> Dict[str, Any]:
    """User row without the password hash."""
    return model_to_dict(user, exclude=("password_hash",))


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_by_id(db: AsyncSession, user_id: int) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    return result.scalar_one_or_none()


async def find_by_email(db: AsyncSession, email: str) -> Optional[UserModel]:
    result = await db.execute(
        select(UserModel).where(UserModel.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def create(
    db: AsyncSession,
    email: str,
    full_name: str,
    password_hash: str,
    avatar_path: Optional[str] = None,
    role: UserRole = UserRole.USER,
) -> UserModel:
    """
    Insert a user.

    Raises:
        EmailExists: If the email is already registered
    """
    if await find_by_email(db, email):
        raise EmailExists()

    user = UserModel(
        email=normalize_email(email),
        full_name=full_name.strip(),
        password_hash=password_hash,
        avatar_path=avatar_path,
        role=role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        raise EmailExists()
    return user


async def update_password(db: AsyncSession, user_id: int, password_hash: str) -> None:
    await db.execute(
        sa_update(UserModel)
        .where(UserModel.id == user_id)
        .values(password_hash=password_hash, updated_at=datetime.utcnow())
    )


async def update_avatar(db: AsyncSession, user_id: int, avatar_path: Optional[str]) -> None:
    await db.execute(
        sa_update(UserModel)
        .where(UserModel.id == user_id)
        .values(avatar_path=avatar_path, updated_at=datetime.utcnow())
    )


async def touch_last_login(db: AsyncSession, user: UserModel) -> None:
    user.last_login = datetime.utcnow()
    await db.flush()


async def admin_update(db: AsyncSession, user_id: int, fields: Dict[str, Any]) -> UserModel:
    """
    Update the admin-editable fields of a user.

    Raises:
        UserNotFound: If the user does not exist
        InvalidInput: If no editable field was supplied
        EmailExists: If the new email belongs to another account
    """
    user = await find_by_id(db, user_id)
    if not user:
        raise UserNotFound()

    values = {key: value for key, value in fields.items() if key in ADMIN_UPDATABLE_FIELDS and value is not None}
    if not values:
        raise InvalidInput("No valid fields to update")

    if "email" in values:
        values["email"] = normalize_email(values["email"])
        existing = await find_by_email(db, values["email"])
        if existing and existing.id != user_id:
            raise EmailExists()
    if "role" in values:
        values["role"] = UserRole(values["role"])

    for key, value in values.items():
        setattr(user, key, value)
    try:
        await db.flush()
    except IntegrityError:
        raise EmailExists()
    return user


async def delete(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(sa_delete(UserModel).where(UserModel.id == user_id))
    return result.rowcount > 0


# =============================================================================
# Analytics
# =============================================================================

async def total_count(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(UserModel)) or 0


async def active_count(db: AsyncSession, days: int = 30) -> int:
    """Users who logged in within the last ``days`` days."""
    return await db.scalar(
        select(func.count()).select_from(UserModel).where(UserModel.last_login >= days_ago(days))
    ) or 0


async def new_count(db: AsyncSession, days: int = 30) -> int:
    return await db.scalar(
        select(func.count()).select_from(UserModel).where(UserModel.created_at >= days_ago(days))
    ) or 0


async def admin_count(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(UserModel).where(UserModel.role == UserRole.ADMIN)
    ) or 0


async def growth_by_month(db: AsyncSession, months: int = 12) -> List[Dict[str, Any]]:
    """Signups per month over the last ``months`` months, current month included."""
    result = await db.execute(
        select(UserModel.created_at).where(UserModel.created_at >= months_ago(months - 1))
    )
    return count_by_month(result.scalars().all())


async def signups_by_day(db: AsyncSession, days: int = 30) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(UserModel.created_at).where(UserModel.created_at >= days_ago(days))
    )
    return count_by_day(result.scalars().all())


async def logins_by_day(db: AsyncSession, days: int = 30) -> List[Dict[str, Any]]:
    """Most recent login per user, bucketed by day."""
    result = await db.execute(
        select(UserModel.last_login).where(UserModel.last_login >= days_ago(days))
    )
    return count_by_day(result.scalars().all())


async def paginated_admin_list(
    db: AsyncSession,
    search: Optional[str] = None,
    role: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 20,
) -> Dict[str, Any]:
    """
    Admin user listing with search over name/email, role filter and an
    allow-listed sort column. Each user carries its trip count.
    """
    limit = clamp_limit(limit)
    order = order_clause(sort_by, sort_order, ADMIN_SORT_COLUMNS, default="created_at")

    conditions = []
    if search:
        conditions.append(or_(contains_ci(UserModel.full_name, search), contains_ci(UserModel.email, search)))
    if role:
        try:
            conditions.append(UserModel.role == UserRole(role))
        except ValueError:
            raise InvalidInput(f"Unknown role '{role}'")

    trip_counts = (
        select(TripModel.user_id, func.count(TripModel.id).label("trip_count"))
        .group_by(TripModel.user_id)
        .subquery()
    )

    total = await db.scalar(select(func.count()).select_from(UserModel).where(*conditions)) or 0

    result = await db.execute(
        select(UserModel, func.coalesce(trip_counts.c.trip_count, 0))
        .outerjoin(trip_counts, trip_counts.c.user_id == UserModel.id)
        .where(*conditions)
        .order_by(order, UserModel.id)
        .limit(limit)
        .offset(page_offset(page, limit))
    )

    users = []
    for user, trip_count in result.all():
        row = public_user(user)
        row["trip_count"] = trip_count
        users.append(row)

    return {"users": users, "pagination": pagination(total, page, limit)}


async def recent(db: AsyncSession, limit: int = 5) -> List[UserModel]:
    result = await db.execute(
        select(UserModel).order_by(UserModel.created_at.desc(), UserModel.id.desc()).limit(limit)
    )
    return list(result.scalars().all())

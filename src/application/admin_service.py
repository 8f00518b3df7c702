"""
Admin service - dashboards, analytics and management of users, trips and
the catalog. Callers are expected to have passed ``require_admin``.
"""
import logging
import re
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.models import UserModel
from src.config import settings
from src.domain.errors import (
    InvalidInput,
    SelfDelete,
    SelfDemote,
    TripNotFound,
    UserNotFound,
)
from src.domain.models import UserRole
from src.infrastructure.events import EventBus, get_event_bus
from src.logging_config import recent_logs
from src.repositories import activities as activities_repo
from src.repositories import cities as cities_repo
from src.repositories import trips as trips_repo
from src.repositories import users as users_repo
from src.repositories.common import model_to_dict


logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

DASHBOARD_LIST_SIZE = 10

_PERIOD_RE = re.compile(r"^\s*(\d+)\s*([dwmy])\s*$", re.IGNORECASE)
_PERIOD_UNIT_DAYS = {"d": 1, "w": 7, "m": 30, "y": 365}


def period_days(period: Optional[str], default: int = 30) -> int:
    """
    Convert an analytics window such as ``7d``, ``4w``, ``3m`` or ``1y`` to days.

    Raises:
        InvalidInput: If the period cannot be parsed
    """
    if not period:
        return default
    match = _PERIOD_RE.match(period)
    if not match or int(match.group(1)) <= 0:
        raise InvalidInput(
            f"Invalid period '{period}'",
            details=[{"field": "period", "message": "Use a number followed by d, w, m or y", "value": period}],
        )
    return int(match.group(1)) * _PERIOD_UNIT_DAYS[match.group(2).lower()]


def uptime_seconds() -> float:
    return round(time.monotonic() - STARTED_AT, 1)


class AdminService:
    """Service class for admin operations."""

    def __init__(self, events: EventBus):
        self.events = events

    # =========================================================================
    # Dashboard
    # =========================================================================

    async def dashboard(self, db: AsyncSession) -> Dict[str, Any]:
        """
        Build the admin dashboard.

        Each section is computed on its own. A section that fails is logged
        and reported as None; the rest of the dashboard is still returned.
        """
        sections: Dict[str, Callable[[AsyncSession], Awaitable[Any]]] = {
            "user_stats": self.user_stats,
            "trip_stats": self.trip_stats,
            "popular_cities": self.popular_cities,
            "popular_activities": self.popular_activities,
            "recent_users": self.recent_users,
            "recent_trips": self.recent_trips,
            "system_health": self.system_health,
        }

        analytics: Dict[str, Any] = {}
        for name, compute in sections.items():
            try:
                analytics[name] = await compute(db)
            except Exception:
                logger.exception(f"Dashboard section {name} failed")
                await db.rollback()
                analytics[name] = None
        return analytics

    async def user_stats(self, db: AsyncSession) -> Dict[str, Any]:
        return {
            "total_users": await users_repo.total_count(db),
            "active_users": await users_repo.active_count(db, 30),
            "new_users_this_month": await users_repo.new_count(db, 30),
            "admin_users": await users_repo.admin_count(db),
            "user_growth": await users_repo.growth_by_month(db, 12),
        }

    async def trip_stats(self, db: AsyncSession) -> Dict[str, Any]:
        return {
            "total_trips": await trips_repo.total_count(db),
            "public_trips": await trips_repo.public_count(db),
            "completed_trips": await trips_repo.completed_count(db),
            "featured_trips": await trips_repo.featured_count(db),
            "trips_by_status": await trips_repo.count_by_status(db),
            "average_trip_duration": await trips_repo.average_duration(db),
            "trips_by_month": await trips_repo.trips_by_month(db, 12),
        }

    async def popular_cities(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await cities_repo.popular_with_stats(db, DASHBOARD_LIST_SIZE)

    async def popular_activities(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await activities_repo.popular_with_stats(db, DASHBOARD_LIST_SIZE)

    async def recent_users(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return [users_repo.public_user(user) for user in await users_repo.recent(db, DASHBOARD_LIST_SIZE)]

    async def recent_trips(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await trips_repo.recent(db, DASHBOARD_LIST_SIZE)

    async def system_health(self, db: AsyncSession) -> Dict[str, Any]:
        """Uptime, database reachability and version."""
        try:
            await db.execute(text("SELECT 1"))
            database = "connected"
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            await db.rollback()
            database = "unavailable"

        return {
            "status": "healthy" if database == "connected" else "degraded",
            "database": database,
            "uptime": uptime_seconds(),
            "environment": settings.environment,
            "version": settings.app_version,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

    def logs(self, limit: int = 100, level: Optional[str] = None) -> List[Dict[str, Any]]:
        return recent_logs.recent(limit=limit, level=level)

    # =========================================================================
    # Users
    # =========================================================================

    async def list_users(self, db: AsyncSession, **filters: Any) -> Dict[str, Any]:
        return await users_repo.paginated_admin_list(db, **filters)

    async def update_user(
        self,
        db: AsyncSession,
        admin: UserModel,
        user_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Update another user's name, email or role.

        Raises:
            SelfDemote: If an admin tries to remove their own admin role
            UserNotFound, InvalidInput, EmailExists
        """
        role = data.get("role")
        if user_id == admin.id and role is not None and UserRole(role) != UserRole.ADMIN:
            raise SelfDemote("Cannot remove your own admin privileges")

        user = await users_repo.admin_update(db, user_id, data)
        await db.commit()

        logger.info(f"Admin {admin.id} updated user {user_id}")
        return users_repo.public_user(user)

    async def delete_user(self, db: AsyncSession, admin: UserModel, user_id: int) -> None:
        """
        Delete a user and, through the cascade, everything they own.

        Raises:
            SelfDelete: If an admin tries to delete their own account
            UserNotFound: If the user does not exist
        """
        if user_id == admin.id:
            raise SelfDelete("Cannot delete your own account")

        if not await users_repo.delete(db, user_id):
            raise UserNotFound()
        await db.commit()

        logger.info(f"Admin {admin.id} deleted user {user_id}")

    # =========================================================================
    # Trips
    # =========================================================================

    async def list_trips(self, db: AsyncSession, **filters: Any) -> Dict[str, Any]:
        return await trips_repo.admin_list(db, **filters)

    async def trip_analytics(self, db: AsyncSession, period: Optional[str] = None) -> Dict[str, Any]:
        days = period_days(period)
        return {
            "period_days": days,
            "trip_creations": await trips_repo.creations_by_day(db, days),
            "budget_stats": await trips_repo.budget_stats(db, days),
            "popular_destinations": await trips_repo.popular_destinations(db, days, DASHBOARD_LIST_SIZE),
            "trips_by_status": await trips_repo.count_by_status(db),
        }

    async def feature_trip(self, db: AsyncSession, trip_id: int, featured: bool) -> Dict[str, Any]:
        trip = await trips_repo.get(db, trip_id)
        if not trip:
            raise TripNotFound()

        trip = await trips_repo.update(db, trip, {"featured": bool(featured)})
        await db.commit()

        payload = model_to_dict(trip)
        await self.events.trip_update(trip.user_id, "updated", trip=payload)
        return payload

    # =========================================================================
    # Analytics & catalog
    # =========================================================================

    async def user_analytics(self, db: AsyncSession, period: Optional[str] = None) -> Dict[str, Any]:
        days = period_days(period)
        return {
            "period_days": days,
            "signups": await users_repo.signups_by_day(db, days),
            "logins": await users_repo.logins_by_day(db, days),
            "active_users": await users_repo.active_count(db, days),
            "new_users": await users_repo.new_count(db, days),
        }

    async def list_cities(self, db: AsyncSession, **filters: Any) -> Dict[str, Any]:
        return await cities_repo.list_all_with_stats(db, **filters)

    async def list_activities(self, db: AsyncSession, **filters: Any) -> Dict[str, Any]:
        return await activities_repo.list_all(db, **filters)


def get_admin_service(events: EventBus = Depends(get_event_bus)) -> AdminService:
    return AdminService(events)

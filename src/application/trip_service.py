"""
Trip service - ownership, date and status rules for trips, sharing, and
trip-level rollups.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import check_trip_ownership
from src.auth.models import UserModel
from src.domain.errors import (
    Forbidden,
    InvalidDates,
    InvalidStatusTransition,
    MissingFields,
    TripNotFound,
)
from src.domain.models import TripStatus, can_transition
from src.infrastructure.events import EventBus, get_event_bus
from src.infrastructure.models import TripModel
from src.repositories import cities as cities_repo
from src.repositories import itinerary as itinerary_repo
from src.repositories import trips as trips_repo
from src.repositories.common import model_to_dict


logger = logging.getLogger(__name__)


def validate_trip_dates(start_date: Optional[date], end_date: Optional[date]) -> None:
    """End date must be strictly after start date when both are set."""
    if start_date is not None and end_date is not None and end_date <= start_date:
        raise InvalidDates(
            "End date must be after start date",
            details=[{"field": "end_date", "message": "Must be after start_date", "value": end_date}],
        )


async def get_accessible_trip(db: AsyncSession, user: UserModel, trip_id: int) -> TripModel:
    """
    Load a trip the user may act on (owner or admin).

    Raises:
        TripNotFound: If the trip does not exist
        Forbidden: If the user neither owns the trip nor is an admin
    """
    trip = await trips_repo.get(db, trip_id)
    if not trip:
        raise TripNotFound()
    if not check_trip_ownership(trip.user_id, user):
        logger.info(f"User {user.id} denied access to trip {trip_id}")
        raise Forbidden("Access denied")
    return trip


class TripService:
    """Service class for trip operations."""

    def __init__(self, events: EventBus):
        self.events = events

    async def list_for_user(
        self,
        db: AsyncSession,
        user: UserModel,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        return await trips_repo.find_by_user_id(db, user.id, status=status, limit=limit, offset=offset)

    async def count_for_user(self, db: AsyncSession, user: UserModel, status: Optional[str] = None) -> int:
        return await trips_repo.count_by_user_id(db, user.id, status=status)

    async def create(self, db: AsyncSession, user: UserModel, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a trip owned by ``user``.

        Raises:
            MissingFields: If title is missing
            InvalidDates: If end_date is not after start_date
        """
        if not (data.get("title") or "").strip():
            raise MissingFields("Title is required", details=[{"field": "title", "message": "This field is required", "value": None}])
        validate_trip_dates(data.get("start_date"), data.get("end_date"))

        trip = await trips_repo.create(db, user.id, data)
        await db.commit()

        payload = model_to_dict(trip)
        logger.info(f"Trip {trip.id} created by user {user.id}")
        await self.events.trip_update(trip.user_id, "created", trip=payload)
        return payload

    async def get(self, db: AsyncSession, user: UserModel, trip_id: int) -> Dict[str, Any]:
        """Trip with owner details, cities, stats and itinerary summary."""
        await get_accessible_trip(db, user, trip_id)

        trip = await trips_repo.find_by_id(db, trip_id)
        trip["cities"] = await cities_repo.get_for_trip(db, trip_id)
        trip["stats"] = await trips_repo.stats(db, trip_id)
        trip["summary"] = await itinerary_repo.trip_summary(db, trip_id)
        return trip

    async def update(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Update a trip.

        Dates are validated against the merged result; status changes must
        follow planning -> active -> completed, with cancelled reachable from
        either non-terminal state.

        Raises:
            InvalidDates, InvalidStatusTransition, TripNotFound, Forbidden
        """
        trip = await get_accessible_trip(db, user, trip_id)

        validate_trip_dates(
            data.get("start_date", trip.start_date),
            data.get("end_date", trip.end_date),
        )

        new_status = data.get("status")
        if new_status is not None and not can_transition(trip.status, new_status):
            raise InvalidStatusTransition(
                f"Cannot change trip status from {TripStatus(trip.status).value} to {TripStatus(new_status).value}"
            )

        # Featuring is an admin action
        if "featured" in data and not user.is_admin:
            data = {key: value for key, value in data.items() if key != "featured"}

        trip = await trips_repo.update(db, trip, data)
        await db.commit()

        payload = model_to_dict(trip)
        await self.events.trip_update(trip.user_id, "updated", trip=payload)
        return payload

    async def delete(self, db: AsyncSession, user: UserModel, trip_id: int) -> None:
        """Delete a trip together with its trip cities and itinerary items."""
        trip = await get_accessible_trip(db, user, trip_id)
        owner_id = trip.user_id

        await trips_repo.delete(db, trip_id)
        await db.commit()

        logger.info(f"Trip {trip_id} deleted by user {user.id}")
        await self.events.trip_update(owner_id, "deleted", tripId=trip_id)

    async def share(self, db: AsyncSession, user: UserModel, trip_id: int, base_url: str) -> Dict[str, str]:
        """
        Make a trip public under a fresh token.

        Returns:
            The token and the share link ``{scheme}://{host}/shared/{token}``
        """
        trip = await get_accessible_trip(db, user, trip_id)

        public_url = await trips_repo.generate_public_url(db, trip_id)
        await db.commit()

        await self.events.trip_update(trip.user_id, "updated", tripId=trip_id, isPublic=True)
        return {
            "public_url": public_url,
            "share_url": f"{base_url.rstrip('/')}/shared/{public_url}",
        }

    async def get_shared(self, db: AsyncSession, public_url: str) -> Dict[str, Any]:
        """
        Public view of a shared trip: cities, itinerary grouped by date and
        summary. Only trips that are currently public resolve.
        """
        trip = await trips_repo.find_by_public_url(db, public_url)
        if not trip:
            raise TripNotFound("Shared trip not found")

        trip_id = trip["id"]
        trip["cities"] = await cities_repo.get_for_trip(db, trip_id)
        trip["itinerary"] = await itinerary_repo.get_for_trip(db, trip_id, group_by_date=True)
        trip["summary"] = await itinerary_repo.trip_summary(db, trip_id)
        return trip

    async def stats(self, db: AsyncSession, user: UserModel, trip_id: int) -> Dict[str, Any]:
        await get_accessible_trip(db, user, trip_id)
        return {
            "stats": await trips_repo.stats(db, trip_id),
            "summary": await itinerary_repo.trip_summary(db, trip_id),
            "cost_breakdown": await itinerary_repo.cost_breakdown(db, trip_id),
        }


def get_trip_service(events: EventBus = Depends(get_event_bus)) -> TripService:
    return TripService(events)

"""
Itinerary service - item CRUD, reordering, catalog scheduling and rollups.
Every operation is checked against the owning trip.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.trip_service import get_accessible_trip
from src.auth.dependencies import check_trip_ownership
from src.auth.models import UserModel
from src.domain.errors import (
    ActivityNotFound,
    CityNotFound,
    Forbidden,
    InvalidDates,
    ItineraryItemNotFound,
    MissingFields,
)
from src.infrastructure.events import EventBus, get_event_bus
from src.infrastructure.models import ItineraryItemModel
from src.repositories import activities as activities_repo
from src.repositories import cities as cities_repo
from src.repositories import itinerary as itinerary_repo


logger = logging.getLogger(__name__)


def validate_item_times(start_time: Optional[datetime], end_time: Optional[datetime]) -> None:
    if start_time is not None and end_time is not None and end_time < start_time:
        raise InvalidDates(
            "End time must not be before start time",
            details=[{"field": "end_time", "message": "Must be at or after start_time", "value": end_time}],
        )


async def _check_references(db: AsyncSession, data: Dict[str, Any]) -> None:
    if data.get("city_id") is not None and not await cities_repo.get(db, data["city_id"]):
        raise CityNotFound()
    if data.get("activity_id") is not None and not await activities_repo.get(db, data["activity_id"]):
        raise ActivityNotFound()


class ItineraryService:
    """Service class for itinerary operations."""

    def __init__(self, events: EventBus):
        self.events = events

    async def _accessible_item(self, db: AsyncSession, user: UserModel, item_id: int) -> Tuple[ItineraryItemModel, int]:
        """The item and its trip owner's id, once the user is allowed to act on it."""
        found = await itinerary_repo.owner_of(db, item_id)
        if not found:
            raise ItineraryItemNotFound()
        item, owner_id = found
        if not check_trip_ownership(owner_id, user):
            raise Forbidden("Access denied")
        return item, owner_id

    async def list_for_trip(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        group_by_date: bool = False,
        category: Optional[str] = None,
    ) -> Union[List[Dict[str, Any]], Dict[str, List[Dict[str, Any]]]]:
        await get_accessible_trip(db, user, trip_id)
        return await itinerary_repo.get_for_trip(db, trip_id, category=category, group_by_date=group_by_date)

    async def create_item(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Add an item to a trip's itinerary.

        Raises:
            MissingFields: If title is missing
            InvalidDates: If end_time precedes start_time
        """
        trip = await get_accessible_trip(db, user, trip_id)

        if not (data.get("title") or "").strip():
            raise MissingFields("Title is required", details=[{"field": "title", "message": "This field is required", "value": None}])
        validate_item_times(data.get("start_time"), data.get("end_time"))
        await _check_references(db, data)

        item = await itinerary_repo.create(db, {**data, "trip_id": trip_id})
        await db.commit()

        payload = await itinerary_repo.find_by_id(db, item.id)
        await self.events.itinerary_update(trip.user_id, "item-created", trip_id, item=payload)
        return payload

    async def get_item(self, db: AsyncSession, user: UserModel, item_id: int) -> Dict[str, Any]:
        item, _ = await self._accessible_item(db, user, item_id)
        return await itinerary_repo.find_by_id(db, item.id)

    async def update_item(
        self,
        db: AsyncSession,
        user: UserModel,
        item_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        item, owner_id = await self._accessible_item(db, user, item_id)

        validate_item_times(
            data.get("start_time", item.start_time),
            data.get("end_time", item.end_time),
        )
        await _check_references(db, data)

        trip_id = item.trip_id
        await itinerary_repo.update(db, item, data)
        await db.commit()

        payload = await itinerary_repo.find_by_id(db, item_id)
        await self.events.itinerary_update(owner_id, "item-updated", trip_id, item=payload)
        return payload

    async def delete_item(self, db: AsyncSession, user: UserModel, item_id: int) -> None:
        item, owner_id = await self._accessible_item(db, user, item_id)

        trip_id = item.trip_id
        await itinerary_repo.delete(db, item_id)
        await db.commit()

        await self.events.itinerary_update(owner_id, "item-deleted", trip_id, itemId=item_id)

    async def reorder(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        items: Sequence[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """
        Persist a new order for a trip's items, all or nothing.

        Returns:
            The trip's items in their new order
        """
        trip = await get_accessible_trip(db, user, trip_id)
        owner_id = trip.user_id

        await itinerary_repo.reorder(db, trip_id, items)
        logger.info(f"Reordered {len(items)} items on trip {trip_id}")

        ordered = [
            {"id": int(entry["id"]), "order_index": position if entry.get("order_index") is None else int(entry["order_index"])}
            for position, entry in enumerate(items)
        ]
        await self.events.itinerary_update(owner_id, "items-reordered", trip_id, items=ordered)
        return await itinerary_repo.get_for_trip(db, trip_id)

    async def add_activity(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        activity_id: int,
        schedule: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Schedule a catalog activity on a trip.

        Raises:
            ActivityNotFound: If the activity does not exist
        """
        trip = await get_accessible_trip(db, user, trip_id)

        activity = await activities_repo.get(db, activity_id)
        if not activity:
            raise ActivityNotFound()
        validate_item_times(schedule.get("start_time"), schedule.get("end_time"))

        city = await cities_repo.get(db, activity.city_id)
        item = await itinerary_repo.add_activity_to_trip(db, trip_id, activity, city, schedule)
        await db.commit()

        payload = await itinerary_repo.find_by_id(db, item.id)
        await self.events.itinerary_update(trip.user_id, "item-created", trip_id, item=payload)
        return payload

    async def summary(self, db: AsyncSession, user: UserModel, trip_id: int) -> Dict[str, Any]:
        await get_accessible_trip(db, user, trip_id)
        return await itinerary_repo.trip_summary(db, trip_id)

    async def cost_breakdown(self, db: AsyncSession, user: UserModel, trip_id: int) -> List[Dict[str, Any]]:
        await get_accessible_trip(db, user, trip_id)
        return await itinerary_repo.cost_breakdown(db, trip_id)


def get_itinerary_service(events: EventBus = Depends(get_event_bus)) -> ItineraryService:
    return ItineraryService(events)

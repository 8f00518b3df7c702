"""
Catalog service - public city and activity lookups, admin curation of the
catalog, and membership of cities in trips.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.trip_service import get_accessible_trip
from src.auth.models import UserModel
from src.domain.errors import (
    ActivityNotFound,
    CityNotFound,
    CityNotInTrip,
    InvalidDates,
    InvalidInput,
    MissingFields,
)
from src.infrastructure.events import EventBus, get_event_bus
from src.repositories import activities as activities_repo
from src.repositories import cities as cities_repo
from src.repositories.common import model_to_dict


logger = logging.getLogger(__name__)

MIN_SEARCH_TERM_LENGTH = 2


def validate_stay_dates(arrival_date: Optional[date], departure_date: Optional[date]) -> None:
    if arrival_date is not None and departure_date is not None and departure_date < arrival_date:
        raise InvalidDates(
            "Departure date must not be before arrival date",
            details=[{"field": "departure_date", "message": "Must be on or after arrival_date", "value": departure_date}],
        )


class CatalogService:
    """Service class for the city/activity catalog."""

    def __init__(self, events: EventBus):
        self.events = events

    # =========================================================================
    # Cities
    # =========================================================================

    async def search_cities(
        self,
        db: AsyncSession,
        term: Optional[str],
        country: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        term = (term or "").strip()
        if len(term) < MIN_SEARCH_TERM_LENGTH:
            raise InvalidInput(
                f"Search term must be at least {MIN_SEARCH_TERM_LENGTH} characters long",
                details=[{"field": "q", "message": "Too short", "value": term}],
            )
        return await cities_repo.search(db, term, country=country, limit=limit, offset=offset)

    async def popular_cities(self, db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        return await cities_repo.popular(db, limit)

    async def countries(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await cities_repo.countries(db)

    async def get_city(self, db: AsyncSession, city_id: int) -> Dict[str, Any]:
        """City with its trip count and its ten best rated activities."""
        city = await cities_repo.find_by_id(db, city_id)
        if not city:
            raise CityNotFound()
        city["activities"] = await activities_repo.popular_in_city(db, city_id, 10)
        return city

    async def create_city(self, db: AsyncSession, data: Dict[str, Any]) -> Dict[str, Any]:
        city = await cities_repo.create(db, data)
        await db.commit()
        logger.info(f"City {city.id} ({city.name}, {city.country}) created")
        return model_to_dict(city)

    async def update_city(self, db: AsyncSession, city_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        city = await cities_repo.update(db, city_id, data)
        await db.commit()
        return model_to_dict(city)

    async def delete_city(self, db: AsyncSession, city_id: int) -> None:
        """
        Raises:
            CityNotFound: If the city does not exist
            InUse: If trips, activities or itinerary items still reference it
        """
        if not await cities_repo.get(db, city_id):
            raise CityNotFound()
        await cities_repo.delete(db, city_id)
        await db.commit()
        logger.info(f"City {city_id} deleted")

    # =========================================================================
    # Cities in trips
    # =========================================================================

    async def cities_for_trip(self, db: AsyncSession, user: UserModel, trip_id: int) -> List[Dict[str, Any]]:
        await get_accessible_trip(db, user, trip_id)
        return await cities_repo.get_for_trip(db, trip_id)

    async def add_city_to_trip(
        self,
        db: AsyncSession,
        user: UserModel,
        city_id: int,
        trip_id: Optional[int],
        arrival_date: Optional[date] = None,
        departure_date: Optional[date] = None,
        order_index: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Raises:
            MissingFields: If trip_id is missing
            CityNotFound, TripNotFound, Forbidden, InvalidDates, CityAlreadyInTrip
        """
        if trip_id is None:
            raise MissingFields("Trip ID is required", details=[{"field": "trip_id", "message": "This field is required", "value": None}])

        trip = await get_accessible_trip(db, user, trip_id)
        if not await cities_repo.get(db, city_id):
            raise CityNotFound()
        validate_stay_dates(arrival_date, departure_date)

        trip_city = await cities_repo.add_to_trip(
            db,
            trip_id,
            city_id,
            arrival_date=arrival_date,
            departure_date=departure_date,
            order_index=order_index,
        )
        await db.commit()

        await self.events.trip_update(trip.user_id, "updated", tripId=trip_id, city=trip_city)
        return trip_city

    async def update_trip_city(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        city_id: int,
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        trip = await get_accessible_trip(db, user, trip_id)

        current = await cities_repo.get_trip_city(db, trip_id, city_id)
        if not current:
            raise CityNotInTrip()
        if data.get("order_index", 0) is None:
            data = {key: value for key, value in data.items() if key != "order_index"}
        validate_stay_dates(
            data.get("arrival_date", current["arrival_date"]),
            data.get("departure_date", current["departure_date"]),
        )

        trip_city = await cities_repo.update_trip_city(db, trip_id, city_id, data)
        await db.commit()

        await self.events.trip_update(trip.user_id, "updated", tripId=trip_id, city=trip_city)
        return trip_city

    async def remove_city_from_trip(self, db: AsyncSession, user: UserModel, city_id: int, trip_id: int) -> None:
        trip = await get_accessible_trip(db, user, trip_id)
        if not await cities_repo.remove_from_trip(db, trip_id, city_id):
            raise CityNotInTrip()
        await db.commit()

        await self.events.trip_update(trip.user_id, "updated", tripId=trip_id, removedCityId=city_id)

    # =========================================================================
    # Activities
    # =========================================================================

    async def search_activities(self, db: AsyncSession, **filters: Any) -> List[Dict[str, Any]]:
        return await activities_repo.global_search(db, **filters)

    async def popular_activities(self, db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        return await activities_repo.popular(db, limit)

    async def categories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        return await activities_repo.categories(db)

    async def activities_for_cities(
        self,
        db: AsyncSession,
        city_ids: Optional[Iterable[int]],
        category: Optional[str] = None,
        limit: int = 5,
    ) -> Dict[int, List[Dict[str, Any]]]:
        city_ids = list(city_ids or [])
        if not city_ids:
            raise MissingFields(
                "City IDs array is required",
                details=[{"field": "city_ids", "message": "Must be a non-empty list", "value": city_ids}],
            )
        return await activities_repo.for_cities(db, city_ids, category=category, limit=limit)

    async def get_activity(self, db: AsyncSession, activity_id: int) -> Dict[str, Any]:
        activity = await activities_repo.find_by_id(db, activity_id)
        if not activity:
            raise ActivityNotFound()
        return activity

    async def city_activities(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        city_id: int,
        **filters: Any,
    ) -> List[Dict[str, Any]]:
        """Filtered activities of a city while planning a trip."""
        await get_accessible_trip(db, user, trip_id)
        return await activities_repo.search_in_city(db, city_id, **filters)

    async def popular_city_activities(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        city_id: int,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        await get_accessible_trip(db, user, trip_id)
        return await activities_repo.popular_in_city(db, city_id, limit)

    async def city_activities_by_category(
        self,
        db: AsyncSession,
        user: UserModel,
        trip_id: int,
        city_id: int,
        category: str,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        await get_accessible_trip(db, user, trip_id)
        return await activities_repo.by_category(db, city_id, category, limit)

    async def create_activity(self, db: AsyncSession, data: Dict[str, Any]) -> Dict[str, Any]:
        activity = await activities_repo.create(db, data)
        await db.commit()
        logger.info(f"Activity {activity.id} created in city {activity.city_id}")
        return await activities_repo.find_by_id(db, activity.id)

    async def update_activity(self, db: AsyncSession, activity_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        await activities_repo.update(db, activity_id, data)
        await db.commit()
        return await activities_repo.find_by_id(db, activity_id)

    async def delete_activity(self, db: AsyncSession, activity_id: int) -> None:
        """
        Raises:
            ActivityNotFound: If the activity does not exist
            InUse: If an itinerary item still references it
        """
        if not await activities_repo.get(db, activity_id):
            raise ActivityNotFound()
        await activities_repo.delete(db, activity_id)
        await db.commit()
        logger.info(f"Activity {activity_id} deleted")


def get_catalog_service(events: EventBus = Depends(get_event_bus)) -> CatalogService:
    return CatalogService(events)

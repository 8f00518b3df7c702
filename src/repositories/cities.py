"""
Cities repository: catalog cities and their membership in trips.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import delete as sa_delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.errors import (
    CityAlreadyExists,
    CityAlreadyInTrip,
    CityNotFound,
    CityNotInTrip,
    InUse,
    InvalidInput,
)
from src.infrastructure.models import (
    ActivityModel,
    CityModel,
    ItineraryItemModel,
    TripCityModel,
)
from src.repositories.common import clamp_limit, contains_ci, model_to_dict, page_offset, pagination, reject_nulls


CITY_UPDATABLE_FIELDS = {
    "name", "country", "country_code", "lat", "lng",
    "cost_index", "popularity_score", "description", "image_url",
}

CITY_REQUIRED_FIELDS = ("name", "country", "popularity_score")

TRIP_CITY_UPDATABLE_FIELDS = {"arrival_date", "departure_date", "order_index"}
TRIP_CITY_REQUIRED_FIELDS = ("order_index",)

# City columns joined onto trip city rows
_TRIP_CITY_CITY_COLUMNS = (
    CityModel.name,
    CityModel.country,
    CityModel.country_code,
    CityModel.lat,
    CityModel.lng,
    CityModel.cost_index,
    CityModel.description,
    CityModel.image_url,
)


def _trip_counts():
    return (
        select(TripCityModel.city_id, func.count(TripCityModel.id).label("trip_count"))
        .group_by(TripCityModel.city_id)
        .subquery()
    )


def _activity_counts():
    return (
        select(ActivityModel.city_id, func.count(ActivityModel.id).label("activity_count"))
        .group_by(ActivityModel.city_id)
        .subquery()
    )


def _city_with_counts(city: CityModel, **counts: int) -> Dict[str, Any]:
    row = model_to_dict(city)
    row.update({key: value or 0 for key, value in counts.items()})
    return row


async def get(db: AsyncSession, city_id: int) -> Optional[CityModel]:
    result = await db.execute(select(CityModel).where(CityModel.id == city_id))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, city_id: int) -> Optional[Dict[str, Any]]:
    """City with the number of trips it is part of."""
    trip_counts = _trip_counts()
    result = await db.execute(
        select(CityModel, trip_counts.c.trip_count)
        .outerjoin(trip_counts, trip_counts.c.city_id == CityModel.id)
        .where(CityModel.id == city_id)
    )
    row = result.first()
    if row is None:
        return None
    return _city_with_counts(row[0], trip_count=row[1])


async def search(
    db: AsyncSession,
    term: str,
    country: Optional[str] = None,
    limit: Optional[int] = 20,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """
    Case-insensitive substring search over city name and country, most
    popular first.
    """
    trip_counts = _trip_counts()
    trip_count = func.coalesce(trip_counts.c.trip_count, 0)

    query = (
        select(CityModel, trip_count)
        .outerjoin(trip_counts, trip_counts.c.city_id == CityModel.id)
        .where(or_(contains_ci(CityModel.name, term), contains_ci(CityModel.country, term)))
    )
    if country:
        query = query.where(func.lower(CityModel.country) == country.lower())

    result = await db.execute(
        query.order_by(CityModel.popularity_score.desc(), trip_count.desc(), CityModel.name)
        .limit(clamp_limit(limit))
        .offset(max(offset or 0, 0))
    )
    return [_city_with_counts(city, trip_count=count) for city, count in result.all()]


async def popular(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    trip_counts = _trip_counts()
    trip_count = func.coalesce(trip_counts.c.trip_count, 0)
    result = await db.execute(
        select(CityModel, trip_count)
        .outerjoin(trip_counts, trip_counts.c.city_id == CityModel.id)
        .order_by(CityModel.popularity_score.desc(), trip_count.desc(), CityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [_city_with_counts(city, trip_count=count) for city, count in result.all()]


async def popular_with_stats(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Cities most often added to trips, with trip and activity counts."""
    trip_counts = _trip_counts()
    activity_counts = _activity_counts()
    trip_count = func.coalesce(trip_counts.c.trip_count, 0)
    result = await db.execute(
        select(CityModel, trip_count, activity_counts.c.activity_count)
        .outerjoin(trip_counts, trip_counts.c.city_id == CityModel.id)
        .outerjoin(activity_counts, activity_counts.c.city_id == CityModel.id)
        .order_by(trip_count.desc(), CityModel.popularity_score.desc(), CityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [
        _city_with_counts(city, trip_count=trips, activity_count=activities)
        for city, trips, activities in result.all()
    ]


async def list_all_with_stats(
    db: AsyncSession,
    search: Optional[str] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 20,
) -> Dict[str, Any]:
    """Admin catalog listing with trip and activity counts."""
    limit = clamp_limit(limit)
    conditions = []
    if search:
        conditions.append(or_(contains_ci(CityModel.name, search), contains_ci(CityModel.country, search)))

    trip_counts = _trip_counts()
    activity_counts = _activity_counts()

    total = await db.scalar(select(func.count()).select_from(CityModel).where(*conditions)) or 0
    result = await db.execute(
        select(CityModel, trip_counts.c.trip_count, activity_counts.c.activity_count)
        .outerjoin(trip_counts, trip_counts.c.city_id == CityModel.id)
        .outerjoin(activity_counts, activity_counts.c.city_id == CityModel.id)
        .where(*conditions)
        .order_by(CityModel.country, CityModel.name)
        .limit(limit)
        .offset(page_offset(page, limit))
    )
    cities = [
        _city_with_counts(city, trip_count=trips, activity_count=activities)
        for city, trips, activities in result.all()
    ]
    return {"cities": cities, "pagination": pagination(total, page, limit)}


async def _exists(db: AsyncSession, name: str, country: str, exclude_id: Optional[int] = None) -> bool:
    query = select(CityModel.id).where(
        func.lower(CityModel.name) == name.strip().lower(),
        func.lower(CityModel.country) == country.strip().lower(),
    )
    if exclude_id is not None:
        query = query.where(CityModel.id != exclude_id)
    return (await db.scalar(query.limit(1))) is not None


async def create(db: AsyncSession, data: Dict[str, Any]) -> CityModel:
    """
    Insert a catalog city.

    Raises:
        CityAlreadyExists: If a city with the same name and country exists
    """
    values = {key: value for key, value in data.items() if key in CITY_UPDATABLE_FIELDS}
    if not values.get("name") or not values.get("country"):
        raise InvalidInput("City name and country are required")

    if await _exists(db, values["name"], values["country"]):
        raise CityAlreadyExists()

    if values.get("popularity_score") is None:
        values.pop("popularity_score", None)

    city = CityModel(**values)
    db.add(city)
    try:
        await db.flush()
    except IntegrityError:
        raise CityAlreadyExists()
    return city


async def update(db: AsyncSession, city_id: int, fields: Dict[str, Any]) -> CityModel:
    city = await get(db, city_id)
    if not city:
        raise CityNotFound()

    values = {key: value for key, value in fields.items() if key in CITY_UPDATABLE_FIELDS}
    if not values:
        raise InvalidInput("No valid fields to update")
    reject_nulls(values, CITY_REQUIRED_FIELDS)

    name = values.get("name", city.name)
    country = values.get("country", city.country)
    if ("name" in values or "country" in values) and await _exists(db, name, country, exclude_id=city_id):
        raise CityAlreadyExists()

    for key, value in values.items():
        setattr(city, key, value)
    try:
        await db.flush()
    except IntegrityError:
        raise CityAlreadyExists()
    return city


async def delete(db: AsyncSession, city_id: int) -> bool:
    """
    Delete a catalog city.

    Raises:
        InUse: If a trip, activity or itinerary item still references the city
    """
    for model in (TripCityModel, ActivityModel, ItineraryItemModel):
        referenced = await db.scalar(
            select(model.id).where(model.city_id == city_id).limit(1)
        )
        if referenced is not None:
            raise InUse(f"City is still referenced by {model.__tablename__} and cannot be deleted")

    try:
        result = await db.execute(sa_delete(CityModel).where(CityModel.id == city_id))
    except IntegrityError:
        raise InUse("City is still referenced and cannot be deleted")
    return result.rowcount > 0


async def countries(db: AsyncSession) -> List[Dict[str, Any]]:
    city_count = func.count(CityModel.id).label("city_count")
    result = await db.execute(
        select(CityModel.country, CityModel.country_code, city_count)
        .group_by(CityModel.country, CityModel.country_code)
        .order_by(city_count.desc(), CityModel.country)
    )
    return [dict(row) for row in result.mappings().all()]


# =============================================================================
# Trip membership
# =============================================================================

async def add_to_trip(
    db: AsyncSession,
    trip_id: int,
    city_id: int,
    arrival_date=None,
    departure_date=None,
    order_index: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Add a city to a trip.

    Raises:
        CityAlreadyInTrip: If the city is already part of the trip
    """
    existing = await db.scalar(
        select(TripCityModel.id).where(
            TripCityModel.trip_id == trip_id,
            TripCityModel.city_id == city_id,
        )
    )
    if existing is not None:
        raise CityAlreadyInTrip()

    trip_city = TripCityModel(
        trip_id=trip_id,
        city_id=city_id,
        arrival_date=arrival_date,
        departure_date=departure_date,
        order_index=order_index or 0,
    )
    db.add(trip_city)
    try:
        await db.flush()
    except IntegrityError:
        raise CityAlreadyInTrip()
    return await get_trip_city(db, trip_id, city_id)


async def get_trip_city(db: AsyncSession, trip_id: int, city_id: int) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        select(TripCityModel, *_TRIP_CITY_CITY_COLUMNS)
        .join(CityModel, CityModel.id == TripCityModel.city_id)
        .where(TripCityModel.trip_id == trip_id, TripCityModel.city_id == city_id)
    )
    row = result.first()
    return _trip_city_row(row) if row is not None else None


async def get_for_trip(db: AsyncSession, trip_id: int) -> List[Dict[str, Any]]:
    """Cities of a trip ordered by order_index, then arrival date."""
    result = await db.execute(
        select(TripCityModel, *_TRIP_CITY_CITY_COLUMNS)
        .join(CityModel, CityModel.id == TripCityModel.city_id)
        .where(TripCityModel.trip_id == trip_id)
        .order_by(
            TripCityModel.order_index,
            TripCityModel.arrival_date.asc().nulls_last(),
            TripCityModel.id,
        )
    )
    return [_trip_city_row(row) for row in result.all()]


def _trip_city_row(row) -> Dict[str, Any]:
    trip_city = row[0]
    data = model_to_dict(trip_city)
    for column, value in zip(_TRIP_CITY_CITY_COLUMNS, row[1:]):
        data[column.key] = value
    return data


async def update_trip_city(
    db: AsyncSession,
    trip_id: int,
    city_id: int,
    fields: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Raises:
        CityNotInTrip: If the city is not part of the trip
    """
    result = await db.execute(
        select(TripCityModel).where(
            TripCityModel.trip_id == trip_id,
            TripCityModel.city_id == city_id,
        )
    )
    trip_city = result.scalar_one_or_none()
    if not trip_city:
        raise CityNotInTrip()

    values = {key: value for key, value in fields.items() if key in TRIP_CITY_UPDATABLE_FIELDS}
    if not values:
        raise InvalidInput("No valid fields to update")
    reject_nulls(values, TRIP_CITY_REQUIRED_FIELDS)

    for key, value in values.items():
        setattr(trip_city, key, value)
    await db.flush()
    return await get_trip_city(db, trip_id, city_id)


async def remove_from_trip(db: AsyncSession, trip_id: int, city_id: int) -> bool:
    result = await db.execute(
        sa_delete(TripCityModel).where(
            TripCityModel.trip_id == trip_id,
            TripCityModel.city_id == city_id,
        )
    )
    return result.rowcount > 0

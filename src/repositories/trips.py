"""
Trips repository: trips, their share tokens and trip-level aggregates.

Counts and sums over trip cities and itinerary items are taken from
independent grouped sub-queries, so a trip with several cities and several
items is never double counted.
"""
import secrets
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete as sa_delete, func, or_, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.models import UserModel
from src.domain.errors import InvalidInput
from src.domain.models import TripStatus
from src.infrastructure.models import CityModel, ItineraryItemModel, TripCityModel, TripModel
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
    reject_nulls,
)


TRIP_UPDATABLE_FIELDS = {
    "title", "description", "start_date", "end_date", "cover_photo_path",
    "budget", "status", "is_public", "featured",
}

TRIP_REQUIRED_FIELDS = ("title", "status", "is_public", "featured")

ADMIN_SORT_COLUMNS = {
    "created_at": TripModel.created_at,
    "title": TripModel.title,
    "start_date": TripModel.start_date,
    "end_date": TripModel.end_date,
    "budget": TripModel.budget,
}

# 24 random bytes encode to 32 URL-safe characters
PUBLIC_URL_BYTES = 24


def generate_public_token() -> str:
    return secrets.token_urlsafe(PUBLIC_URL_BYTES)


def _city_counts():
    return (
        select(TripCityModel.trip_id, func.count(TripCityModel.id).label("city_count"))
        .group_by(TripCityModel.trip_id)
        .subquery()
    )


def _item_totals():
    return (
        select(
            ItineraryItemModel.trip_id,
            func.count(ItineraryItemModel.id).label("activity_count"),
            func.sum(ItineraryItemModel.cost).label("total_cost"),
        )
        .group_by(ItineraryItemModel.trip_id)
        .subquery()
    )


async def get(db: AsyncSession, trip_id: int) -> Optional[TripModel]:
    result = await db.execute(select(TripModel).where(TripModel.id == trip_id))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, trip_id: int) -> Optional[Dict[str, Any]]:
    """Trip joined with its owner's name and email."""
    result = await db.execute(
        select(TripModel, UserModel.full_name, UserModel.email)
        .join(UserModel, UserModel.id == TripModel.user_id)
        .where(TripModel.id == trip_id)
    )
    row = result.first()
    if row is None:
        return None
    trip, owner_name, owner_email = row
    data = model_to_dict(trip)
    data.update(owner_name=owner_name, owner_email=owner_email)
    return data


async def _cities_by_trip(db: AsyncSession, trip_ids: Iterable[int]) -> Dict[int, List[Dict[str, Any]]]:
    trip_ids = list(trip_ids)
    grouped: Dict[int, List[Dict[str, Any]]] = {trip_id: [] for trip_id in trip_ids}
    if not trip_ids:
        return grouped
    result = await db.execute(
        select(TripCityModel.trip_id, CityModel.name, CityModel.country)
        .join(CityModel, CityModel.id == TripCityModel.city_id)
        .where(TripCityModel.trip_id.in_(trip_ids))
        .order_by(TripCityModel.trip_id, TripCityModel.order_index, TripCityModel.id)
    )
    for trip_id, name, country in result.all():
        grouped[trip_id].append({"name": name, "country": country})
    return grouped


async def find_by_user_id(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    limit: Optional[int] = 20,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """
    A user's trips, newest first, each enriched with city and item counts,
    total cost and the distinct cities and countries it visits.
    """
    city_counts = _city_counts()
    item_totals = _item_totals()

    query = (
        select(
            TripModel,
            func.coalesce(city_counts.c.city_count, 0),
            func.coalesce(item_totals.c.activity_count, 0),
            func.coalesce(item_totals.c.total_cost, 0),
        )
        .outerjoin(city_counts, city_counts.c.trip_id == TripModel.id)
        .outerjoin(item_totals, item_totals.c.trip_id == TripModel.id)
        .where(TripModel.user_id == user_id)
    )
    if status:
        try:
            query = query.where(TripModel.status == TripStatus(status))
        except ValueError:
            raise InvalidInput(f"Unknown trip status '{status}'")

    result = await db.execute(
        query.order_by(TripModel.created_at.desc(), TripModel.id.desc())
        .limit(clamp_limit(limit))
        .offset(max(offset or 0, 0))
    )
    rows = result.all()
    cities = await _cities_by_trip(db, (row[0].id for row in rows))

    trips = []
    for trip, city_count, activity_count, total_cost in rows:
        data = model_to_dict(trip)
        trip_cities = cities[trip.id]
        data.update(
            city_count=city_count,
            activity_count=activity_count,
            total_cost=float(total_cost or 0),
            cities=list(dict.fromkeys(city["name"] for city in trip_cities)),
            countries=list(dict.fromkeys(city["country"] for city in trip_cities)),
        )
        trips.append(data)
    return trips


async def count_by_user_id(db: AsyncSession, user_id: int, status: Optional[str] = None) -> int:
    query = select(func.count()).select_from(TripModel).where(TripModel.user_id == user_id)
    if status:
        try:
            query = query.where(TripModel.status == TripStatus(status))
        except ValueError:
            raise InvalidInput(f"Unknown trip status '{status}'")
    return await db.scalar(query) or 0


async def create(db: AsyncSession, user_id: int, data: Dict[str, Any]) -> TripModel:
    values = {key: value for key, value in data.items() if key in TRIP_UPDATABLE_FIELDS}
    values.pop("featured", None)
    if values.get("is_public"):
        values["public_url"] = generate_public_token()
    trip = TripModel(user_id=user_id, **values)
    db.add(trip)
    await db.flush()
    return trip


async def update(db: AsyncSession, trip: TripModel, fields: Dict[str, Any]) -> TripModel:
    """
    Apply allow-listed fields to a trip.

    Keeps ``public_url`` present exactly while the trip is public.
    """
    values = {key: value for key, value in fields.items() if key in TRIP_UPDATABLE_FIELDS}
    if not values:
        raise InvalidInput("No valid fields to update")
    reject_nulls(values, TRIP_REQUIRED_FIELDS)

    for key, value in values.items():
        setattr(trip, key, value)

    if "is_public" in values:
        if trip.is_public and not trip.public_url:
            trip.public_url = generate_public_token()
        elif not trip.is_public:
            trip.public_url = None

    trip.updated_at = datetime.utcnow()
    await db.flush()
    return trip


async def delete(db: AsyncSession, trip_id: int) -> bool:
    """Delete a trip; its trip cities and itinerary items go with it (ON DELETE CASCADE)."""
    result = await db.execute(sa_delete(TripModel).where(TripModel.id == trip_id))
    return result.rowcount > 0


async def generate_public_url(db: AsyncSession, trip_id: int) -> str:
    """Make a trip public under a fresh share token, in a single UPDATE."""
    token = generate_public_token()
    await db.execute(
        sa_update(TripModel)
        .where(TripModel.id == trip_id)
        .values(public_url=token, is_public=True, updated_at=datetime.utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return token


async def find_by_public_url(db: AsyncSession, public_url: str) -> Optional[Dict[str, Any]]:
    """Trip behind a share token, only while it is public."""
    result = await db.execute(
        select(TripModel, UserModel.full_name)
        .join(UserModel, UserModel.id == TripModel.user_id)
        .where(TripModel.public_url == public_url, TripModel.is_public.is_(True))
    )
    row = result.first()
    if row is None:
        return None
    trip, owner_name = row
    data = model_to_dict(trip)
    data["owner_name"] = owner_name
    return data


async def stats(db: AsyncSession, trip_id: int) -> Dict[str, Any]:
    city_count = await db.scalar(
        select(func.count(TripCityModel.id)).where(TripCityModel.trip_id == trip_id)
    ) or 0
    result = await db.execute(
        select(
            func.count(ItineraryItemModel.id),
            func.sum(ItineraryItemModel.cost),
            func.avg(ItineraryItemModel.cost),
            func.min(ItineraryItemModel.start_time),
            func.max(ItineraryItemModel.start_time),
        ).where(ItineraryItemModel.trip_id == trip_id)
    )
    activity_count, total_cost, avg_cost, first_activity, last_activity = result.one()
    return {
        "city_count": city_count,
        "activity_count": activity_count or 0,
        "total_cost": float(total_cost or 0),
        "avg_cost_per_activity": round(float(avg_cost), 2) if avg_cost is not None else 0.0,
        "first_activity": first_activity,
        "last_activity": last_activity,
    }


# =============================================================================
# Admin listing & analytics
# =============================================================================

async def admin_list(
    db: AsyncSession,
    search: Optional[str] = None,
    status: Optional[str] = None,
    is_public: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 20,
) -> Dict[str, Any]:
    """All trips, searchable over title, description and owner name."""
    limit = clamp_limit(limit)
    order = order_clause(sort_by, sort_order, ADMIN_SORT_COLUMNS, default="created_at")

    conditions = []
    if search:
        conditions.append(or_(
            contains_ci(TripModel.title, search),
            contains_ci(TripModel.description, search),
            contains_ci(UserModel.full_name, search),
        ))
    if status:
        try:
            conditions.append(TripModel.status == TripStatus(status))
        except ValueError:
            raise InvalidInput(f"Unknown trip status '{status}'")
    if is_public is not None:
        conditions.append(TripModel.is_public.is_(bool(is_public)))

    city_counts = _city_counts()
    item_totals = _item_totals()

    total = await db.scalar(
        select(func.count())
        .select_from(TripModel)
        .join(UserModel, UserModel.id == TripModel.user_id)
        .where(*conditions)
    ) or 0

    result = await db.execute(
        select(
            TripModel,
            UserModel.full_name,
            UserModel.email,
            func.coalesce(city_counts.c.city_count, 0),
            func.coalesce(item_totals.c.activity_count, 0),
        )
        .join(UserModel, UserModel.id == TripModel.user_id)
        .outerjoin(city_counts, city_counts.c.trip_id == TripModel.id)
        .outerjoin(item_totals, item_totals.c.trip_id == TripModel.id)
        .where(*conditions)
        .order_by(order, TripModel.id)
        .limit(limit)
        .offset(page_offset(page, limit))
    )

    trips = []
    for trip, owner_name, owner_email, city_count, activity_count in result.all():
        data = model_to_dict(trip)
        data.update(
            owner_name=owner_name,
            owner_email=owner_email,
            city_count=city_count,
            activity_count=activity_count,
        )
        trips.append(data)

    return {"trips": trips, "pagination": pagination(total, page, limit)}


async def total_count(db: AsyncSession) -> int:
    return await db.scalar(select(func.count()).select_from(TripModel)) or 0


async def public_count(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(TripModel).where(TripModel.is_public.is_(True))
    ) or 0


async def completed_count(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(TripModel).where(TripModel.status == TripStatus.COMPLETED)
    ) or 0


async def featured_count(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(TripModel).where(TripModel.featured.is_(True))
    ) or 0


async def count_by_status(db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(
        select(TripModel.status, func.count(TripModel.id)).group_by(TripModel.status)
    )
    counts = {status.value: 0 for status in TripStatus}
    for status, count in result.all():
        counts[TripStatus(status).value] = count
    return counts


async def average_duration(db: AsyncSession) -> Optional[float]:
    """Mean trip length in days over trips that have both dates."""
    result = await db.execute(
        select(TripModel.start_date, TripModel.end_date).where(
            TripModel.start_date.is_not(None),
            TripModel.end_date.is_not(None),
        )
    )
    durations = [(end - start).days for start, end in result.all()]
    if not durations:
        return None
    return round(sum(durations) / len(durations), 1)


async def trips_by_month(db: AsyncSession, months: int = 12) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(TripModel.created_at).where(TripModel.created_at >= months_ago(months - 1))
    )
    return count_by_month(result.scalars().all())


async def creations_by_day(db: AsyncSession, days: int = 30) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(TripModel.created_at).where(TripModel.created_at >= days_ago(days))
    )
    return count_by_day(result.scalars().all())


async def budget_stats(db: AsyncSession, days: Optional[int] = None) -> Dict[str, Any]:
    """Budget average, minimum and maximum over trips with a positive budget."""
    query = select(
        func.count(TripModel.id),
        func.avg(TripModel.budget),
        func.min(TripModel.budget),
        func.max(TripModel.budget),
    ).where(TripModel.budget > 0)
    if days is not None:
        query = query.where(TripModel.created_at >= days_ago(days))
    count, avg_budget, min_budget, max_budget = (await db.execute(query)).one()
    return {
        "trips_with_budget": count or 0,
        "avg_budget": round(float(avg_budget), 2) if avg_budget is not None else None,
        "min_budget": float(min_budget) if min_budget is not None else None,
        "max_budget": float(max_budget) if max_budget is not None else None,
    }


async def popular_destinations(db: AsyncSession, days: Optional[int] = None, limit: int = 10) -> List[Dict[str, Any]]:
    """Cities most often added to trips (optionally trips created in the last ``days`` days)."""
    trip_count = func.count(func.distinct(TripCityModel.trip_id)).label("trip_count")
    query = (
        select(CityModel.id, CityModel.name, CityModel.country, trip_count)
        .join(TripCityModel, TripCityModel.city_id == CityModel.id)
        .join(TripModel, TripModel.id == TripCityModel.trip_id)
    )
    if days is not None:
        query = query.where(TripModel.created_at >= days_ago(days))
    result = await db.execute(
        query.group_by(CityModel.id, CityModel.name, CityModel.country)
        .order_by(trip_count.desc(), CityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [
        {"city_id": city_id, "name": name, "country": country, "trip_count": count}
        for city_id, name, country, count in result.all()
    ]


async def recent(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(TripModel, UserModel.full_name)
        .join(UserModel, UserModel.id == TripModel.user_id)
        .order_by(TripModel.created_at.desc(), TripModel.id.desc())
        .limit(limit)
    )
    trips = []
    for trip, owner_name in result.all():
        data = model_to_dict(trip)
        data["owner_name"] = owner_name
        trips.append(data)
    return trips

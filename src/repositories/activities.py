"""
Activities repository: catalog activities per city.
"""
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete as sa_delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.errors import ActivityNotFound, CityNotFound, InUse, InvalidInput
from src.domain.models import ItemCategory
from src.infrastructure.models import ActivityModel, CityModel, ItineraryItemModel
from src.repositories.common import clamp_limit, contains_ci, model_to_dict, page_offset, pagination, reject_nulls


ACTIVITY_UPDATABLE_FIELDS = {
    "city_id", "name", "description", "category", "duration_hours",
    "cost_min", "cost_max", "rating", "image_url", "website_url",
}

ACTIVITY_REQUIRED_FIELDS = ("city_id", "name")


def _activity_row(activity: ActivityModel, city_name: Optional[str] = None, country: Optional[str] = None, **extra) -> Dict[str, Any]:
    row = model_to_dict(activity)
    row["city_name"] = city_name
    row["country"] = country
    row.update(extra)
    return row


def _category(value: Optional[str]) -> Optional[ItemCategory]:
    if value is None or value == "":
        return None
    try:
        return ItemCategory(value)
    except ValueError:
        raise InvalidInput(
            f"Unknown category '{value}'",
            details=[{
                "field": "category",
                "message": f"Must be one of: {', '.join(c.value for c in ItemCategory)}",
                "value": value,
            }],
        )


def _check_cost_range(cost_min: Optional[float], cost_max: Optional[float]) -> None:
    if cost_min is not None and cost_max is not None and cost_min > cost_max:
        raise InvalidInput(
            "cost_min must not exceed cost_max",
            details=[{"field": "cost_min", "message": "Must be less than or equal to cost_max", "value": cost_min}],
        )


def _with_city():
    return (
        select(ActivityModel, CityModel.name, CityModel.country)
        .join(CityModel, CityModel.id == ActivityModel.city_id)
    )


async def get(db: AsyncSession, activity_id: int) -> Optional[ActivityModel]:
    result = await db.execute(select(ActivityModel).where(ActivityModel.id == activity_id))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, activity_id: int) -> Optional[Dict[str, Any]]:
    """Activity joined with its city name and country."""
    result = await db.execute(_with_city().where(ActivityModel.id == activity_id))
    row = result.first()
    return _activity_row(*row) if row is not None else None


async def search_in_city(
    db: AsyncSession,
    city_id: int,
    category: Optional[str] = None,
    min_cost: Optional[float] = None,
    max_cost: Optional[float] = None,
    min_duration: Optional[float] = None,
    max_duration: Optional[float] = None,
    min_rating: Optional[float] = None,
    limit: Optional[int] = 20,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Filtered activities in one city, best rated and cheapest first."""
    query = _with_city().where(ActivityModel.city_id == city_id)

    category_value = _category(category)
    if category_value:
        query = query.where(ActivityModel.category == category_value)
    if min_cost is not None:
        query = query.where(ActivityModel.cost_min >= min_cost)
    if max_cost is not None:
        query = query.where(ActivityModel.cost_max <= max_cost)
    if min_duration is not None:
        query = query.where(ActivityModel.duration_hours >= min_duration)
    if max_duration is not None:
        query = query.where(ActivityModel.duration_hours <= max_duration)
    if min_rating is not None:
        query = query.where(ActivityModel.rating >= min_rating)

    result = await db.execute(
        query.order_by(
            ActivityModel.rating.desc().nulls_last(),
            ActivityModel.cost_min.asc().nulls_last(),
            ActivityModel.id,
        )
        .limit(clamp_limit(limit))
        .offset(max(offset or 0, 0))
    )
    return [_activity_row(*row) for row in result.all()]


async def popular_in_city(db: AsyncSession, city_id: int, limit: int = 10) -> List[Dict[str, Any]]:
    result = await db.execute(
        _with_city()
        .where(ActivityModel.city_id == city_id)
        .order_by(ActivityModel.rating.desc().nulls_last(), ActivityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [_activity_row(*row) for row in result.all()]


async def by_category(db: AsyncSession, city_id: int, category: str, limit: int = 20) -> List[Dict[str, Any]]:
    result = await db.execute(
        _with_city()
        .where(ActivityModel.city_id == city_id, ActivityModel.category == _category(category))
        .order_by(ActivityModel.rating.desc().nulls_last(), ActivityModel.cost_min.asc().nulls_last())
        .limit(clamp_limit(limit))
    )
    return [_activity_row(*row) for row in result.all()]


async def popular(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Best rated activities across all cities."""
    result = await db.execute(
        _with_city()
        .order_by(ActivityModel.rating.desc().nulls_last(), ActivityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [_activity_row(*row) for row in result.all()]


async def global_search(
    db: AsyncSession,
    query: Optional[str] = None,
    category: Optional[str] = None,
    min_cost: Optional[float] = None,
    max_cost: Optional[float] = None,
    min_rating: Optional[float] = None,
    limit: Optional[int] = 20,
) -> List[Dict[str, Any]]:
    """Substring search over activity name, description and city name."""
    stmt = _with_city()
    if query:
        stmt = stmt.where(or_(
            contains_ci(ActivityModel.name, query),
            contains_ci(ActivityModel.description, query),
            contains_ci(CityModel.name, query),
        ))
    category_value = _category(category)
    if category_value:
        stmt = stmt.where(ActivityModel.category == category_value)
    if min_cost is not None:
        stmt = stmt.where(ActivityModel.cost_min >= min_cost)
    if max_cost is not None:
        stmt = stmt.where(ActivityModel.cost_max <= max_cost)
    if min_rating is not None:
        stmt = stmt.where(ActivityModel.rating >= min_rating)

    result = await db.execute(
        stmt.order_by(ActivityModel.rating.desc().nulls_last(), ActivityModel.name)
        .limit(clamp_limit(limit))
    )
    return [_activity_row(*row) for row in result.all()]


async def categories(db: AsyncSession) -> List[Dict[str, Any]]:
    count = func.count(ActivityModel.id).label("count")
    result = await db.execute(
        select(ActivityModel.category, count)
        .group_by(ActivityModel.category)
        .order_by(count.desc(), ActivityModel.category)
    )
    return [{"category": ItemCategory(category).value, "count": n} for category, n in result.all()]


async def for_cities(
    db: AsyncSession,
    city_ids: Iterable[int],
    category: Optional[str] = None,
    limit: int = 5,
) -> Dict[int, List[Dict[str, Any]]]:
    """
    Top activities for several cities at once, at most ``limit`` per city.
    Every requested city id is present in the result, possibly with an empty list.
    """
    city_ids = list(dict.fromkeys(int(city_id) for city_id in city_ids))
    grouped: Dict[int, List[Dict[str, Any]]] = {city_id: [] for city_id in city_ids}
    if not city_ids:
        return grouped

    stmt = _with_city().where(ActivityModel.city_id.in_(city_ids))
    category_value = _category(category)
    if category_value:
        stmt = stmt.where(ActivityModel.category == category_value)

    result = await db.execute(
        stmt.order_by(ActivityModel.city_id, ActivityModel.rating.desc().nulls_last(), ActivityModel.name)
    )
    per_city = clamp_limit(limit, default=5)
    for row in result.all():
        bucket = grouped[row[0].city_id]
        if len(bucket) < per_city:
            bucket.append(_activity_row(*row))
    return grouped


async def list_all(
    db: AsyncSession,
    search: Optional[str] = None,
    city_id: Optional[int] = None,
    category: Optional[str] = None,
    page: Optional[int] = 1,
    limit: Optional[int] = 20,
) -> Dict[str, Any]:
    """Admin catalog listing with how often each activity is scheduled."""
    limit = clamp_limit(limit)
    conditions = []
    if search:
        conditions.append(or_(contains_ci(ActivityModel.name, search), contains_ci(CityModel.name, search)))
    if city_id is not None:
        conditions.append(ActivityModel.city_id == city_id)
    category_value = _category(category)
    if category_value:
        conditions.append(ActivityModel.category == category_value)

    usage = _usage_counts()
    total = await db.scalar(
        select(func.count())
        .select_from(ActivityModel)
        .join(CityModel, CityModel.id == ActivityModel.city_id)
        .where(*conditions)
    ) or 0
    result = await db.execute(
        select(ActivityModel, CityModel.name, CityModel.country, usage.c.usage_count)
        .join(CityModel, CityModel.id == ActivityModel.city_id)
        .outerjoin(usage, usage.c.activity_id == ActivityModel.id)
        .where(*conditions)
        .order_by(CityModel.name, ActivityModel.name)
        .limit(limit)
        .offset(page_offset(page, limit))
    )
    activities = [
        _activity_row(activity, city_name, country, usage_count=usage_count or 0)
        for activity, city_name, country, usage_count in result.all()
    ]
    return {"activities": activities, "pagination": pagination(total, page, limit)}


def _usage_counts():
    return (
        select(ItineraryItemModel.activity_id, func.count(ItineraryItemModel.id).label("usage_count"))
        .where(ItineraryItemModel.activity_id.is_not(None))
        .group_by(ItineraryItemModel.activity_id)
        .subquery()
    )


async def popular_with_stats(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Activities most often scheduled into itineraries."""
    usage = _usage_counts()
    usage_count = func.coalesce(usage.c.usage_count, 0)
    result = await db.execute(
        select(ActivityModel, CityModel.name, CityModel.country, usage_count)
        .join(CityModel, CityModel.id == ActivityModel.city_id)
        .outerjoin(usage, usage.c.activity_id == ActivityModel.id)
        .order_by(usage_count.desc(), ActivityModel.rating.desc().nulls_last(), ActivityModel.name)
        .limit(clamp_limit(limit, default=10))
    )
    return [
        _activity_row(activity, city_name, country, usage_count=count)
        for activity, city_name, country, count in result.all()
    ]


async def create(db: AsyncSession, data: Dict[str, Any]) -> ActivityModel:
    """
    Insert a catalog activity.

    Raises:
        CityNotFound: If city_id does not resolve
        InvalidInput: If cost_min exceeds cost_max
    """
    values = {key: value for key, value in data.items() if key in ACTIVITY_UPDATABLE_FIELDS}
    if not values.get("name") or values.get("city_id") is None:
        raise InvalidInput("Activity name and city_id are required")

    if await db.scalar(select(CityModel.id).where(CityModel.id == values["city_id"])) is None:
        raise CityNotFound()

    _check_cost_range(values.get("cost_min"), values.get("cost_max"))
    values["category"] = _category(values.get("category")) or ItemCategory.ACTIVITY

    activity = ActivityModel(**values)
    db.add(activity)
    await db.flush()
    return activity


async def update(db: AsyncSession, activity_id: int, fields: Dict[str, Any]) -> ActivityModel:
    activity = await get(db, activity_id)
    if not activity:
        raise ActivityNotFound()

    values = {key: value for key, value in fields.items() if key in ACTIVITY_UPDATABLE_FIELDS}
    if not values:
        raise InvalidInput("No valid fields to update")
    reject_nulls(values, ACTIVITY_REQUIRED_FIELDS)

    if "city_id" in values:
        if await db.scalar(select(CityModel.id).where(CityModel.id == values["city_id"])) is None:
            raise CityNotFound()
    if "category" in values:
        values["category"] = _category(values["category"]) or ItemCategory.ACTIVITY

    _check_cost_range(
        values.get("cost_min", activity.cost_min),
        values.get("cost_max", activity.cost_max),
    )

    for key, value in values.items():
        setattr(activity, key, value)
    await db.flush()
    return activity


async def delete(db: AsyncSession, activity_id: int) -> bool:
    """
    Delete a catalog activity.

    Raises:
        InUse: If an itinerary item still references the activity
    """
    referenced = await db.scalar(
        select(ItineraryItemModel.id).where(ItineraryItemModel.activity_id == activity_id).limit(1)
    )
    if referenced is not None:
        raise InUse("Activity is scheduled in an itinerary and cannot be deleted")

    try:
        result = await db.execute(sa_delete(ActivityModel).where(ActivityModel.id == activity_id))
    except IntegrityError:
        raise InUse("Activity is still referenced and cannot be deleted")
    return result.rowcount > 0

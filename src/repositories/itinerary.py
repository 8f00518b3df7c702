"""
Itinerary repository: items scheduled on a trip, plus per-trip rollups.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import delete as sa_delete, func, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.errors import InvalidInput, ItineraryItemNotFound
from src.domain.models import ItemCategory
from src.infrastructure.database import transaction
from src.infrastructure.models import (
    ActivityModel,
    CityModel,
    ItineraryItemModel,
    TripModel,
)
from src.repositories.common import as_date, model_to_dict


ITEM_UPDATABLE_FIELDS = {
    "city_id", "activity_id", "title", "description", "location",
    "start_time", "end_time", "cost", "category", "booking_reference",
    "notes", "order_index",
}

UNSCHEDULED = "unscheduled"

# Summary keys per category
_CATEGORY_COUNT_KEYS = {
    ItemCategory.ACTIVITY: "activity_count",
    ItemCategory.HOTEL: "hotel_count",
    ItemCategory.FLIGHT: "flight_count",
    ItemCategory.RESTAURANT: "restaurant_count",
    ItemCategory.TRANSPORT: "transport_count",
    ItemCategory.OTHER: "other_count",
}


def _with_names():
    return (
        select(
            ItineraryItemModel,
            CityModel.name.label("city_name"),
            CityModel.country,
            ActivityModel.name.label("activity_name"),
            ActivityModel.rating.label("activity_rating"),
        )
        .outerjoin(CityModel, CityModel.id == ItineraryItemModel.city_id)
        .outerjoin(ActivityModel, ActivityModel.id == ItineraryItemModel.activity_id)
    )


def _item_row(row) -> Dict[str, Any]:
    item, city_name, country, activity_name, activity_rating = row
    data = model_to_dict(item)
    data.update(
        city_name=city_name,
        country=country,
        activity_name=activity_name,
        activity_rating=activity_rating,
    )
    return data


async def create(db: AsyncSession, data: Dict[str, Any]) -> ItineraryItemModel:
    """
    Insert an itinerary item. ``trip_id`` and ``title`` are required.
    """
    if data.get("trip_id") is None or not data.get("title"):
        raise InvalidInput("trip_id and title are required")

    values = {key: value for key, value in data.items() if key in ITEM_UPDATABLE_FIELDS}
    values["category"] = ItemCategory(values.get("category") or ItemCategory.OTHER)
    if values.get("order_index") is None:
        values["order_index"] = 0

    item = ItineraryItemModel(trip_id=data["trip_id"], **values)
    db.add(item)
    await db.flush()
    return item


async def get(db: AsyncSession, item_id: int) -> Optional[ItineraryItemModel]:
    result = await db.execute(select(ItineraryItemModel).where(ItineraryItemModel.id == item_id))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, item_id: int) -> Optional[Dict[str, Any]]:
    """Item joined with its city and activity names."""
    result = await db.execute(_with_names().where(ItineraryItemModel.id == item_id))
    row = result.first()
    return _item_row(row) if row is not None else None


async def owner_of(db: AsyncSession, item_id: int) -> Optional[Tuple[ItineraryItemModel, int]]:
    """The item and the id of the user owning its trip, in one join."""
    result = await db.execute(
        select(ItineraryItemModel, TripModel.user_id)
        .join(TripModel, TripModel.id == ItineraryItemModel.trip_id)
        .where(ItineraryItemModel.id == item_id)
    )
    row = result.first()
    return (row[0], row[1]) if row is not None else None


async def get_for_trip(
    db: AsyncSession,
    trip_id: int,
    category: Optional[str] = None,
    group_by_date: bool = False,
) -> Union[List[Dict[str, Any]], Dict[str, List[Dict[str, Any]]]]:
    """
    Items of a trip ordered by start time (unscheduled last), then order_index.

    With ``group_by_date`` the items are bucketed by calendar day of their
    start time; items without a start time go to the ``unscheduled`` bucket.
    """
    query = _with_names().where(ItineraryItemModel.trip_id == trip_id)
    if category:
        try:
            query = query.where(ItineraryItemModel.category == ItemCategory(category))
        except ValueError:
            raise InvalidInput(f"Unknown category '{category}'")

    result = await db.execute(
        query.order_by(
            ItineraryItemModel.start_time.asc().nulls_last(),
            ItineraryItemModel.order_index.asc(),
            ItineraryItemModel.id.asc(),
        )
    )
    items = [_item_row(row) for row in result.all()]

    if not group_by_date:
        return items

    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for item in items:
        grouped.setdefault(bucket_key(item["start_time"]), []).append(item)
    return grouped


async def update(db: AsyncSession, item: ItineraryItemModel, fields: Dict[str, Any]) -> ItineraryItemModel:
    values = {key: value for key, value in fields.items() if key in ITEM_UPDATABLE_FIELDS}
    if not values:
        raise InvalidInput("No valid fields to update")

    if "category" in values:
        values["category"] = ItemCategory(values["category"] or ItemCategory.OTHER)
    if "order_index" in values and values["order_index"] is None:
        values["order_index"] = 0
    if "title" in values and not values["title"]:
        raise InvalidInput("title cannot be empty")

    for key, value in values.items():
        setattr(item, key, value)
    item.updated_at = datetime.utcnow()
    await db.flush()
    return item


async def delete(db: AsyncSession, item_id: int) -> bool:
    result = await db.execute(sa_delete(ItineraryItemModel).where(ItineraryItemModel.id == item_id))
    return result.rowcount > 0


async def add_activity_to_trip(
    db: AsyncSession,
    trip_id: int,
    activity: ActivityModel,
    city: Optional[CityModel],
    schedule: Dict[str, Any],
) -> ItineraryItemModel:
    """
    Schedule a catalog activity on a trip.

    Title, description, city and location come from the activity; cost
    defaults to the activity's minimum cost. Schedule data overrides the
    cost and adds times, notes and ordering.
    """
    data: Dict[str, Any] = {
        "trip_id": trip_id,
        "city_id": activity.city_id,
        "activity_id": activity.id,
        "title": activity.name,
        "description": activity.description,
        "location": f"{city.name}, {city.country}" if city else None,
        "cost": activity.cost_min,
        "category": ItemCategory.ACTIVITY,
    }
    for key, value in schedule.items():
        if key in ITEM_UPDATABLE_FIELDS and value is not None:
            data[key] = value
    return await create(db, data)


# =============================================================================
# Rollups
# =============================================================================

async def trip_summary(db: AsyncSession, trip_id: int) -> Dict[str, Any]:
    """
    Item counts by category, cost totals, first/last start time and the
    number of distinct cities and days covered.
    """
    where = ItineraryItemModel.trip_id == trip_id

    totals = await db.execute(
        select(
            func.count(ItineraryItemModel.id),
            func.sum(ItineraryItemModel.cost),
            func.avg(ItineraryItemModel.cost),
            func.min(ItineraryItemModel.start_time),
            func.max(ItineraryItemModel.start_time),
            func.count(func.distinct(ItineraryItemModel.city_id)),
            func.count(func.distinct(func.date(ItineraryItemModel.start_time))),
        ).where(where)
    )
    total_items, total_cost, avg_cost, first_activity, last_activity, cities_count, days_count = totals.one()

    summary: Dict[str, Any] = {"total_items": total_items or 0}
    summary.update({key: 0 for key in _CATEGORY_COUNT_KEYS.values()})

    by_category = await db.execute(
        select(ItineraryItemModel.category, func.count(ItineraryItemModel.id))
        .where(where)
        .group_by(ItineraryItemModel.category)
    )
    for category, count in by_category.all():
        summary[_CATEGORY_COUNT_KEYS[ItemCategory(category)]] = count

    summary.update(
        total_cost=float(total_cost or 0),
        avg_cost=round(float(avg_cost), 2) if avg_cost is not None else 0.0,
        first_activity=first_activity,
        last_activity=last_activity,
        cities_count=cities_count or 0,
        days_count=days_count or 0,
    )
    return summary


async def cost_breakdown(db: AsyncSession, trip_id: int) -> List[Dict[str, Any]]:
    """Per-category cost totals over items with a positive cost, largest first."""
    total_cost = func.sum(ItineraryItemModel.cost).label("total_cost")
    result = await db.execute(
        select(
            ItineraryItemModel.category,
            func.count(ItineraryItemModel.id),
            total_cost,
            func.avg(ItineraryItemModel.cost),
        )
        .where(ItineraryItemModel.trip_id == trip_id, ItineraryItemModel.cost > 0)
        .group_by(ItineraryItemModel.category)
        .order_by(total_cost.desc())
    )
    return [
        {
            "category": ItemCategory(category).value,
            "item_count": count,
            "total_cost": float(total or 0),
            "avg_cost": round(float(avg), 2) if avg is not None else 0.0,
        }
        for category, count, total, avg in result.all()
    ]


async def reorder(db: AsyncSession, trip_id: int, item_orders: Sequence[Dict[str, Any]]) -> None:
    """
    Rewrite ``order_index`` for items of one trip, atomically.

    Each entry is ``{"id": ..., "order_index": ...}``; a missing
    ``order_index`` means the entry's position in the list. Either every
    index is written or, on any failure, none is.

    Raises:
        InvalidInput: If the list is empty or names an item twice
        ItineraryItemNotFound: If an id does not belong to the trip
    """
    if not item_orders:
        raise InvalidInput("items must be a non-empty list")

    ids = [int(entry["id"]) for entry in item_orders]
    duplicates = sorted({item_id for item_id in ids if ids.count(item_id) > 1})
    if duplicates:
        raise InvalidInput(
            "Each item may appear only once",
            details=[{"field": "items", "message": "Duplicate item id", "value": item_id} for item_id in duplicates],
        )

    async with transaction(db):
        result = await db.execute(
            select(ItineraryItemModel.id).where(
                ItineraryItemModel.trip_id == trip_id,
                ItineraryItemModel.id.in_(ids),
            )
        )
        found = set(result.scalars().all())
        missing = [item_id for item_id in ids if item_id not in found]
        if missing:
            raise ItineraryItemNotFound(
                f"Itinerary items not found in this trip: {', '.join(map(str, missing))}"
            )

        now = datetime.utcnow()
        for position, entry in enumerate(item_orders):
            order_index = entry.get("order_index")
            await db.execute(
                sa_update(ItineraryItemModel)
                .where(ItineraryItemModel.id == int(entry["id"]), ItineraryItemModel.trip_id == trip_id)
                .values(order_index=position if order_index is None else int(order_index), updated_at=now)
                .execution_options(synchronize_session="fetch")
            )


def bucket_key(value: Optional[datetime]) -> str:
    day = as_date(value)
    return day.isoformat() if day else UNSCHEDULED

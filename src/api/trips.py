"""
Trips API endpoints: trip CRUD, sharing, and the trip-scoped itinerary,
city and activity routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.catalog_service import CatalogService, get_catalog_service
from src.application.itinerary_service import ItineraryService, get_itinerary_service
from src.application.trip_service import TripService, get_trip_service
from src.auth.dependencies import Principal, get_current_user, get_principal
from src.auth.models import UserModel
from src.domain.errors import MissingFields
from src.domain.models import TripStatus
from src.domain.schemas import (
    ItineraryItemCreateRequest,
    ReorderRequest,
    ScheduleActivityRequest,
    TripCityUpdateRequest,
    TripCreateRequest,
    TripUpdateRequest,
)
from src.infrastructure.database import get_db


router = APIRouter(prefix="/trips", tags=["trips"])


@router.get(
    "/shared/{public_url}",
    summary="Get a shared trip",
    description="Public read-only view of a trip by its share token. No authentication required."
)
async def get_shared_trip(
    public_url: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.get_shared(db, public_url)
    trip["is_owner"] = principal.user_id is not None and principal.user_id == trip["user_id"]
    return {"trip": trip}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a trip",
)
async def create_trip(
    request: TripCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.create(db, user, request.model_dump())
    return {"message": "Trip created successfully", "trip": trip}


@router.get(
    "",
    summary="List my trips",
    description="Trips owned by the caller, newest first, with city/activity counts and total cost."
)
async def list_trips(
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    status_value = trip_status.value if trip_status else None
    trips = await service.list_for_user(db, user, status=status_value, limit=limit, offset=offset)
    total = await service.count_for_user(db, user, status=status_value)
    return {
        "trips": trips,
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


@router.get(
    "/{trip_id}",
    summary="Get trip by ID",
    description="Trip with owner, cities, stats and itinerary summary. Owner or admin only."
)
async def get_trip(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    return {"trip": await service.get(db, user, trip_id)}


@router.put(
    "/{trip_id}",
    summary="Update trip",
    description="Partial update. Turning is_public off revokes the share link."
)
async def update_trip(
    trip_id: int,
    request: TripUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.update(db, user, trip_id, request.model_dump(exclude_unset=True))
    return {"message": "Trip updated successfully", "trip": trip}


@router.delete(
    "/{trip_id}",
    summary="Delete trip",
    description="Deletes the trip with its cities and itinerary items."
)
async def delete_trip(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    await service.delete(db, user, trip_id)
    return {"message": "Trip deleted successfully"}


@router.post(
    "/{trip_id}/share",
    status_code=status.HTTP_201_CREATED,
    summary="Share trip",
    description="Make the trip public under a fresh unguessable token."
)
async def share_trip(
    trip_id: int,
    http_request: Request,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    shared = await service.share(db, user, trip_id, str(http_request.base_url))
    return {
        "message": "Trip shared successfully",
        "publicUrl": shared["public_url"],
        "shareUrl": shared["share_url"],
    }


@router.get(
    "/{trip_id}/stats",
    summary="Trip statistics",
)
async def get_trip_stats(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    result = await service.stats(db, user, trip_id)
    return {
        "stats": result["stats"],
        "summary": result["summary"],
        "costBreakdown": result["cost_breakdown"],
    }


# =============================================================================
# Itinerary
# =============================================================================

@router.get(
    "/{trip_id}/itinerary",
    summary="Get trip itinerary",
    description="Items ordered by start time then position; optionally grouped by day."
)
async def get_itinerary(
    trip_id: int,
    group_by_date: bool = Query(False, alias="groupByDate"),
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    itinerary = await service.list_for_trip(db, user, trip_id, group_by_date=group_by_date, category=category)
    return {"itinerary": itinerary}


@router.post(
    "/{trip_id}/itinerary",
    status_code=status.HTTP_201_CREATED,
    summary="Add itinerary item",
)
async def create_itinerary_item(
    trip_id: int,
    request: ItineraryItemCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    item = await service.create_item(db, user, trip_id, request.model_dump())
    return {"message": "Itinerary item created successfully", "itineraryItem": item}


@router.put(
    "/{trip_id}/itinerary/reorder",
    summary="Reorder itinerary items",
    description="Assign new positions to the trip's items in a single transaction."
)
async def reorder_itinerary(
    trip_id: int,
    request: ReorderRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    items = await service.reorder(
        db,
        user,
        trip_id,
        [entry.model_dump() for entry in request.items],
    )
    return {"message": "Items reordered successfully", "items": items}


@router.post(
    "/{trip_id}/itinerary/add-activity",
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a catalog activity",
)
async def add_activity_to_itinerary(
    trip_id: int,
    request: ScheduleActivityRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    if request.activity_id is None:
        raise MissingFields(
            "Activity ID is required",
            details=[{"field": "activity_id", "message": "This field is required", "value": None}],
        )
    item = await service.add_activity(db, user, trip_id, request.activity_id, request.schedule())
    return {"message": "Activity added to itinerary successfully", "itineraryItem": item}


@router.get(
    "/{trip_id}/summary",
    summary="Itinerary summary",
)
async def get_trip_summary(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    return {"summary": await service.summary(db, user, trip_id)}


@router.get(
    "/{trip_id}/cost-breakdown",
    summary="Cost by category",
)
async def get_cost_breakdown(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    return {"costBreakdown": await service.cost_breakdown(db, user, trip_id)}


# =============================================================================
# Cities & activities within a trip
# =============================================================================

@router.get(
    "/{trip_id}/cities",
    summary="Cities in trip",
)
async def get_trip_cities(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"cities": await service.cities_for_trip(db, user, trip_id)}


@router.put(
    "/{trip_id}/cities/{city_id}",
    summary="Update city stay",
)
async def update_trip_city(
    trip_id: int,
    city_id: int,
    request: TripCityUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    trip_city = await service.update_trip_city(db, user, trip_id, city_id, request.model_dump(exclude_unset=True))
    return {"message": "Trip city updated successfully", "tripCity": trip_city}


@router.get(
    "/{trip_id}/cities/{city_id}/activities",
    summary="Search activities in a trip city",
)
async def search_city_activities(
    trip_id: int,
    city_id: int,
    category: Optional[str] = Query(None),
    min_cost: Optional[float] = Query(None, alias="minCost", ge=0),
    max_cost: Optional[float] = Query(None, alias="maxCost", ge=0),
    min_duration: Optional[float] = Query(None, alias="minDuration", ge=0),
    max_duration: Optional[float] = Query(None, alias="maxDuration", ge=0),
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    activities = await service.city_activities(
        db,
        user,
        trip_id,
        city_id,
        category=category,
        min_cost=min_cost,
        max_cost=max_cost,
        min_duration=min_duration,
        max_duration=max_duration,
        min_rating=min_rating,
        limit=limit,
        offset=offset,
    )
    return {"activities": activities, "total": len(activities)}


@router.get(
    "/{trip_id}/cities/{city_id}/activities/popular",
    summary="Popular activities in a trip city",
)
async def popular_city_activities(
    trip_id: int,
    city_id: int,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"activities": await service.popular_city_activities(db, user, trip_id, city_id, limit)}


@router.get(
    "/{trip_id}/cities/{city_id}/activities/category/{category}",
    summary="Activities in a trip city by category",
)
async def city_activities_by_category(
    trip_id: int,
    city_id: int,
    category: str,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    activities = await service.city_activities_by_category(db, user, trip_id, city_id, category, limit)
    return {"activities": activities, "category": category}

"""
Activity catalog endpoints. Reads are public; scheduling an activity needs a
signed-in trip owner; create, update and delete need an admin.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.catalog_service import CatalogService, get_catalog_service
from src.application.itinerary_service import ItineraryService, get_itinerary_service
from src.auth.dependencies import get_current_user, require_admin
from src.auth.models import UserModel
from src.domain.errors import MissingFields
from src.domain.schemas import (
    ActivitiesForCitiesRequest,
    ActivityCreateRequest,
    ActivityUpdateRequest,
    ScheduleActivityRequest,
)
from src.infrastructure.database import get_db


router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("/categories", summary="Activity categories with counts")
async def list_categories(
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"categories": await service.categories(db)}


@router.get(
    "/search",
    summary="Search activities",
    description="Search across all cities by name, description or city name."
)
async def search_activities(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    min_cost: Optional[float] = Query(None, alias="minCost", ge=0),
    max_cost: Optional[float] = Query(None, alias="maxCost", ge=0),
    min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    activities = await service.search_activities(
        db,
        query=q,
        category=category,
        min_cost=min_cost,
        max_cost=max_cost,
        min_rating=min_rating,
        limit=limit,
    )
    return {"activities": activities, "total": len(activities)}


@router.get("/popular", summary="Best rated activities")
async def popular_activities(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"activities": await service.popular_activities(db, limit)}


@router.post(
    "/for-cities",
    summary="Top activities for several cities",
)
async def activities_for_cities(
    request: ActivitiesForCitiesRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    grouped = await service.activities_for_cities(db, request.city_ids, category=request.category, limit=request.limit)
    return {"activities": grouped}


@router.get("/{activity_id}", summary="Get activity by ID")
async def get_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"activity": await service.get_activity(db, activity_id)}


@router.post(
    "/{activity_id}/add-to-trip",
    status_code=status.HTTP_201_CREATED,
    summary="Add activity to trip",
    description="Schedule the activity as an itinerary item on one of the caller's trips."
)
async def add_activity_to_trip(
    activity_id: int,
    request: ScheduleActivityRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: ItineraryService = Depends(get_itinerary_service),
):
    if request.trip_id is None:
        raise MissingFields(
            "Trip ID is required",
            details=[{"field": "trip_id", "message": "This field is required", "value": None}],
        )
    item = await service.add_activity(db, user, request.trip_id, activity_id, request.schedule())
    return {"message": "Activity added to trip successfully", "itineraryItem": item}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create activity",
    description="Admin only."
)
async def create_activity(
    request: ActivityCreateRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    activity = await service.create_activity(db, request.model_dump(exclude_unset=True))
    return {"message": "Activity created successfully", "activity": activity}


@router.put("/{activity_id}", summary="Update activity", description="Admin only.")
async def update_activity(
    activity_id: int,
    request: ActivityUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    activity = await service.update_activity(db, activity_id, request.model_dump(exclude_unset=True))
    return {"message": "Activity updated successfully", "activity": activity}


@router.delete(
    "/{activity_id}",
    summary="Delete activity",
    description="Admin only. Refused while an itinerary item references the activity."
)
async def delete_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    await service.delete_activity(db, activity_id)
    return {"message": "Activity deleted successfully"}

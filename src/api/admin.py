"""
Admin API endpoints. Every route requires an admin bearer token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.admin_service import AdminService, get_admin_service
from src.application.catalog_service import CatalogService, get_catalog_service
from src.auth.dependencies import require_admin
from src.auth.models import UserModel
from src.domain.models import TripStatus, UserRole
from src.domain.schemas import (
    ActivityCreateRequest,
    ActivityUpdateRequest,
    AdminUserUpdateRequest,
    CityCreateRequest,
    CityUpdateRequest,
    FeatureTripRequest,
)
from src.infrastructure.database import get_db


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get(
    "/dashboard",
    summary="Admin dashboard",
    description="User and trip stats, popular catalog entries, recent signups and trips, system health. "
                "A section that cannot be computed is returned as null."
)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return {
        "message": "Dashboard analytics retrieved successfully",
        "analytics": await service.dashboard(db),
    }


# =============================================================================
# Users
# =============================================================================

@router.get("/users", summary="List users")
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    result = await service.list_users(
        db,
        search=search,
        role=role.value if role else None,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {"message": "Users retrieved successfully", **result}


@router.put("/users/{user_id}", summary="Update user")
async def update_user(
    user_id: int,
    request: AdminUserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    user = await service.update_user(db, admin, user_id, request.model_dump(exclude_unset=True))
    return {"message": "User updated successfully", "user": user}


@router.delete("/users/{user_id}", summary="Delete user")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    await service.delete_user(db, admin, user_id)
    return {"message": "User deleted successfully"}


# =============================================================================
# Trips
# =============================================================================

@router.get("/trips", summary="List all trips")
async def list_trips(
    search: Optional[str] = Query(None),
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    result = await service.list_trips(
        db,
        search=search,
        status=trip_status.value if trip_status else None,
        is_public=is_public,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return {"message": "Trips retrieved successfully", **result}


@router.get("/trips/analytics", summary="Trip analytics")
async def trip_analytics(
    period: str = Query("30d", description="Window such as 7d, 4w, 3m or 1y"),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return {"analytics": await service.trip_analytics(db, period)}


@router.put("/trips/{trip_id}/feature", summary="Feature or unfeature a trip")
async def feature_trip(
    trip_id: int,
    request: FeatureTripRequest,
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    trip = await service.feature_trip(db, trip_id, request.featured)
    return {
        "message": f"Trip {'featured' if request.featured else 'unfeatured'} successfully",
        "trip": trip,
    }


# =============================================================================
# Analytics
# =============================================================================

@router.get("/analytics/users", summary="User analytics")
async def user_analytics(
    period: str = Query("30d", description="Window such as 7d, 4w, 3m or 1y"),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return {"analytics": await service.user_analytics(db, period)}


# =============================================================================
# Catalog
# =============================================================================

@router.get("/cities", summary="List catalog cities")
async def list_cities(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return await service.list_cities(db, search=search, page=page, limit=limit)


@router.post("/cities", status_code=status.HTTP_201_CREATED, summary="Create city")
async def create_city(
    request: CityCreateRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    city = await service.create_city(db, request.model_dump(exclude_unset=True))
    return {"message": "City created successfully", "city": city}


@router.put("/cities/{city_id}", summary="Update city")
async def update_city(
    city_id: int,
    request: CityUpdateRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    city = await service.update_city(db, city_id, request.model_dump(exclude_unset=True))
    return {"message": "City updated successfully", "city": city}


@router.delete(
    "/cities/{city_id}",
    summary="Delete city",
    description="Refused while trips, activities or itinerary items reference the city."
)
async def delete_city(
    city_id: int,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    await service.delete_city(db, city_id)
    return {"message": "City deleted successfully"}


@router.get("/activities", summary="List catalog activities")
async def list_activities(
    search: Optional[str] = Query(None),
    city_id: Optional[int] = Query(None, alias="cityId"),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return await service.list_activities(
        db,
        search=search,
        city_id=city_id,
        category=category,
        page=page,
        limit=limit,
    )


@router.post("/activities", status_code=status.HTTP_201_CREATED, summary="Create activity")
async def create_activity(
    request: ActivityCreateRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    activity = await service.create_activity(db, request.model_dump(exclude_unset=True))
    return {"message": "Activity created successfully", "activity": activity}


@router.put("/activities/{activity_id}", summary="Update activity")
async def update_activity(
    activity_id: int,
    request: ActivityUpdateRequest,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    activity = await service.update_activity(db, activity_id, request.model_dump(exclude_unset=True))
    return {"message": "Activity updated successfully", "activity": activity}


@router.delete("/activities/{activity_id}", summary="Delete activity")
async def delete_activity(
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    await service.delete_activity(db, activity_id)
    return {"message": "Activity deleted successfully"}


# =============================================================================
# System
# =============================================================================

@router.get("/system/health", summary="System health")
async def system_health(
    db: AsyncSession = Depends(get_db),
    service: AdminService = Depends(get_admin_service),
):
    return await service.system_health(db)


@router.get("/system/logs", summary="Recent log records")
async def system_logs(
    limit: int = Query(100, ge=1, le=1000),
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
    service: AdminService = Depends(get_admin_service),
):
    return {"logs": service.logs(limit=limit, level=level)}

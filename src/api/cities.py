"""
City catalog endpoints. Reads are public; adding a city to a trip needs a
signed-in owner, creating one needs an admin.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.application.catalog_service import CatalogService, get_catalog_service
from src.auth.dependencies import get_current_user, require_admin
from src.auth.models import UserModel
from src.domain.schemas import CityCreateRequest, TripCityRequest
from src.infrastructure.database import get_db


router = APIRouter(prefix="/cities", tags=["cities"])


@router.get(
    "/search",
    summary="Search cities",
    description="Substring search over name and country, most popular first."
)
async def search_cities(
    q: Optional[str] = Query(None, description="Search term, at least 2 characters"),
    country: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    cities = await service.search_cities(db, q, country=country, limit=limit, offset=offset)
    return {"cities": cities, "total": len(cities)}


@router.get("/popular", summary="Popular cities")
async def popular_cities(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"cities": await service.popular_cities(db, limit)}


@router.get("/countries", summary="Countries with city counts")
async def list_countries(
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"countries": await service.countries(db)}


@router.get("/{city_id}", summary="Get city by ID")
async def get_city(
    city_id: int,
    db: AsyncSession = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"city": await service.get_city(db, city_id)}


@router.post(
    "/{city_id}/add-to-trip",
    status_code=status.HTTP_201_CREATED,
    summary="Add city to trip",
)
async def add_city_to_trip(
    city_id: int,
    request: TripCityRequest,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    trip_city = await service.add_city_to_trip(
        db,
        user,
        city_id,
        request.trip_id,
        arrival_date=request.arrival_date,
        departure_date=request.departure_date,
        order_index=request.order_index,
    )
    return {"message": "City added to trip successfully", "tripCity": trip_city}


@router.delete(
    "/{city_id}/remove-from-trip/{trip_id}",
    summary="Remove city from trip",
)
async def remove_city_from_trip(
    city_id: int,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    await service.remove_city_from_trip(db, user, city_id, trip_id)
    return {"message": "City removed from trip successfully"}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create city",
    description="Admin only."
)
async def create_city(
    request: CityCreateRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    city = await service.create_city(db, request.model_dump(exclude_unset=True))
    return {"message": "City created successfully", "city": city}

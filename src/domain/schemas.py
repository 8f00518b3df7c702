"""
Request schemas for the trip, itinerary, catalog and admin endpoints.

Bodies accept snake_case field names as well as the camelCase spellings sent
by the web client. Partial updates are read with ``model_dump(exclude_unset=True)``
so that only fields present in the request are applied.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from src.domain.models import ItemCategory, TripStatus, UserRole


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# =============================================================================
# Trips
# =============================================================================

class TripCreateRequest(BaseModel):
    """Request schema for creating a trip."""
    title: Optional[str] = Field(None, max_length=255, description="Trip title")
    description: Optional[str] = None
    start_date: Optional[date] = Field(None, validation_alias=_alias("start_date", "startDate"))
    end_date: Optional[date] = Field(None, validation_alias=_alias("end_date", "endDate"))
    cover_photo_path: Optional[str] = Field(
        None,
        max_length=500,
        validation_alias=_alias("cover_photo_path", "coverPhotoPath", "coverPhoto"),
    )
    budget: Optional[float] = Field(None, ge=0)
    status: TripStatus = TripStatus.PLANNING
    is_public: bool = Field(False, validation_alias=_alias("is_public", "isPublic"))

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Summer in Portugal",
                "description": "Lisbon, Porto and the Algarve",
                "start_date": "2025-07-01",
                "end_date": "2025-07-14",
                "budget": 3500,
            }
        }


class TripUpdateRequest(BaseModel):
    """Request schema for updating a trip (partial updates)."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = Field(None, validation_alias=_alias("start_date", "startDate"))
    end_date: Optional[date] = Field(None, validation_alias=_alias("end_date", "endDate"))
    cover_photo_path: Optional[str] = Field(
        None,
        max_length=500,
        validation_alias=_alias("cover_photo_path", "coverPhotoPath", "coverPhoto"),
    )
    budget: Optional[float] = Field(None, ge=0)
    status: Optional[TripStatus] = None
    is_public: Optional[bool] = Field(None, validation_alias=_alias("is_public", "isPublic"))
    featured: Optional[bool] = None


class TripCityRequest(BaseModel):
    """Add a catalog city to a trip."""
    trip_id: Optional[int] = Field(None, validation_alias=_alias("trip_id", "tripId"))
    arrival_date: Optional[date] = Field(None, validation_alias=_alias("arrival_date", "arrivalDate"))
    departure_date: Optional[date] = Field(None, validation_alias=_alias("departure_date", "departureDate"))
    order_index: Optional[int] = Field(None, ge=0, validation_alias=_alias("order_index", "orderIndex"))


class TripCityUpdateRequest(BaseModel):
    """Update stay dates or position of a city within a trip."""
    arrival_date: Optional[date] = Field(None, validation_alias=_alias("arrival_date", "arrivalDate"))
    departure_date: Optional[date] = Field(None, validation_alias=_alias("departure_date", "departureDate"))
    order_index: Optional[int] = Field(None, ge=0, validation_alias=_alias("order_index", "orderIndex"))


# =============================================================================
# Itinerary
# =============================================================================

class ItineraryItemCreateRequest(BaseModel):
    """Request schema for adding an item to a trip's itinerary."""
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    city_id: Optional[int] = Field(None, validation_alias=_alias("city_id", "cityId"))
    activity_id: Optional[int] = Field(None, validation_alias=_alias("activity_id", "activityId"))
    location: Optional[str] = Field(None, max_length=500)
    start_time: Optional[datetime] = Field(None, validation_alias=_alias("start_time", "startTime"))
    end_time: Optional[datetime] = Field(None, validation_alias=_alias("end_time", "endTime"))
    cost: Optional[float] = Field(None, ge=0)
    category: ItemCategory = ItemCategory.OTHER
    booking_reference: Optional[str] = Field(
        None,
        max_length=255,
        validation_alias=_alias("booking_reference", "bookingReference"),
    )
    notes: Optional[str] = None
    order_index: int = Field(0, ge=0, validation_alias=_alias("order_index", "orderIndex"))


class ItineraryItemUpdateRequest(BaseModel):
    """Request schema for updating an itinerary item (partial updates)."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    city_id: Optional[int] = Field(None, validation_alias=_alias("city_id", "cityId"))
    activity_id: Optional[int] = Field(None, validation_alias=_alias("activity_id", "activityId"))
    location: Optional[str] = Field(None, max_length=500)
    start_time: Optional[datetime] = Field(None, validation_alias=_alias("start_time", "startTime"))
    end_time: Optional[datetime] = Field(None, validation_alias=_alias("end_time", "endTime"))
    cost: Optional[float] = Field(None, ge=0)
    category: Optional[ItemCategory] = None
    booking_reference: Optional[str] = Field(
        None,
        max_length=255,
        validation_alias=_alias("booking_reference", "bookingReference"),
    )
    notes: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0, validation_alias=_alias("order_index", "orderIndex"))


class ItemOrder(BaseModel):
    """New position of one item; defaults to its place in the list."""
    id: int
    order_index: Optional[int] = Field(None, ge=0, validation_alias=_alias("order_index", "orderIndex"))


class ReorderRequest(BaseModel):
    items: List[ItemOrder] = Field(default_factory=list, validation_alias=_alias("items", "itemOrders"))


class ScheduleActivityRequest(BaseModel):
    """Schedule a catalog activity; explicit values override the catalog defaults."""
    activity_id: Optional[int] = Field(None, validation_alias=_alias("activity_id", "activityId"))
    trip_id: Optional[int] = Field(None, validation_alias=_alias("trip_id", "tripId"))
    start_time: Optional[datetime] = Field(None, validation_alias=_alias("start_time", "startTime"))
    end_time: Optional[datetime] = Field(None, validation_alias=_alias("end_time", "endTime"))
    cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    def schedule(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"activity_id", "trip_id"})


# =============================================================================
# Catalog
# =============================================================================

class ActivitiesForCitiesRequest(BaseModel):
    city_ids: Optional[List[int]] = Field(None, validation_alias=_alias("city_ids", "cityIds"))
    category: Optional[str] = None
    limit: int = Field(5, ge=1, le=100)


class CityCreateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=255)
    country_code: Optional[str] = Field(None, max_length=3, validation_alias=_alias("country_code", "countryCode"))
    lat: Optional[float] = Field(None, ge=-90, le=90, validation_alias=_alias("lat", "latitude"))
    lng: Optional[float] = Field(None, ge=-180, le=180, validation_alias=_alias("lng", "longitude"))
    cost_index: Optional[float] = Field(None, ge=0, validation_alias=_alias("cost_index", "costIndex"))
    popularity_score: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=_alias("popularity_score", "popularityScore"),
    )
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500, validation_alias=_alias("image_url", "imageUrl"))


class CityUpdateRequest(CityCreateRequest):
    """Partial update of a catalog city."""


class ActivityCreateRequest(BaseModel):
    city_id: Optional[int] = Field(None, validation_alias=_alias("city_id", "cityId"))
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[ItemCategory] = None
    duration_hours: Optional[float] = Field(None, ge=0, validation_alias=_alias("duration_hours", "durationHours"))
    cost_min: Optional[float] = Field(None, ge=0, validation_alias=_alias("cost_min", "costMin"))
    cost_max: Optional[float] = Field(None, ge=0, validation_alias=_alias("cost_max", "costMax"))
    rating: Optional[float] = Field(None, ge=0, le=5)
    image_url: Optional[str] = Field(None, max_length=500, validation_alias=_alias("image_url", "imageUrl"))
    website_url: Optional[str] = Field(None, max_length=500, validation_alias=_alias("website_url", "websiteUrl"))


class ActivityUpdateRequest(ActivityCreateRequest):
    """Partial update of a catalog activity."""


# =============================================================================
# Admin
# =============================================================================

class AdminUserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255, validation_alias=_alias("full_name", "fullName"))
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None


class FeatureTripRequest(BaseModel):
    featured: bool = True

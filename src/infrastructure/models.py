"""
SQLAlchemy ORM models for database tables.
These are separate from the API schemas to keep the HTTP shapes independent of storage.
"""
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from datetime import datetime

from src.infrastructure.database import Base
from src.domain.models import ItemCategory, TripStatus, enum_values


# Money columns come back as float rather than Decimal
Money = Numeric(10, 2, asdecimal=False)


def category_enum() -> SQLEnum:
    return SQLEnum(ItemCategory, name="item_category", values_callable=enum_values)


class CityModel(Base):
    """Catalog city, curated by admins."""
    __tablename__ = "cities"

    __table_args__ = (
        UniqueConstraint("name", "country", name="uq_cities_name_country"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    country = Column(String(255), nullable=False, index=True)
    country_code = Column(String(3), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    cost_index = Column(Float, nullable=True)
    popularity_score = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class ActivityModel(Base):
    """Catalog activity located in a city."""
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(category_enum(), nullable=False, default=ItemCategory.ACTIVITY)
    duration_hours = Column(Float, nullable=True)
    cost_min = Column(Money, nullable=True)
    cost_max = Column(Money, nullable=True)
    rating = Column(Float, nullable=True)
    image_url = Column(String(500), nullable=True)
    website_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class TripModel(Base):
    """A user's trip. Owns its trip cities and itinerary items."""
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    cover_photo_path = Column(String(500), nullable=True)
    budget = Column(Money, nullable=True)
    status = Column(
        SQLEnum(TripStatus, name="trip_status", values_callable=enum_values),
        nullable=False,
        default=TripStatus.PLANNING,
    )
    is_public = Column(Boolean, nullable=False, default=False)
    # Present iff is_public
    public_url = Column(String(64), nullable=True, unique=True)
    featured = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class TripCityModel(Base):
    """Ordered membership of a catalog city in a trip."""
    __tablename__ = "trip_cities"

    __table_args__ = (
        UniqueConstraint("trip_id", "city_id", name="uq_trip_cities_trip_city"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="RESTRICT"), nullable=False, index=True)
    arrival_date = Column(Date, nullable=True)
    departure_date = Column(Date, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ItineraryItemModel(Base):
    """Timestamped, costed entry in a trip's itinerary."""
    __tablename__ = "itinerary_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="RESTRICT"), nullable=True, index=True)
    activity_id = Column(Integer, ForeignKey("activities.id", ondelete="RESTRICT"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    cost = Column(Money, nullable=True)
    category = Column(category_enum(), nullable=False, default=ItemCategory.OTHER)
    booking_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

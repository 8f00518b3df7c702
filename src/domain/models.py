"""
Core domain values for the Globetrotter backend: enums and the trip status
state machine.
"""
from enum import Enum
from typing import Dict, FrozenSet


# Enums for constrained values
class UserRole(str, Enum):
    """Account role."""
    USER = "user"
    ADMIN = "admin"


class TripStatus(str, Enum):
    """Lifecycle state of a trip."""
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemCategory(str, Enum):
    """Category shared by catalog activities and itinerary items."""
    FLIGHT = "flight"
    HOTEL = "hotel"
    ACTIVITY = "activity"
    RESTAURANT = "restaurant"
    TRANSPORT = "transport"
    OTHER = "other"


# Trip status state machine. Completed and cancelled are terminal.
TRIP_STATUS_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.PLANNING: frozenset({TripStatus.ACTIVE, TripStatus.CANCELLED}),
    TripStatus.ACTIVE: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    """Return True if a trip may move from ``current`` to ``target``."""
    current = TripStatus(current)
    target = TripStatus(target)
    if current == target:
        return True
    return target in TRIP_STATUS_TRANSITIONS[current]


def enum_values(enum_cls) -> list:
    """values_callable for SQLAlchemy Enum columns: persist values, not names."""
    return [member.value for member in enum_cls]

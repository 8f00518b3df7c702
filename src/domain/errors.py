"""
Domain error kinds.

Every failure a service or repository can report is one of these classes.
Each carries a stable machine-readable ``code`` and the HTTP status the API
layer maps it to; ``src.api.errors`` renders them as
``{"message": ..., "error": code, "details": [...]}``.
"""
from typing import Any, List, Optional


class DomainError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"
    status_code = 500
    message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[List[Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


# Validation (400)

class ValidationFailure(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Validation failed"


class MissingFields(DomainError):
    code = "MISSING_FIELDS"
    status_code = 400
    message = "Required fields are missing"


class InvalidEmail(DomainError):
    code = "INVALID_EMAIL"
    status_code = 400
    message = "Please provide a valid email address"


class InvalidPassword(DomainError):
    code = "INVALID_PASSWORD"
    status_code = 400
    message = "Password must be at least 6 characters long"


class InvalidDates(DomainError):
    code = "INVALID_DATES"
    status_code = 400
    message = "End date must be after start date"


class InvalidInput(DomainError):
    code = "INVALID_INPUT"
    status_code = 400
    message = "Invalid input"


class InvalidStatusTransition(DomainError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 400
    message = "Trip status cannot change that way"


class InvalidResetToken(DomainError):
    code = "INVALID_RESET_TOKEN"
    status_code = 400
    message = "Reset token is invalid or has expired"


class SelfDemote(DomainError):
    code = "SELF_DEMOTION_ERROR"
    status_code = 400
    message = "You cannot remove your own admin privileges"


class SelfDelete(DomainError):
    code = "SELF_DELETE_ERROR"
    status_code = 400
    message = "You cannot delete your own account"


# Authentication (401) / authorization (403)

class InvalidCredentials(DomainError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    message = "Invalid email or password"


class MissingToken(DomainError):
    code = "MISSING_TOKEN"
    status_code = 401
    message = "Access token is required"


class InvalidToken(DomainError):
    code = "INVALID_TOKEN"
    status_code = 401
    message = "Invalid access token"


class TokenExpired(DomainError):
    code = "TOKEN_EXPIRED"
    status_code = 401
    message = "Access token has expired"


class InsufficientPrivileges(DomainError):
    code = "INSUFFICIENT_PRIVILEGES"
    status_code = 403
    message = "Admin access required"


class Forbidden(DomainError):
    code = "ACCESS_DENIED"
    status_code = 403
    message = "You do not have access to this resource"


# Not found (404)

class UserNotFound(DomainError):
    code = "USER_NOT_FOUND"
    status_code = 404
    message = "User not found"


class TripNotFound(DomainError):
    code = "TRIP_NOT_FOUND"
    status_code = 404
    message = "Trip not found"


class CityNotFound(DomainError):
    code = "CITY_NOT_FOUND"
    status_code = 404
    message = "City not found"


class ActivityNotFound(DomainError):
    code = "ACTIVITY_NOT_FOUND"
    status_code = 404
    message = "Activity not found"


class ItineraryItemNotFound(DomainError):
    code = "ITINERARY_ITEM_NOT_FOUND"
    status_code = 404
    message = "Itinerary item not found"


class CityNotInTrip(DomainError):
    code = "CITY_NOT_IN_TRIP"
    status_code = 404
    message = "City is not part of this trip"


# Conflicts (409)

class EmailExists(DomainError):
    code = "EMAIL_EXISTS"
    status_code = 409
    message = "An account with this email already exists"


class CityAlreadyInTrip(DomainError):
    code = "CITY_ALREADY_IN_TRIP"
    status_code = 409
    message = "City is already added to this trip"


class CityAlreadyExists(DomainError):
    code = "CITY_ALREADY_EXISTS"
    status_code = 409
    message = "City already exists"


class InUse(DomainError):
    code = "RESOURCE_IN_USE"
    status_code = 409
    message = "Resource is still referenced and cannot be deleted"


# Infrastructure (5xx)

class DatabaseError(DomainError):
    code = "DATABASE_ERROR"
    status_code = 500
    message = "A database error occurred"


class DatabaseUnconfigured(DomainError):
    code = "DATABASE_NOT_CONFIGURED"
    status_code = 503
    message = "Database not configured"

"""
Helpers shared by the repositories: sort allow-lists, pagination, text search,
row serialisation and date bucketing.
"""
import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.sql.elements import ColumnElement

from src.domain.errors import InvalidInput


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def order_clause(
    sort_by: Optional[str],
    sort_order: Optional[str],
    allowed: Mapping[str, ColumnElement],
    default: str,
) -> ColumnElement:
    """
    Resolve a caller supplied sort column against an allow-list.

    Raises:
        InvalidInput: If the column or direction is not allowed
    """
    key = sort_by or default
    if key not in allowed:
        raise InvalidInput(
            f"Cannot sort by '{key}'",
            details=[{
                "field": "sort_by",
                "message": f"Must be one of: {', '.join(sorted(allowed))}",
                "value": key,
            }],
        )

    direction = (sort_order or "desc").lower()
    if direction not in ("asc", "desc"):
        raise InvalidInput(
            f"Invalid sort order '{sort_order}'",
            details=[{"field": "sort_order", "message": "Must be asc or desc", "value": sort_order}],
        )

    column = allowed[key]
    return column.asc() if direction == "asc" else column.desc()


def clamp_limit(limit: Optional[int], default: int = DEFAULT_PAGE_SIZE, maximum: int = MAX_PAGE_SIZE) -> int:
    if not limit or limit < 1:
        return default
    return min(int(limit), maximum)


def page_offset(page: Optional[int], limit: int) -> int:
    page = max(int(page or 1), 1)
    return (page - 1) * limit


def pagination(total: int, page: Optional[int], limit: int) -> Dict[str, int]:
    return {
        "page": max(int(page or 1), 1),
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def contains_ci(column: ColumnElement, term: str) -> ColumnElement:
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def reject_nulls(values: Mapping[str, Any], required: Iterable[str]) -> None:
    """Raise InvalidInput if a partial update sets a NOT NULL column to null."""
    null_fields = [key for key in required if key in values and values[key] is None]
    if null_fields:
        raise InvalidInput(
            f"{', '.join(null_fields)} cannot be null",
            details=[{"field": key, "message": "Cannot be null", "value": None} for key in null_fields],
        )


def model_to_dict(obj: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Column attributes of an ORM instance as a plain dict."""
    skip = set(exclude)
    return {
        attr.key: getattr(obj, attr.key)
        for attr in inspect(obj).mapper.column_attrs
        if attr.key not in skip
    }


def days_ago(days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=days)


def as_date(value: Any) -> Optional[date]:
    """Normalise a DATE()/datetime/str value coming back from the database."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def count_by_day(values: Iterable[Optional[datetime]]) -> List[Dict[str, Any]]:
    """Bucket timestamps per calendar day, oldest first."""
    counter = Counter(value.date().isoformat() for value in values if value is not None)
    return [{"date": day, "count": counter[day]} for day in sorted(counter)]


def count_by_month(values: Iterable[Optional[datetime]]) -> List[Dict[str, Any]]:
    """Bucket timestamps per calendar month (YYYY-MM), oldest first."""
    counter = Counter(value.strftime("%Y-%m") for value in values if value is not None)
    return [{"month": month, "count": counter[month]} for month in sorted(counter)]


def months_ago(months: int) -> datetime:
    """First instant of the month ``months`` months before the current one."""
    now = datetime.utcnow()
    year, month = now.year, now.month - months
    while month < 1:
        month += 12
        year -= 1
    return datetime(year, month, 1)

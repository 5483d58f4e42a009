"""
Guardrails for the analytics engine - caller contract validation.

Numeric edge cases (empty series, zero totals, non-convergence) are absorbed
by the calculations themselves. The checks here only reject malformed input:
wrong record types, non-numeric or non-finite numbers, missing collections.
"""

import math
import numbers
from datetime import date, datetime, time
from typing import Any, Iterable, List, Type


class InvalidArgumentError(ValueError):
    """Raised when a caller passes malformed or wrongly typed input."""
    pass


def require_real(value: Any, name: str) -> float:
    """
    Validate a finite real number and return it as float.

    Booleans are rejected even though bool subclasses int.

    Raises:
        InvalidArgumentError: If value is not a finite real number
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidArgumentError(
            f"{name} must be a real number, got {type(value).__name__}"
        )

    result = float(value)
    if math.isnan(result) or math.isinf(result):
        raise InvalidArgumentError(f"{name} must be finite, got {result}")

    return result


def require_non_negative(value: Any, name: str) -> float:
    """Validate a finite real number >= 0."""
    result = require_real(value, name)
    if result < 0:
        raise InvalidArgumentError(f"{name} must be non-negative, got {result}")
    return result


def require_text(value: Any, name: str) -> str:
    """Validate a string field (may be empty)."""
    if not isinstance(value, str):
        raise InvalidArgumentError(
            f"{name} must be a string, got {type(value).__name__}"
        )
    return value


def require_timestamp(value: Any, name: str) -> datetime:
    """
    Validate a point in time.

    Accepts datetime (including pandas.Timestamp) or date; a plain date is
    taken as midnight of that day.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise InvalidArgumentError(
        f"{name} must be a datetime or date, got {type(value).__name__}"
    )


def _require_collection(items: Any, name: str) -> List[Any]:
    if items is None:
        raise InvalidArgumentError(f"{name} must be a collection, got None")
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        raise InvalidArgumentError(
            f"{name} must be a collection, got {type(items).__name__}"
        )
    return list(items)


def require_series(values: Any, name: str) -> List[float]:
    """
    Validate a sequence of finite real numbers.

    Returns:
        List of floats in input order
    """
    items = _require_collection(values, name)
    return [require_real(v, f"{name}[{i}]") for i, v in enumerate(items)]


def require_records(items: Any, record_type: Type, name: str) -> List[Any]:
    """
    Validate that every element of a collection is a record_type instance.

    Returns:
        List of records in input order
    """
    records = _require_collection(items, name)
    for i, record in enumerate(records):
        if not isinstance(record, record_type):
            raise InvalidArgumentError(
                f"{name}[{i}] must be {record_type.__name__}, "
                f"got {type(record).__name__}"
            )
    return records


def require_consistent_timezones(timestamps: List[datetime], name: str) -> None:
    """
    Reject a series mixing naive and timezone-aware timestamps.

    Such a series cannot be ordered or differenced.
    """
    aware = {ts.tzinfo is not None and ts.utcoffset() is not None for ts in timestamps}
    if len(aware) > 1:
        raise InvalidArgumentError(
            f"{name} mixes naive and timezone-aware timestamps"
        )

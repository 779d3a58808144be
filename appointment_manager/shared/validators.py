"""Shared validation utilities"""

from datetime import date, datetime, time
from typing import Optional, Union

from ..config import VALID_DURATIONS

TIME_INPUT_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M%p")


def parse_appointment_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an appointment date.

    Args:
        value: 'YYYY-MM-DD' string or date object

    Returns:
        date object, or None when value is empty

    Raises:
        ValueError: If the date is malformed
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (TypeError, ValueError, AttributeError) as e:
        raise ValueError("Date must be in YYYY-MM-DD format") from e


def parse_appointment_time(value: Union[str, time, None]) -> Optional[time]:
    """
    Parse an appointment start time.

    Accepts 24-hour 'HH:MM' / 'HH:MM:SS' (what <input type="time"> sends)
    and 12-hour '9:30 AM'. Seconds are dropped.

    Raises:
        ValueError: If the time is malformed
    """
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise ValueError("Time must be in HH:MM format")

    raw = value.strip().upper()
    for fmt in TIME_INPUT_FORMATS:
        try:
            return datetime.strptime(raw, fmt).time().replace(second=0)
        except ValueError:
            continue

    raise ValueError("Time must be in HH:MM format")


def validate_duration(duration: int) -> int:
    """Service durations are limited to a fixed set of minute values"""
    if duration not in VALID_DURATIONS:
        allowed = ", ".join(str(d) for d in VALID_DURATIONS)
        raise ValueError(f"Duration must be {allowed} minutes")
    return duration


def validate_required_text(value: Optional[str], field_name: str) -> str:
    """Strip whitespace and reject empty strings"""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{field_name} is required")
    return cleaned

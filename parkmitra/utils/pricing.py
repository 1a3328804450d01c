import math
from datetime import datetime

from parkmitra.core.config import MIN_BOOKING_HOURS, MAX_BOOKING_HOURS
from parkmitra.core.exceptions import InvalidWindow

SECONDS_PER_HOUR = 3600


def duration_hours(start: datetime, end: datetime) -> int:
    """Billable hours, always rounded up to the next full hour."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_HOUR)


def validate_window(
    start: datetime,
    end: datetime,
    now: datetime,
    min_hours: int = MIN_BOOKING_HOURS,
    max_hours: int = MAX_BOOKING_HOURS,
) -> int:
    """Check a requested booking window and return its billable hours."""
    if end <= start:
        raise InvalidWindow("End time must be after start time")

    if end <= now:
        raise InvalidWindow("Booking window has already ended")

    hours = duration_hours(start, end)

    if hours < min_hours:
        raise InvalidWindow(f"Booking duration must be at least {min_hours} hour(s)")

    if hours > max_hours:
        raise InvalidWindow(f"Booking duration cannot exceed {max_hours} hours")

    return hours


def calculate_booking_amount(hours: int, hourly_rate: float, is_member: bool) -> float:
    # Members park free at their own organization
    if is_member:
        return 0.0
    return round(hours * hourly_rate, 2)

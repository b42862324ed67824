"""
Trip sequencing rules.

Pure functions: they look only at their arguments and return the
rejection to raise, or None when the trip is acceptable.
"""

from datetime import datetime, timezone
from typing import Optional

from fleet_backend.app.core.exceptions import (
    TripValidationError,
    InvalidTimeRangeError,
    DepartureNotAfterLastTripError,
    OdometerNotIncreasingError,
)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_time_range(departure_at: datetime, arrival_at: datetime) -> Optional[TripValidationError]:
    if as_utc(arrival_at) <= as_utc(departure_at):
        return InvalidTimeRangeError()
    return None


def check_odometer(final_odometer: int, latest) -> Optional[TripValidationError]:
    if latest is not None and final_odometer <= latest.final_odometer:
        return OdometerNotIncreasingError(last_odometer=latest.final_odometer)
    return None


def check_trip_sequence(
    departure_at: datetime,
    arrival_at: datetime,
    final_odometer: int,
    latest
) -> Optional[TripValidationError]:
    """
    Decide whether a new trip fits after the vehicle's latest trip.

    Checks run in order and the first failure is returned:
    1. arrival strictly after departure
    2. departure strictly after the latest trip's departure
    3. final odometer strictly above the latest trip's final odometer

    Args:
        departure_at: Proposed departure
        arrival_at: Proposed arrival
        final_odometer: Proposed odometer reading at arrival
        latest: Latest trip of the vehicle (anything with departure_at and
            final_odometer), or None for the vehicle's first trip

    Returns:
        The rejection to raise, or None if the trip is accepted
    """
    rejection = check_time_range(departure_at, arrival_at)
    if rejection:
        return rejection

    if latest is None:
        return None

    if as_utc(departure_at) <= as_utc(latest.departure_at):
        return DepartureNotAfterLastTripError(last_departure=as_utc(latest.departure_at))

    return check_odometer(final_odometer, latest)

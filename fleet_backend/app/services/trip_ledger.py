"""
Odometer ledger reader.

The ledger of a vehicle is its trips ordered by final odometer. The
"latest" trip is the one with the highest reading.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from fleet_backend.app.models.trip import Trip


async def get_latest_trip(
    db: AsyncSession,
    company_id: int,
    vehicle_id: int,
    exclude_trip_id: Optional[int] = None
) -> Optional[Trip]:
    """
    Return the trip with the highest final odometer for a vehicle.

    Args:
        db: Database session
        company_id: Tenant scope
        vehicle_id: Vehicle whose ledger is read
        exclude_trip_id: Trip to ignore (the one being revised)

    Returns:
        Latest trip, or None if the vehicle has no (other) trips
    """
    query = select(Trip).where(
        Trip.company_id == company_id,
        Trip.vehicle_id == vehicle_id
    )

    if exclude_trip_id is not None:
        query = query.where(Trip.id != exclude_trip_id)

    # id breaks ties so the pick is stable
    query = query.order_by(Trip.final_odometer.desc(), Trip.id.desc()).limit(1)

    result = await db.execute(query)
    return result.scalar_one_or_none()

"""
Vehicle assignment schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from fleet_backend.app.schemas.trip import TripResponse


class DriverAssignment(BaseModel):
    """Schema for granting a driver access to a vehicle."""
    driver_id: int = Field(..., gt=0)


class DriverAssignmentResponse(BaseModel):
    id: int
    driver_id: int
    vehicle_id: int
    assigned_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class DriverAssignmentListResponse(BaseModel):
    vehicle_id: int
    assignments: List[DriverAssignmentResponse]


class LatestTripResponse(BaseModel):
    """
    Current end of a vehicle's ledger.

    A new trip must depart after last_departure and end above last_odometer.
    """
    vehicle_id: int
    last_odometer: Optional[int]
    last_departure: Optional[datetime]
    trip: Optional[TripResponse]

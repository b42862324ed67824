"""
Trip schemas.

Request bodies are parsed and type-checked here, before any business rule
runs; malformed numbers or dates never reach the sequencing checks.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from fleet_backend.app.services.trip_validation import as_utc


class TripCreate(BaseModel):
    """Schema for logging a new trip (driver)."""
    vehicle_id: int = Field(..., gt=0, description="Vehicle used")
    departure_at: datetime = Field(..., description="Departure timestamp (ISO 8601)")
    arrival_at: datetime = Field(..., description="Arrival timestamp (ISO 8601)")
    purpose: str = Field(..., max_length=500, description="Purpose of the trip")
    final_odometer: int = Field(..., ge=0, description="Odometer reading at arrival (km)")

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)


class TripUpdate(BaseModel):
    """
    Schema for a partial trip update.

    Fields default to None but are not Optional: omitting a field leaves it
    unchanged, sending an explicit null is rejected.
    """
    purpose: str = Field(None, max_length=500)
    departure_at: datetime = Field(None)
    arrival_at: datetime = Field(None)
    final_odometer: int = Field(None, ge=0)

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    company_id: int
    driver_id: int
    vehicle_id: int
    departure_at: datetime
    arrival_at: datetime
    purpose: str
    start_odometer: Optional[int]
    final_odometer: int
    distance_km: Optional[int]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    trips: List[TripResponse]
    total: int
    page: int
    page_size: int


class TripUpdateResponse(BaseModel):
    """Response after a trip update."""
    message: str = "Trip updated"
    trip: TripResponse


class TripDeleteResponse(BaseModel):
    trip_id: int
    deleted: bool = True

"""
Trip API Endpoints.

Drivers log and review their trips; admins review and correct every trip
of their company. Business rules live in services.trip_service.
"""

from typing import Optional
from fastapi import APIRouter, Depends, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.dependencies import get_current_user
from fleet_backend.app.core.guards import require_admin
from fleet_backend.app.schemas.trip import (
    TripCreate,
    TripUpdate,
    TripResponse,
    TripListResponse,
    TripUpdateResponse,
    TripDeleteResponse,
)
from fleet_backend.app.services import trip_service

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Log a new trip for a vehicle the caller is assigned to.

    Validates:
    - Vehicle exists in the caller's company (404)
    - Caller holds an assignment for the vehicle (403)
    - Arrival after departure (400 InvalidTimeRange)
    - Departure after the vehicle's latest trip (400, returns last_departure)
    - Final odometer above the latest trip's (400, returns last_odometer)
    """
    trip = await trip_service.create_trip(
        db=db,
        company_id=current_user["company_id"],
        driver_id=current_user["user_id"],
        data=trip_data,
        current_user=current_user
    )

    return TripResponse.model_validate(trip)


@router.get("", response_model=TripListResponse)
async def list_own_trips(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List the caller's own trips, most recent departure first.
    """
    trips, total = await trip_service.list_driver_trips(
        db,
        company_id=current_user["company_id"],
        driver_id=current_user["user_id"],
        page=page,
        page_size=page_size
    )

    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/admin", response_model=TripListResponse)
async def list_company_trips(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    vehicle_id: Optional[int] = Query(None, gt=0),
    driver_id: Optional[int] = Query(None, gt=0),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List every trip of the admin's company (Admin only).

    Optional filters by vehicle and driver.
    """
    trips, total = await trip_service.list_company_trips(
        db,
        company_id=current_user["company_id"],
        page=page,
        page_size=page_size,
        vehicle_id=vehicle_id,
        driver_id=driver_id
    )

    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., gt=0, description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a single trip (owner or admin)."""
    trip = await trip_service.get_trip_for_user(
        db, current_user["company_id"], trip_id, current_user
    )
    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}", response_model=TripUpdateResponse)
async def update_trip(
    changes: TripUpdate,
    trip_id: int = Path(..., gt=0, description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Partially update a trip (owner or admin).

    Accepts any of purpose, departure_at, arrival_at, final_odometer.
    A new final odometer must exceed every other trip of the vehicle.
    """
    trip = await trip_service.revise_trip(
        db,
        company_id=current_user["company_id"],
        trip_id=trip_id,
        current_user=current_user,
        changes=changes
    )

    return TripUpdateResponse(trip=TripResponse.model_validate(trip))


@router.delete("/{trip_id}", response_model=TripDeleteResponse)
async def delete_trip(
    trip_id: int = Path(..., gt=0, description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a trip (owner or admin). The remaining ledger is left as is."""
    await trip_service.delete_trip(
        db, current_user["company_id"], trip_id, current_user
    )

    return TripDeleteResponse(trip_id=trip_id)

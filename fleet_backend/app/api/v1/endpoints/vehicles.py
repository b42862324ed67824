"""
Vehicle Assignment API Endpoints.

Admins grant and revoke the driver-vehicle assignments that authorize
trip logging. Drivers and admins can read the current end of a
vehicle's odometer ledger.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from fleet_backend.app.db.session import get_db
from fleet_backend.app.models.user import User
from fleet_backend.app.models.driver_vehicle import DriverVehicle
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.schemas.trip import TripResponse
from fleet_backend.app.schemas.vehicle import (
    DriverAssignment,
    DriverAssignmentResponse,
    DriverAssignmentListResponse,
    LatestTripResponse,
)
from fleet_backend.app.core.dependencies import get_current_user
from fleet_backend.app.core.exceptions import ResourceNotFoundError, VehicleNotAssignedError
from fleet_backend.app.core.guards import require_admin, is_admin
from fleet_backend.app.services.audit import log_user_action, AuditAction
from fleet_backend.app.services.trip_ledger import get_latest_trip
from fleet_backend.app.services.trip_service import get_vehicle, is_driver_assigned

router = APIRouter(prefix="/vehicles", tags=["Vehicles - Driver Assignment"])


@router.get("/{vehicle_id}/drivers", response_model=DriverAssignmentListResponse)
async def list_vehicle_drivers(
    vehicle_id: int = Path(..., gt=0, description="Vehicle ID"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List the drivers assigned to a vehicle (Admin only)."""
    vehicle = await get_vehicle(db, current_user["company_id"], vehicle_id)

    result = await db.execute(
        select(DriverVehicle)
        .where(DriverVehicle.vehicle_id == vehicle.id)
        .order_by(DriverVehicle.id)
    )
    assignments = result.scalars().all()

    return DriverAssignmentListResponse(
        vehicle_id=vehicle.id,
        assignments=[DriverAssignmentResponse.model_validate(a) for a in assignments]
    )


@router.post("/{vehicle_id}/drivers", response_model=DriverAssignmentResponse)
async def assign_driver_to_vehicle(
    assignment: DriverAssignment,
    vehicle_id: int = Path(..., gt=0, description="Vehicle ID"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Authorize a driver to log trips for a vehicle (Admin only).

    Validates:
    - Vehicle belongs to the admin's company
    - Driver exists in the same company, has the DRIVER role and is active

    Idempotent: an existing assignment is returned with 200, a new one with 201.
    """
    company_id = current_user["company_id"]
    vehicle = await get_vehicle(db, company_id, vehicle_id)

    driver_result = await db.execute(
        select(User).where(
            User.id == assignment.driver_id,
            User.company_id == company_id
        )
    )
    driver = driver_result.scalar_one_or_none()

    if not driver:
        raise ResourceNotFoundError("Driver", assignment.driver_id)

    if driver.role != UserRole.DRIVER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not a driver"
        )

    if not driver.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Driver is not active"
        )

    existing_result = await db.execute(
        select(DriverVehicle).where(
            DriverVehicle.driver_id == driver.id,
            DriverVehicle.vehicle_id == vehicle.id
        )
    )
    existing = existing_result.scalar_one_or_none()
    if existing:
        return DriverAssignmentResponse.model_validate(existing)

    link = DriverVehicle(
        driver_id=driver.id,
        vehicle_id=vehicle.id,
        assigned_by_id=current_user["user_id"]
    )
    db.add(link)
    await log_user_action(
        db, current_user, AuditAction.VEHICLE_DRIVER_ASSIGNED, "vehicle", vehicle.id,
        metadata={"driver_id": driver.id, "driver_username": driver.username},
        commit=False
    )
    await db.commit()
    await db.refresh(link)

    response = DriverAssignmentResponse.model_validate(link)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=response.model_dump(mode="json")
    )


@router.delete("/{vehicle_id}/drivers/{driver_id}")
async def unassign_driver_from_vehicle(
    vehicle_id: int = Path(..., gt=0, description="Vehicle ID"),
    driver_id: int = Path(..., gt=0, description="Driver ID"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Revoke a driver's assignment to a vehicle (Admin only).

    Trips already logged by the driver are kept.
    """
    vehicle = await get_vehicle(db, current_user["company_id"], vehicle_id)

    result = await db.execute(
        select(DriverVehicle).where(
            DriverVehicle.driver_id == driver_id,
            DriverVehicle.vehicle_id == vehicle.id
        )
    )
    link = result.scalar_one_or_none()

    if not link:
        raise ResourceNotFoundError("Assignment")

    await db.delete(link)
    await log_user_action(
        db, current_user, AuditAction.VEHICLE_DRIVER_UNASSIGNED, "vehicle", vehicle.id,
        metadata={"driver_id": driver_id},
        commit=False
    )
    await db.commit()

    return {
        "vehicle_id": vehicle.id,
        "driver_id": driver_id,
        "driver_unassigned": True
    }


@router.get("/{vehicle_id}/latest-trip", response_model=LatestTripResponse)
async def get_vehicle_latest_trip(
    vehicle_id: int = Path(..., gt=0, description="Vehicle ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Return the vehicle's latest trip by odometer (assigned driver or admin).

    Clients use it to tell the driver which reading the next trip must exceed.
    """
    company_id = current_user["company_id"]
    vehicle = await get_vehicle(db, company_id, vehicle_id)

    if not is_admin(current_user) and not await is_driver_assigned(db, current_user["user_id"], vehicle.id):
        raise VehicleNotAssignedError(vehicle.id)

    latest = await get_latest_trip(db, company_id, vehicle.id)

    return LatestTripResponse(
        vehicle_id=vehicle.id,
        last_odometer=latest.final_odometer if latest else None,
        last_departure=latest.departure_at if latest else None,
        trip=TripResponse.model_validate(latest) if latest else None
    )

"""
Trip service: create, revise, delete and list trips.

Every function takes the database session and the tenant (company_id)
explicitly. Writes follow the same shape: load and authorize, read the
vehicle's ledger, run the sequencing rules, then commit once. The audit
entry and the vehicle odometer go into that same commit, so nothing is
written when a rule or the database fails.
"""

import logging
from typing import Optional, Tuple, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fleet_backend.app.core.exceptions import (
    AppException,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    TripConflictError,
    VehicleNotAssignedError,
)
from fleet_backend.app.core.guards import verify_ownership
from fleet_backend.app.models.driver_vehicle import DriverVehicle
from fleet_backend.app.models.trip import Trip
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.schemas.trip import TripCreate, TripUpdate
from fleet_backend.app.services.audit import log_user_action, AuditAction
from fleet_backend.app.services.trip_ledger import get_latest_trip
from fleet_backend.app.services.trip_validation import (
    check_trip_sequence,
    check_time_range,
    check_odometer,
)

logger = logging.getLogger("fleet.trips")


async def get_vehicle(
    db: AsyncSession,
    company_id: int,
    vehicle_id: int,
    for_update: bool = False
) -> Vehicle:
    """
    Load an active vehicle of the company.

    With for_update the row stays locked until the transaction ends, which
    serializes trip writes per vehicle on PostgreSQL.

    Raises:
        ResourceNotFoundError: vehicle missing, inactive or in another company
    """
    query = select(Vehicle).where(
        Vehicle.id == vehicle_id,
        Vehicle.company_id == company_id,
        Vehicle.is_active == True
    )
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    vehicle = result.scalar_one_or_none()

    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    return vehicle


async def _lock_vehicle(db: AsyncSession, vehicle_id: int) -> Vehicle:
    # No is_active filter: trips of a retired vehicle can still be corrected
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id).with_for_update())
    return result.scalar_one()


async def is_driver_assigned(db: AsyncSession, driver_id: int, vehicle_id: int) -> bool:
    result = await db.execute(
        select(DriverVehicle.id).where(
            DriverVehicle.driver_id == driver_id,
            DriverVehicle.vehicle_id == vehicle_id
        )
    )
    return result.first() is not None


async def create_trip(
    db: AsyncSession,
    company_id: int,
    driver_id: int,
    data: TripCreate,
    current_user: Optional[dict] = None
) -> Trip:
    """
    Authorize, validate and persist a new trip.

    Steps:
    1. Vehicle must exist in the company (404)
    2. Driver must hold an assignment for it (403)
    3. Trip must fit after the vehicle's latest trip (400)
    4. Insert the trip, move the vehicle odometer and, when current_user is
       given, the TRIP_CREATED audit entry, in one commit

    Raises:
        ResourceNotFoundError, VehicleNotAssignedError, TripValidationError,
        TripConflictError (a concurrent write claimed the same reading)
    """
    try:
        vehicle = await get_vehicle(db, company_id, data.vehicle_id, for_update=True)

        if not await is_driver_assigned(db, driver_id, vehicle.id):
            raise VehicleNotAssignedError(vehicle.id)

        latest = await get_latest_trip(db, company_id, vehicle.id)

        rejection = check_trip_sequence(
            departure_at=data.departure_at,
            arrival_at=data.arrival_at,
            final_odometer=data.final_odometer,
            latest=latest
        )
        if rejection:
            raise rejection

        if latest is not None:
            start_odometer = latest.final_odometer
        elif vehicle.odometer is not None and vehicle.odometer <= data.final_odometer:
            start_odometer = vehicle.odometer
        else:
            start_odometer = None

        trip = Trip(
            company_id=company_id,
            driver_id=driver_id,
            vehicle_id=vehicle.id,
            departure_at=data.departure_at,
            arrival_at=data.arrival_at,
            purpose=data.purpose,
            start_odometer=start_odometer,
            final_odometer=data.final_odometer
        )
        db.add(trip)
        vehicle.odometer = data.final_odometer
        await db.flush()

        if current_user is not None:
            await log_user_action(
                db, current_user, AuditAction.TRIP_CREATED, "trip", trip.id,
                metadata={
                    "vehicle_id": vehicle.id,
                    "start_odometer": start_odometer,
                    "final_odometer": data.final_odometer
                },
                commit=False
            )

        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Trip write conflict on vehicle %s: %s", data.vehicle_id, exc.orig)
        raise TripConflictError(data.vehicle_id)
    except AppException as exc:
        await db.rollback()
        logger.info(
            "Trip rejected for driver %s on vehicle %s: %s",
            driver_id, data.vehicle_id, exc.error_code
        )
        raise
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Trip write failed for vehicle %s, rolled back", data.vehicle_id)
        raise

    await db.refresh(trip)
    logger.info(
        "Trip %s recorded for vehicle %s (final odometer %s)",
        trip.id, trip.vehicle_id, trip.final_odometer
    )
    return trip


async def get_trip(db: AsyncSession, company_id: int, trip_id: int) -> Trip:
    """Load a trip of the company or raise 404."""
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id, Trip.company_id == company_id)
    )
    trip = result.scalar_one_or_none()

    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)

    return trip


async def get_trip_for_user(
    db: AsyncSession,
    company_id: int,
    trip_id: int,
    current_user: dict
) -> Trip:
    """Load a trip the caller owns, or any company trip for admins."""
    trip = await get_trip(db, company_id, trip_id)

    if not verify_ownership(trip.driver_id, current_user):
        raise InsufficientPermissionsError("Access denied. This trip belongs to another driver.")

    return trip


async def revise_trip(
    db: AsyncSession,
    company_id: int,
    trip_id: int,
    current_user: dict,
    changes: TripUpdate
) -> Trip:
    """
    Apply a partial update to a trip.

    Only the owning driver or an admin may edit. The time range is checked
    on the merged values (supplied or stored). A new final odometer is
    compared against the vehicle's other trips only, so a trip never
    conflicts with its own previous reading. The departure-after-last-trip
    rule of the create path is not re-applied here.

    An accepted reading exceeds every other trip of the vehicle, so the
    revised trip becomes the ledger end and the vehicle odometer follows it.
    The TRIP_UPDATED audit entry is committed with the change.
    """
    trip = await get_trip_for_user(db, company_id, trip_id, current_user)
    vehicle_id = trip.vehicle_id
    updates = changes.model_dump(exclude_unset=True)

    if "departure_at" in updates or "arrival_at" in updates:
        rejection = check_time_range(
            updates.get("departure_at", trip.departure_at),
            updates.get("arrival_at", trip.arrival_at)
        )
        if rejection:
            raise rejection

    try:
        if "final_odometer" in updates:
            vehicle = await _lock_vehicle(db, vehicle_id)
            latest_other = await get_latest_trip(
                db, company_id, vehicle_id, exclude_trip_id=trip_id
            )
            rejection = check_odometer(updates["final_odometer"], latest_other)
            if rejection:
                raise rejection
            vehicle.odometer = updates["final_odometer"]

        for field, value in updates.items():
            setattr(trip, field, value)

        await log_user_action(
            db, current_user, AuditAction.TRIP_UPDATED, "trip", trip_id,
            metadata={"changes": changes.model_dump(mode="json", exclude_unset=True)},
            commit=False
        )

        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Trip %s update conflict: %s", trip_id, exc.orig)
        raise TripConflictError(vehicle_id)
    except AppException as exc:
        await db.rollback()
        logger.info("Trip %s update rejected: %s", trip_id, exc.error_code)
        raise
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Trip %s update failed, rolled back", trip_id)
        raise

    await db.refresh(trip)
    logger.info("Trip %s updated fields %s", trip.id, sorted(updates))
    return trip


async def delete_trip(
    db: AsyncSession,
    company_id: int,
    trip_id: int,
    current_user: dict
) -> Trip:
    """
    Delete a trip (owner or admin).

    The remaining ledger is not re-checked. The vehicle odometer moves back
    to the remaining ledger end, or to where the deleted trip started when
    no trip is left.
    """
    trip = await get_trip_for_user(db, company_id, trip_id, current_user)
    vehicle_id = trip.vehicle_id

    try:
        vehicle = await _lock_vehicle(db, vehicle_id)
        remaining = await get_latest_trip(db, company_id, vehicle_id, exclude_trip_id=trip_id)

        if remaining is not None:
            vehicle.odometer = remaining.final_odometer
        elif trip.start_odometer is not None:
            vehicle.odometer = trip.start_odometer

        await log_user_action(
            db, current_user, AuditAction.TRIP_DELETED, "trip", trip_id,
            metadata={
                "vehicle_id": vehicle_id,
                "driver_id": trip.driver_id,
                "final_odometer": trip.final_odometer
            },
            commit=False
        )

        await db.delete(trip)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error("Trip %s delete failed, rolled back", trip_id)
        raise

    logger.info("Trip %s deleted by user %s", trip_id, current_user.get("user_id"))
    return trip


async def _paginate(db: AsyncSession, query, page: int, page_size: int) -> Tuple[List[Trip], int]:
    total_result = await db.execute(
        select(func.count()).select_from(query.order_by(None).subquery())
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    return result.scalars().all(), total


async def list_driver_trips(
    db: AsyncSession,
    company_id: int,
    driver_id: int,
    page: int = 1,
    page_size: int = 50
) -> Tuple[List[Trip], int]:
    """
    List a driver's own trips, most recent departure first.

    Returns:
        (trips on the page, total count)
    """
    query = select(Trip).where(
        Trip.company_id == company_id,
        Trip.driver_id == driver_id
    ).order_by(Trip.departure_at.desc(), Trip.id.desc())

    return await _paginate(db, query, page, page_size)


async def list_company_trips(
    db: AsyncSession,
    company_id: int,
    page: int = 1,
    page_size: int = 50,
    vehicle_id: Optional[int] = None,
    driver_id: Optional[int] = None
) -> Tuple[List[Trip], int]:
    """
    List every trip of the company (admin view), most recent departure first.
    """
    query = select(Trip).where(Trip.company_id == company_id)

    if vehicle_id is not None:
        query = query.where(Trip.vehicle_id == vehicle_id)
    if driver_id is not None:
        query = query.where(Trip.driver_id == driver_id)

    query = query.order_by(Trip.departure_at.desc(), Trip.id.desc())

    return await _paginate(db, query, page, page_size)

"""
Database seeding script for a demo tenant.

Creates a company with one ADMIN, one DRIVER, one vehicle and the
assignment that lets the driver log trips for it.
Run this script after the database is set up but before first use.
"""

import asyncio
import logging

from sqlalchemy import select

from fleet_backend.app.core.observability import configure_logging
from fleet_backend.app.core.security import get_password_hash
from fleet_backend.app.db.session import AsyncSessionLocal, engine, Base
from fleet_backend.app.models.company import Company
from fleet_backend.app.models.driver_vehicle import DriverVehicle
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.trip import Trip  # noqa: F401 (registers table)
from fleet_backend.app.models.audit_log import AuditLog  # noqa: F401
from fleet_backend.app.models.user import User
from fleet_backend.app.models.vehicle import Vehicle

logger = logging.getLogger("fleet.seed")


async def seed_data():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.username == "admin"))
        if result.scalar_one_or_none():
            logger.info("Demo data already present, skipping seeding")
            return

        company = Company(name="Demo Fleet")
        db.add(company)
        await db.flush()

        admin = User(
            email="admin@fleet.local",
            username="admin",
            full_name="Fleet Admin",
            hashed_password=get_password_hash("admin123"),
            role=UserRole.ADMIN,
            company_id=company.id,
            is_active=True,
        )
        driver = User(
            email="driver@fleet.local",
            username="driver",
            full_name="Demo Driver",
            hashed_password=get_password_hash("driver123"),
            role=UserRole.DRIVER,
            company_id=company.id,
            is_active=True,
        )
        vehicle = Vehicle(company_id=company.id, plate="ABC1D23", model="Fiat Strada", odometer=15000)
        db.add_all([admin, driver, vehicle])
        await db.flush()

        db.add(DriverVehicle(driver_id=driver.id, vehicle_id=vehicle.id, assigned_by_id=admin.id))
        await db.commit()

        logger.info("Seeded company %s: admin/admin123, driver/driver123, vehicle %s", company.id, vehicle.plate)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_data())

"""
Driver-Vehicle assignment model.

An explicit many-to-many authorization record: a driver may log trips
for a vehicle only while such a row exists.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class DriverVehicle(Base):
    __tablename__ = "driver_vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    driver_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id', ondelete="CASCADE"), nullable=False, index=True)

    # Admin who granted the assignment
    assigned_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('driver_id', 'vehicle_id', name='uq_driver_vehicles_driver_vehicle'),
    )

    def __repr__(self):
        return f"<DriverVehicle(driver_id={self.driver_id}, vehicle_id={self.vehicle_id})>"

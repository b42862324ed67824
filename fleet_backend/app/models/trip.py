"""
Trip database model.

Trips are logged by drivers and form, per vehicle, a ledger whose
final odometer readings strictly increase.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Trip(Base):
    """
    Trip model.

    A single use of a vehicle bounded by departure/arrival time and the
    odometer reading at arrival. The "latest" trip of a vehicle is the one
    with the highest final_odometer, not the most recent by time.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Tenant
    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)

    # Owning driver (immutable) and vehicle used
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)

    departure_at = Column(DateTime(timezone=True), nullable=False)
    arrival_at = Column(DateTime(timezone=True), nullable=False)
    purpose = Column(String(500), nullable=False)

    # Odometer (km): reading carried over from the previous latest trip, and at arrival
    start_odometer = Column(Integer, nullable=True)
    final_odometer = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        # Two writers racing on the same stale ledger cannot both commit the same reading
        UniqueConstraint('vehicle_id', 'final_odometer', name='uq_trips_vehicle_final_odometer'),
        CheckConstraint('final_odometer >= 0', name='ck_trips_final_odometer_non_negative'),
    )

    @property
    def distance_km(self):
        if self.start_odometer is None:
            return None
        return self.final_odometer - self.start_odometer

    def __repr__(self):
        return f"<Trip(id={self.id}, vehicle_id={self.vehicle_id}, final_odometer={self.final_odometer})>"

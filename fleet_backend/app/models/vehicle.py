"""
Vehicle database model.

Vehicles are registered by company administrators. The odometer column
holds the reading at the end of the trip ledger: it follows new trips and
is pulled back when the latest trip is lowered or deleted.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class Vehicle(Base):
    """
    Vehicle model.

    Drivers may only log trips for a vehicle they hold a
    DriverVehicle assignment for.
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - Vehicle belongs to a company
    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)

    # Identification
    plate = Column(String(20), unique=True, nullable=False, index=True)
    model = Column(String(100), nullable=True)
    category = Column(String(50), nullable=True)

    # Last known odometer reading (km)
    odometer = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.plate}', company_id={self.company_id})>"

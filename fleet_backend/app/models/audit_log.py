"""
Audit Log Database Model.

Records who changed which trip or assignment, and how.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGOUT
    - TRIP_CREATED / TRIP_UPDATED / TRIP_DELETED
    - VEHICLE_DRIVER_ASSIGNED / VEHICLE_DRIVER_UNASSIGNED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, index=True, nullable=True)

    # Who performed the action (None for unknown users on failed logins)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # What was acted upon
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, index=True, nullable=True)

    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, entity={self.entity_type}:{self.entity_id})>"

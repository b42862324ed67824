"""
Audit logging service for tracking trip changes and security events.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from fleet_backend.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_DELETED = "TRIP_DELETED"

    VEHICLE_DRIVER_ASSIGNED = "VEHICLE_DRIVER_ASSIGNED"
    VEHICLE_DRIVER_UNASSIGNED = "VEHICLE_DRIVER_UNASSIGNED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    company_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    commit: bool = True
) -> AuditLog:
    """
    Write an event to the audit log.

    By default the event is committed on its own. With commit=False it is only
    added to the session, so it lands in the same transaction as the write it
    describes and is rolled back with it.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        company_id: Tenant the event belongs to
        entity_type: Kind of record acted upon ("trip", "vehicle")
        entity_id: ID of that record
        metadata: Additional context as JSON
        ip_address: IP address of the request
        commit: Commit immediately (False: leave it to the caller)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    if commit:
        await db.commit()
        await db.refresh(audit_log)

    return audit_log


async def log_user_action(
    db: AsyncSession,
    current_user: dict,
    action: str,
    entity_type: str,
    entity_id: int,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True
) -> AuditLog:
    """Log an action performed by an authenticated user (JWT payload)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=current_user.get("user_id"),
        actor_username=current_user.get("sub"),
        company_id=current_user.get("company_id"),
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=metadata,
        commit=commit
    )


async def get_entity_history(
    db: AsyncSession,
    entity_type: str,
    entity_id: int,
    limit: int = 50
) -> list[AuditLog]:
    """
    Get the audit trail of one record, most recent first.
    """
    query = select(AuditLog).where(
        AuditLog.entity_type == entity_type,
        AuditLog.entity_id == entity_id
    ).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()

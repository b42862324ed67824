"""
User roles enumeration.

Defines the role types for the fleet management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Company administrator, sees and corrects every trip of the company
        DRIVER: Logs trips for the vehicles they are assigned to (default role)
    """
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"

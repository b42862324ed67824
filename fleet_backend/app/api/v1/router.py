"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_backend.app.api.v1.endpoints import auth, trips, vehicles

router = APIRouter()

router.include_router(auth.router)
router.include_router(trips.router)
router.include_router(vehicles.router)

"""API routes."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    agencies,
    assignments,
    clients,
    cron,
    labour_profiles,
    notifications,
    requirements,
)

api_router = APIRouter()

# Include all route modules
api_router.include_router(requirements.router, prefix="/requirements", tags=["Requirements"])
api_router.include_router(agencies.router, prefix="/agencies", tags=["Agencies"])
api_router.include_router(clients.router, prefix="/clients", tags=["Clients"])
api_router.include_router(assignments.admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(labour_profiles.router, prefix="/admin/labour-profiles", tags=["Admin"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(cron.router, prefix="/cron", tags=["Cron"])

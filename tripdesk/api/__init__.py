"""API router package for the Tripdesk service."""
from fastapi import APIRouter

from .routes import activities, itineraries, packages, templates, trips

router = APIRouter()
router.include_router(trips.router)
router.include_router(itineraries.router)
router.include_router(activities.router)
router.include_router(packages.router)
router.include_router(templates.router)

__all__ = ["router"]

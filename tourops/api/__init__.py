"""API router package for the tour operations service."""
from fastapi import APIRouter

from .routes import (
    catalog,
    coupons,
    customers,
    pickup_hotels,
    pricing,
    reports,
    reservations,
    team,
    tours,
)

router = APIRouter()
router.include_router(catalog.router)
router.include_router(pricing.router)
router.include_router(customers.router)
router.include_router(pickup_hotels.router)
router.include_router(coupons.router)
router.include_router(reservations.router)
router.include_router(tours.router)
router.include_router(team.router)
router.include_router(reports.router)

__all__ = ["router"]

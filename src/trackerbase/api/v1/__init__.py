"""API v1 routes."""

from fastapi import APIRouter

from trackerbase.api.v1 import dynamic_options, expr, health, tracker

router = APIRouter()

# Include all v1 routes
router.include_router(health.router, tags=["health"])
router.include_router(expr.router, prefix="/expr", tags=["expr"])
router.include_router(tracker.router, prefix="/tracker", tags=["tracker"])
router.include_router(dynamic_options.router, prefix="/dynamic-options", tags=["dynamic-options"])

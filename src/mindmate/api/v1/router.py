"""
API v1 Router

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter

from mindmate.api.v1.endpoints.health import router as health_router
from mindmate.api.v1.endpoints.mental_health import router as mental_health_router

api_router = APIRouter()

api_router.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)

api_router.include_router(
    mental_health_router,
    prefix="/mental-health",
    tags=["Mental Health"],
)

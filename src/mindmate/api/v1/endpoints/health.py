"""
Health Check Endpoints

Provides system health and readiness endpoints for:
- Load balancer health checks
- Kubernetes probes
- Monitoring systems

ARCHITECTURE: Health checks must never fail the application.
They report status for orchestration decisions.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mindmate import __version__
from mindmate.api.dependencies import ServiceContainer, get_container
from mindmate.config.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment: str


class ReadinessResponse(BaseModel):
    """Readiness check response with component health."""

    ready: bool
    components: dict[str, bool]


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Basic health check endpoint for load balancers",
)
async def health_check(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    """Returns 200 while the application is running."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=container.settings.env,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Database and model endpoint reachability",
)
async def readiness_check(container: ServiceContainer = Depends(get_container)) -> ReadinessResponse:
    """
    Detailed readiness check.

    The service is ready when the database answers. The model endpoint
    is reported but does not gate readiness: queries and support
    actions work without it.
    """
    components = {
        "database": await container.db.health_check(),
        "scheduler": container.scheduler is not None and container.scheduler.is_running,
    }

    try:
        components["llm"] = await container.llm.health_check()
    except Exception as e:
        logger.warning("LLM health check failed", error=str(e))
        components["llm"] = False

    return ReadinessResponse(ready=components["database"], components=components)

"""Health check endpoints.

Endpoint Summary:
    GET /health         - Liveness probe (app is running)
    GET /health/ready   - Readiness probe (state store reachable)
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.api.http.deps import get_app_dependencies
from nimbus.app.api.http.schemas.health import (
    LivenessResponse,
    OverallStatus,
    ReadinessResponse,
    ServiceStatus,
)

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Basic health check - returns 200 if the application process is running.",
)
async def health() -> LivenessResponse:
    return LivenessResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "The state store is reachable"},
        503: {"description": "The state store is not reachable", "model": ReadinessResponse},
    },
    summary="Readiness probe",
)
async def readiness(
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ReadinessResponse | JSONResponse:
    """Returns 200 when the database answers, 503 otherwise.

    The cluster is not probed: deploys fail with an internal error while it
    is unreachable, but status and project endpoints stay usable.
    """
    healthy = await asyncio.to_thread(deps.database_service.health_check)
    if not healthy:
        result = ReadinessResponse(
            status=OverallStatus.NOT_READY, database=ServiceStatus.UNHEALTHY
        )
        return JSONResponse(status_code=503, content=result.model_dump(mode="json"))
    return ReadinessResponse(status=OverallStatus.READY, database=ServiceStatus.HEALTHY)

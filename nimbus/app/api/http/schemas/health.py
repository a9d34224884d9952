"""Health check response schemas.

Status Terminology:
    - healthy: Service is fully operational
    - unhealthy: Service is not operational
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ServiceStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class OverallStatus(str, Enum):
    """Overall application readiness status.

    - READY: The database answers queries
    - NOT_READY: The database cannot be reached
    """

    READY = "ready"
    NOT_READY = "not_ready"


class LivenessResponse(BaseModel):
    status: str = Field(default="ok", description="Always 'ok' while the process runs")


class ReadinessResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: OverallStatus = Field(description="Overall readiness")
    database: ServiceStatus = Field(description="State store connectivity")

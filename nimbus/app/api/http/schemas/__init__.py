"""API schema definitions for HTTP endpoints.

Modules:
    deploy: Deploy response model
    errors: Error body model
    health: Health check response models
    projects: Project and secret bundle models
    services: Service status models
"""

from nimbus.app.api.http.schemas.deploy import DeployResponse
from nimbus.app.api.http.schemas.errors import ErrorResponse
from nimbus.app.api.http.schemas.health import (
    LivenessResponse,
    OverallStatus,
    ReadinessResponse,
    ServiceStatus,
)
from nimbus.app.api.http.schemas.projects import (
    ProjectCreateRequest,
    ProjectCredentialResponse,
    ProjectListResponse,
    ProjectResponse,
    SecretNamesResponse,
    SecretsUpdateRequest,
    SecretsUpdateResponse,
    SecretValuesResponse,
)
from nimbus.app.api.http.schemas.services import (
    PodResponse,
    ServiceDetailResponse,
    ServiceListResponse,
    ServiceSummaryResponse,
)

__all__ = [
    "DeployResponse",
    "ErrorResponse",
    "LivenessResponse",
    "OverallStatus",
    "PodResponse",
    "ProjectCreateRequest",
    "ProjectCredentialResponse",
    "ProjectListResponse",
    "ProjectResponse",
    "ReadinessResponse",
    "SecretNamesResponse",
    "SecretValuesResponse",
    "SecretsUpdateRequest",
    "SecretsUpdateResponse",
    "ServiceDetailResponse",
    "ServiceListResponse",
    "ServiceStatus",
    "ServiceSummaryResponse",
]

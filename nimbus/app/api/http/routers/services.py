"""Service status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.api.http.deps import get_app_dependencies, require_user
from nimbus.app.api.http.schemas.errors import ErrorResponse
from nimbus.app.api.http.schemas.services import (
    ServiceDetailResponse,
    ServiceListResponse,
    ServiceSummaryResponse,
)
from nimbus.app.core.naming import normalize_branch
from nimbus.app.entities import User

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=ServiceListResponse)
async def list_services(
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ServiceListResponse:
    summaries = await deps.statuses.list_services(user)
    return ServiceListResponse(
        services=[ServiceSummaryResponse.model_validate(summary) for summary in summaries]
    )


@router.get(
    "/{name}",
    response_model=ServiceDetailResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def describe_service(
    name: str,
    project: str = Query(description="Project name"),
    branch: str | None = Query(default=None, description="Branch, 'main' when empty"),
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ServiceDetailResponse:
    detail = await deps.statuses.describe_service(
        user, project, normalize_branch(branch), name
    )
    return ServiceDetailResponse.model_validate(detail)

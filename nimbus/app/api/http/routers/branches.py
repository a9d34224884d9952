"""Branch teardown endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.api.http.deps import get_app_dependencies, require_user
from nimbus.app.api.http.schemas.errors import ErrorResponse
from nimbus.app.core.naming import normalize_branch
from nimbus.app.entities import User

router = APIRouter(tags=["branches"])


@router.delete(
    "/branch",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse, "description": "Teardown stopped part way"},
    },
    summary="Delete a branch and everything deployed to it",
)
async def delete_branch(
    project: str = Query(description="Project name"),
    branch: str | None = Query(default=None, description="Branch, 'main' when empty"),
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> Response:
    await deps.projects.delete_branch(user, project, normalize_branch(branch))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

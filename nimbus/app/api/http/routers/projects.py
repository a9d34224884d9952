"""Project and secret bundle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.api.http.deps import get_app_dependencies, require_user
from nimbus.app.api.http.schemas.errors import ErrorResponse
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
from nimbus.app.entities import User

router = APIRouter(prefix="/projects", tags=["projects"])

_PROJECT_ERRORS: dict[int | str, dict] = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ProjectResponse,
    responses={409: {"model": ErrorResponse, "description": "Name already taken"}},
)
async def create_project(
    body: ProjectCreateRequest,
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ProjectResponse:
    project = await deps.projects.create_project(user, body.name)
    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ProjectListResponse:
    projects = await deps.projects.list_projects(user)
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(project) for project in projects]
    )


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={**_PROJECT_ERRORS, 500: {"model": ErrorResponse}},
)
async def delete_project(
    name: str,
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> Response:
    await deps.projects.delete_project(user, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{name}/secrets",
    response_model=SecretNamesResponse | SecretValuesResponse,
    responses=_PROJECT_ERRORS,
)
async def get_secrets(
    name: str,
    values: bool = Query(default=False, description="Return values instead of names"),
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> SecretNamesResponse | SecretValuesResponse:
    if values:
        return SecretValuesResponse(secrets=await deps.projects.get_secrets(user, name))
    return SecretNamesResponse(secrets=await deps.projects.get_secret_names(user, name))


@router.put(
    "/{name}/secrets",
    response_model=SecretsUpdateResponse,
    responses={**_PROJECT_ERRORS, 400: {"model": ErrorResponse}},
)
async def replace_secrets(
    name: str,
    body: SecretsUpdateRequest,
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> SecretsUpdateResponse:
    namespaces = await deps.projects.replace_secrets(user, name, body.secrets)
    return SecretsUpdateResponse(namespaces=namespaces)


@router.post(
    "/{name}/credential",
    status_code=status.HTTP_201_CREATED,
    response_model=ProjectCredentialResponse,
    responses=_PROJECT_ERRORS,
    summary="Issue a deploy credential scoped to the project",
)
async def issue_credential(
    name: str,
    user: User = Depends(require_user),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> ProjectCredentialResponse:
    api_key = await deps.projects.issue_credential(user, name)
    return ProjectCredentialResponse(api_key=api_key)

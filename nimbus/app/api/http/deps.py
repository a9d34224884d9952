"""Request dependencies: application services and caller authentication."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.core.errors import ErrorCode, ForbiddenError, UnauthorizedError
from nimbus.app.entities import Project, User

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


@dataclass(frozen=True)
class Caller:
    """An authenticated caller: a user, or a credential scoped to one project."""

    user: User | None = None
    project: Project | None = None


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


async def authenticate(
    api_key: str | None = Depends(api_key_header),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> Caller:
    """Resolve the ``X-API-Key`` header to a user or a project credential.

    Raises:
        UnauthorizedError: If the header is missing or matches nothing
    """
    if not api_key:
        raise UnauthorizedError("missing api key", code=ErrorCode.INVALID_CREDENTIALS)
    user = await deps.store.get_user_by_api_key(api_key)
    if user is not None:
        return Caller(user=user)
    project = await deps.store.get_project_by_api_key(api_key)
    if project is not None:
        return Caller(project=project)
    raise UnauthorizedError()


async def require_user(caller: Caller = Depends(authenticate)) -> User:
    """Only deploys accept project-scoped credentials."""
    if caller.user is None:
        raise ForbiddenError("project credentials can only be used to deploy")
    return caller.user

"""Deploy endpoint.

``POST /deploy`` takes a multipart form with the manifest as ``file`` and an
optional ``branch`` (``main`` when absent) and reconciles the branch onto it.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, File, Form, UploadFile
from loguru import logger

from nimbus.app.api.http.app_data import ApplicationDependencies
from nimbus.app.api.http.deps import Caller, authenticate, get_app_dependencies
from nimbus.app.api.http.schemas.deploy import DeployResponse
from nimbus.app.api.http.schemas.errors import ErrorResponse
from nimbus.app.core.errors import BadRequestError, InternalError
from nimbus.app.core.manifest import parse_manifest

router = APIRouter(tags=["deploy"])


@router.post(
    "/deploy",
    response_model=DeployResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unreadable form or manifest"},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Unknown project"},
        409: {"model": ErrorResponse, "description": "Branch previews are disabled"},
        422: {"model": ErrorResponse, "description": "Duplicate service names"},
        500: {"model": ErrorResponse},
    },
    summary="Deploy a manifest to a branch",
)
async def deploy(
    file: UploadFile | None = File(default=None),
    branch: str | None = Form(default=None),
    caller: Caller = Depends(authenticate),
    deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> DeployResponse:
    if file is None:
        raise BadRequestError("file not found in form")

    limit = deps.config.deploy.max_manifest_bytes
    content = await file.read(limit + 1)
    if len(content) > limit:
        raise BadRequestError(f"manifest exceeds {limit} bytes")

    manifest = parse_manifest(content)
    project = await deps.projects.authorize_deploy(
        manifest.app, user=caller.user, credential_project=caller.project
    )

    timeout = deps.config.deploy.timeout_seconds
    try:
        async with asyncio.timeout(timeout):
            services = await deps.reconciler.deploy(project, branch, manifest)
    except TimeoutError as e:
        logger.error(f"Deploy of {project.name} did not finish within {timeout}s")
        raise InternalError() from e
    return DeployResponse(services=services)

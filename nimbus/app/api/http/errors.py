"""Exception handlers rendering the common error body."""

from __future__ import annotations

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.responses import JSONResponse

from nimbus.app.api.http.schemas.errors import ErrorResponse
from nimbus.app.core.errors import BadRequestError, InternalError, NimbusError

UNKNOWN_REQUEST_ID = "-"


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", UNKNOWN_REQUEST_ID)


def error_response(error: NimbusError, request_id: str) -> JSONResponse:
    body = ErrorResponse(
        code=str(error.code),
        status=int(error.status),
        message=error.message,
        error_id=request_id,
    )
    return JSONResponse(status_code=int(error.status), content=body.model_dump())


def internal_error_response(request_id: str) -> JSONResponse:
    return error_response(InternalError(), request_id)


async def nimbus_error_handler(request: Request, exc: NimbusError) -> JSONResponse:
    if exc.status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")
    return error_response(exc, request_id_of(request))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return await nimbus_error_handler(request, BadRequestError(details or None))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NimbusError, nimbus_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

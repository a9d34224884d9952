"""Error taxonomy for the Nimbus API.

Every error surfaced to a caller carries a stable code, an HTTP status and a
human readable message. The HTTP layer adds the request identifier.
"""

from __future__ import annotations

from enum import StrEnum
from http import HTTPStatus


class ErrorCode(StrEnum):
    """Stable error codes returned in API error bodies."""

    INTERNAL_SERVER_ERROR = "internal_server_error"
    BAD_REQUEST = "bad_request"
    UNPROCESSABLE_ENTITY = "unprocessible_entity"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_API_KEY = "invalid_api_key"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    PROJECT_NOT_FOUND = "project_not_found"
    SERVICE_NOT_FOUND = "service_not_found"
    PROJECT_ALREADY_EXISTS = "project_already_exists"
    DISABLED_BRANCH_PREVIEW = "disabled_branch_preview"

    @property
    def status(self) -> HTTPStatus:
        return _STATUS_BY_CODE[self]


_STATUS_BY_CODE: dict[ErrorCode, HTTPStatus] = {
    ErrorCode.INTERNAL_SERVER_ERROR: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorCode.BAD_REQUEST: HTTPStatus.BAD_REQUEST,
    ErrorCode.UNPROCESSABLE_ENTITY: HTTPStatus.UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    ErrorCode.INVALID_API_KEY: HTTPStatus.UNAUTHORIZED,
    ErrorCode.INSUFFICIENT_PERMISSIONS: HTTPStatus.FORBIDDEN,
    ErrorCode.PROJECT_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.SERVICE_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorCode.PROJECT_ALREADY_EXISTS: HTTPStatus.CONFLICT,
    ErrorCode.DISABLED_BRANCH_PREVIEW: HTTPStatus.CONFLICT,
}


class NimbusError(Exception):
    """Base class for errors that map onto an API error response."""

    default_code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    default_message: str = "internal server error"

    def __init__(self, message: str | None = None, *, code: ErrorCode | None = None) -> None:
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status(self) -> HTTPStatus:
        return self.code.status


class BadRequestError(NimbusError):
    """Malformed input (unreadable form, invalid YAML, missing app name)."""

    default_code = ErrorCode.BAD_REQUEST
    default_message = "bad request"


class UnauthorizedError(NimbusError):
    """Missing or invalid credential."""

    default_code = ErrorCode.INVALID_API_KEY
    default_message = "invalid api key"


class ForbiddenError(NimbusError):
    """Authenticated, but not allowed to act on the project."""

    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS
    default_message = "insufficient permissions"


class NotFoundError(NimbusError):
    default_code = ErrorCode.PROJECT_NOT_FOUND
    default_message = "project not found"


class ConflictError(NimbusError):
    """Operation disallowed by current policy."""

    default_code = ErrorCode.DISABLED_BRANCH_PREVIEW
    default_message = "branch previews are disabled"


class UnprocessableEntityError(NimbusError):
    """Structurally valid but semantically invalid input."""

    default_code = ErrorCode.UNPROCESSABLE_ENTITY
    default_message = "unprocessable entity"


class InternalError(NimbusError):
    """Infrastructure failure. The message shown to callers stays generic."""

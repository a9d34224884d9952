"""Request context middleware.

Every request gets an identifier, taken from the ``X-Request-ID`` header when
the caller sends one. It is bound to every log line emitted while the request
is handled, echoed in the response headers and used as ``error_id`` in error
bodies. Exceptions no handler claimed are logged with their traceback and
answered with a generic internal error.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger

from nimbus.app.api.http.errors import internal_error_response

REQUEST_ID_HEADER = "X-Request-ID"


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    with logger.contextualize(request_id=request_id):
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            response = internal_error_response(request_id)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.1f} ms)"
        )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response

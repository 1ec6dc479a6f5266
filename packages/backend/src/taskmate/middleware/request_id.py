"""Request ID middleware — unique ID per request for tracing.

Learn: Every request gets a UUID, either from the incoming
X-Request-ID header or auto-generated. The ID is bound to structlog's
contextvars so it appears in all log entries for that request
(including the user_id the session guard binds later), and it is
returned in the response header.

This is also where unexpected exceptions stop. Starlette's own
catch-all runs outside every user middleware and re-raises after
replying, so a crash is turned into the generic 500 here instead,
still carrying the request ID.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from taskmate.errors import ServerError

logger = structlog.get_logger()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception("http.unhandled_error", error=str(e))
            error = ServerError()
            response = JSONResponse(
                status_code=error.status_code, content={"message": error.message}
            )

        response.headers["X-Request-ID"] = request_id
        logger.debug("http.request", status=response.status_code)
        return response

"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (tables, pending
notifications, the engine). Middleware, CORS, error handlers and
routers are all registered here.

Error handling: every failure leaves the API as `{"message": ...}`.
- TaskmateError subclasses carry their own status code
- request validation errors become 400s
- anything unexpected is logged and becomes a generic 500 inside
  RequestIdMiddleware, so it never escapes the app
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskmate import __version__
from taskmate.api import api_router
from taskmate.config import settings
from taskmate.errors import TaskmateError
from taskmate.logging_setup import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    from taskmate.db.engine import engine, init_models
    from taskmate.services.notifier import get_notifier

    logger.info(
        "taskmate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )
    await init_models()

    yield

    logger.info("taskmate.shutdown")
    # Let in-flight assignment emails finish
    await get_notifier().drain()
    await engine.dispose()


# ─── Error handlers ──────────────────────────────────────


async def handle_taskmate_error(request: Request, exc: TaskmateError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("http.server_error", error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=exc.headers,
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(
        debug=settings.debug, json_logs=settings.environment != "development"
    )

    app = FastAPI(
        title="Taskmate",
        description="Multi-user task tracker with assignment notifications",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler

    from taskmate.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(TaskmateError, handle_taskmate_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: taskmate.main:app)
app = create_app()


def run() -> None:
    """Serve the default app on the configured host and port."""
    import uvicorn

    uvicorn.run(
        "taskmate.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )

"""
Task API Service

FastAPI app that accepts task requests and hands them to the queue transport.

Responsibilities:
- Validate task requests (kind, payload, batch bounds)
- Stamp and publish envelopes for the worker
- Health check
- Uniform JSON error bodies: {"error": {"code", "message", "field"}}
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_service.deps import get_resources, get_transport
from api_service.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from api_service.routes import queue_router
from starter_core.db import ping
from starter_core.logging import setup_logging
from starter_core.resources import Resources
from starter_core.settings import Settings, get_settings
from task_dispatch.errors import TransportError, ValidationError
from task_dispatch.producer import TaskProducer, format_error_location
from task_dispatch.transport import SUPPORTED_BACKENDS, QueueTransport, create_transport

setup_logging()
logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, field: str | None = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if field:
        error["field"] = field
    return JSONResponse(status_code=status_code, content={"error": error})


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ValidationError)
    async def task_validation_error(request: Request, exc: ValidationError):
        logger.info(f"Rejected task request: {exc}", extra={"field": exc.field})
        return error_response(400, "VALIDATION_ERROR", exc.message, exc.field)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0]
        loc = list(first.get("loc", ()))
        if loc and loc[0] == "body":
            loc = loc[1:]
        field = format_error_location(loc)
        logger.info(f"Rejected request body: {field}: {first.get('msg')}", extra={"field": field})
        return error_response(400, "VALIDATION_ERROR", first.get("msg", "Invalid request"), field)

    @app.exception_handler(TransportError)
    async def transport_error(request: Request, exc: TransportError):
        logger.error(f"Queue transport error: {exc}", exc_info=exc)
        return error_response(503, "QUEUE_UNAVAILABLE", "Task queue is unavailable")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(404, "NOT_FOUND", "Endpoint not found")
        return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=exc)
        message = "Internal server error" if settings.is_production else str(exc)
        return error_response(500, "INTERNAL_ERROR", message)


def create_app(
    settings: Settings | None = None,
    resources: Resources | None = None,
    transport: QueueTransport | None = None,
) -> FastAPI:
    """
    Build the API app.

    Resources and transport are created in the lifespan unless passed in.

    Raises:
        ValueError: QUEUE_BACKEND is not a deployable backend and no
            transport was passed in
    """
    settings = settings or get_settings()
    if transport is None and settings.QUEUE_BACKEND not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported QUEUE_BACKEND: {settings.QUEUE_BACKEND!r}; only 'redis' is supported")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = resources is None
        app.state.resources = resources or Resources.create(settings)
        app.state.transport = transport or create_transport(settings, app.state.resources.redis)
        app.state.producer = TaskProducer(app.state.transport)
        logger.info(
            "Task API started",
            extra={"environment": settings.ENVIRONMENT, "transport": type(app.state.transport).__name__},
        )
        try:
            yield
        finally:
            if owned:
                app.state.resources.close()
            logger.info("Task API stopped")

    app = FastAPI(
        title="Task API",
        description="Enqueues tasks for asynchronous processing",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, settings)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health/ready")
    def readiness(
        resources: Resources = Depends(get_resources),
        transport: QueueTransport = Depends(get_transport),
    ):
        """Readiness: database reachable and queue transport answering."""
        database_ok = ping(resources.engine)
        try:
            pending = transport.pending_count()
            queue_ok = True
        except TransportError as e:
            logger.warning(f"Queue readiness check failed: {e}")
            pending, queue_ok = None, False

        ready = database_ok and queue_ok
        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "status": "ready" if ready else "unavailable",
                "database": database_ok,
                "queue": {"ok": queue_ok, "pending": pending},
            },
        )

    app.include_router(queue_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8787)

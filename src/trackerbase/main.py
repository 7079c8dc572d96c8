"""
TrackerBase ASGI application.

``create_app`` wires settings, logging, the v1 routers and the JSON error
envelope ``{"error": {"code", "message", "details"?}}`` shared by every
failure the API reports.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trackerbase.api.deps import close_dependencies
from trackerbase.api.v1 import router as v1_router
from trackerbase.core.config import settings
from trackerbase.core.exceptions import RateLimitError, TrackerBaseException
from trackerbase.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        f"Starting {settings.app_name} v{settings.app_version} ({settings.environment}), "
        f"pipeline cache: {settings.pipeline_cache_backend}, AI extraction: "
        f"{'on' if settings.ai_enabled else 'off'}"
    )
    yield
    await close_dependencies()
    logger.info("Pipeline cache and HTTP clients closed")


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error through the shared envelope."""

    @app.exception_handler(TrackerBaseException)
    async def handle_trackerbase_error(request: Request, exc: TrackerBaseException) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitError) and exc.details.get("retry_after"):
            headers = {"Retry-After": str(exc.details["retry_after"])}
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = "An unexpected error occurred" if settings.is_production else str(exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message)


def create_app() -> FastAPI:
    """Build the application from the current settings."""
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs or settings.is_production)

    docs = settings.debug
    app = FastAPI(
        title=settings.app_name,
        description="Computation engine for schema-driven trackers",
        version=settings.app_version,
        docs_url="/docs" if docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )
    register_exception_handlers(app)
    app.include_router(v1_router, prefix=settings.api_v1_prefix)

    @app.get("/", include_in_schema=False)
    async def service_info() -> dict[str, Any]:
        return {"name": settings.app_name, "version": settings.app_version, "api": settings.api_v1_prefix}

    return app


app = create_app()

"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics and
health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from vector_indexer import __version__
from vector_indexer.api.routes import router
from vector_indexer.config import get_settings
from vector_indexer.exceptions import ErrorCode, VectorIndexerError
from vector_indexer.logging_config import get_logger, setup_logging
from vector_indexer.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from vector_indexer.vectorstore.service import close_vector_store

logger = get_logger(__name__)

STATUS_CODES = {
    ErrorCode.CONFIGURATION_ERROR: 503,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INVALID_COLUMN: 400,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.EMBEDDING_ERROR: 400,
    ErrorCode.MODEL_INIT_ERROR: 503,
    ErrorCode.INDEX_TIMEOUT: 504,
    ErrorCode.QUERY_ERROR: 502,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting vector indexer API",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    yield

    logger.info("Shutting down vector indexer API")
    await close_vector_store()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Vector Indexer",
        description="Text embedding and nearest-neighbour query service",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(VectorIndexerError, vector_indexer_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Metrics"])
    app.include_router(router)

    return app


async def vector_indexer_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert VectorIndexerError exceptions to structured JSON responses."""
    if not isinstance(exc, VectorIndexerError):
        return JSONResponse(
            status_code=500,
            content={"error": {"code": ErrorCode.INTERNAL_ERROR.value, "message": str(exc), "details": {}}},
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=STATUS_CODES.get(exc.code, 500),
        content=exc.to_dict(),
    )


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check() -> dict[str, Any]:
    """Readiness probe.

    Reports whether the configuration needed to reach the store is present.

    Returns:
        Readiness status with component checks.
    """
    missing = get_settings().qdrant.missing_required()
    checks: dict[str, str] = {
        "config": "ok" if not missing else f"missing: {', '.join(missing)}",
    }

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app = create_app()

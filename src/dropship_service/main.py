"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dropship_service import __version__
from dropship_service.api.deps import close_supplier_client
from dropship_service.api.v1.router import api_router
from dropship_service.config import get_settings
from dropship_service.exceptions import (
    AlreadySubmittedError,
    ConfigurationError,
    DropshipError,
    NotSubmittedError,
    OrderNotFoundError,
    SupplierApiError,
    UpstreamAuthError,
)
from dropship_service.infrastructure.database.connection import dispose_engine
from dropship_service.log_config import configure_logging
from dropship_service.middleware.request_context import RequestContextMiddleware

configure_logging()

logger = structlog.get_logger()

ERROR_STATUS_CODES: dict[type[DropshipError], int] = {
    AlreadySubmittedError: status.HTTP_409_CONFLICT,
    NotSubmittedError: status.HTTP_409_CONFLICT,
    OrderNotFoundError: status.HTTP_404_NOT_FOUND,
    ConfigurationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    UpstreamAuthError: status.HTTP_502_BAD_GATEWAY,
    SupplierApiError: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting dropship service",
        app_env=settings.app_env,
        debug=settings.debug,
        supplier_credentials=settings.supplier_credentials_configured,
    )
    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set; all admin endpoints will answer 401")

    yield

    await close_supplier_client(app)
    await dispose_engine()
    logger.info("Shutting down dropship service")


async def dropship_error_handler(request: Request, exc: DropshipError) -> JSONResponse:
    """Translate domain errors into JSON responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        error=type(exc).__name__,
        detail=str(exc),
        status=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dropship Integration API",
        description="Supplier catalog sync, order fulfillment and shipment tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DropshipError, dropship_error_handler)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dropship_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()

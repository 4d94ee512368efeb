"""
FastAPI application entry point.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm import __version__
from crm.config import get_settings
from crm.contacts.blocklist.router import router as blocklist_router
from crm.contacts.router import router as contacts_router
from crm.messaging.factory import get_identity_resolver
from crm.realtime.broadcaster import ConnectionHub
from crm.realtime.router import router as realtime_router
from crm.shared.database import get_database_manager
from crm.shared.exceptions import (
    AppError,
    InvalidContactError,
    NotFoundError,
    UnreachableNumberError,
    ValidationError,
)
from crm.shared.logging import bind_correlation_id, get_logger, setup_logging

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env})

    db_manager = get_database_manager()
    if settings.app_env == "dev":
        await db_manager.create_all()
        logger.info("Database tables ensured")

    yield

    logger.info("Shutting down application")

    # Only close a resolver that was actually built
    if get_identity_resolver.cache_info().currsize:
        await get_identity_resolver().aclose()
        get_identity_resolver.cache_clear()

    await db_manager.close()
    logger.info("Application shutdown complete")


def _error_response(status_code: int, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Contact Sync API",
        description="Multi-tenant contact management with real-time sync",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.broadcaster = ConnectionHub(queue_size=settings.realtime_queue_size)

    # Map domain exceptions to HTTP responses
    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(InvalidContactError)
    async def _invalid_contact(_: Request, exc: InvalidContactError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(UnreachableNumberError)
    async def _unreachable(_: Request, exc: UnreachableNumberError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    @app.middleware("http")
    async def correlation_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            bind_correlation_id(None)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(contacts_router)
    app.include_router(blocklist_router)
    app.include_router(realtime_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()

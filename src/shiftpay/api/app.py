"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shiftpay.api.routes import health_router, payroll_router
from shiftpay.config import get_settings
from shiftpay.database import create_schema, dispose_db, init_db
from shiftpay.errors import (
    DataSourceError,
    InvariantViolationError,
    NotFoundError,
    PayrollError,
    ValidationError,
)
from shiftpay.services.ledger_lock import KeyedLock
from shiftpay.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES: list[tuple[type[PayrollError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DataSourceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvariantViolationError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_code_for(exc: PayrollError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine, _ = init_db(settings.database_url)
    await create_schema(engine)
    logger.info("shiftpay %s started", settings.engine_version)
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Shiftpay API",
        description="Timesheet payroll engine",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    # Shared by every request so concurrent recalculations of one period serialize
    app.state.ledger_locks = KeyedLock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map engine errors to HTTP status codes."""
        return JSONResponse(
            status_code=status_code_for(exc),
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "internal_error",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

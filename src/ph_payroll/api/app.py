"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ph_payroll import __version__
from ph_payroll.api.routes import (
    adjustments_router,
    contributions_router,
    entries_router,
    health_router,
    periods_router,
)
from ph_payroll.calculators.brackets import BracketTableError
from ph_payroll.calculators.contributions import ContributionTableNotFoundError
from ph_payroll.database import close_db, init_db
from ph_payroll.services.computation_service import ComputationError, PeriodLockedError
from ph_payroll.services.errors import EntityNotFoundError
from ph_payroll.services.ledger_service import LedgerError
from ph_payroll.services.period_service import PeriodOverlapError
from ph_payroll.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

# Domain exception -> (HTTP status, error code)
ERROR_STATUS: dict[type[Exception], tuple[int, str]] = {
    EntityNotFoundError: (status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    InvalidTransitionError: (status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    LedgerError: (status.HTTP_409_CONFLICT, "LEDGER_CONFLICT"),
    PeriodOverlapError: (status.HTTP_409_CONFLICT, "PERIOD_OVERLAP"),
    PeriodLockedError: (status.HTTP_409_CONFLICT, "PERIOD_LOCKED"),
    ComputationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "COMPUTATION_ERROR"),
    BracketTableError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "INVALID_BRACKET_TABLE"),
    ContributionTableNotFoundError: (
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "CONTRIBUTION_TABLE_NOT_FOUND",
    ),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PH Payroll Engine API",
        description="Philippine statutory payroll engine",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        status_code, code = next(
            value for error_type, value in ERROR_STATUS.items() if isinstance(exc, error_type)
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})

    for error_type in ERROR_STATUS:
        app.add_exception_handler(error_type, domain_exception_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(contributions_router, prefix="/api/v1")
    app.include_router(periods_router, prefix="/api/v1")
    app.include_router(entries_router, prefix="/api/v1")
    app.include_router(adjustments_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

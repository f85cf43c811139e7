"""Payroll period API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from ph_payroll.api.dependencies import ActorId, AppSettings, DbSession, SessionFactory
from ph_payroll.api.schemas import (
    ComputeRequest,
    CorrectionPeriodCreate,
    EntrySummaryResponse,
    ErrorResponse,
    PeriodComputationResponse,
    PeriodResponse,
    PeriodTransitionRequest,
)
from ph_payroll.services.computation_service import PayrollBatchService
from ph_payroll.services.entry_service import PayrollEntryService
from ph_payroll.services.period_service import PayrollPeriodService

router = APIRouter(prefix="/payroll-periods", tags=["payroll-periods"])


# ============================================================================
# Period queries
# ============================================================================


@router.get(
    "/{period_id}",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_period(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> PeriodResponse:
    """Get a payroll period with its totals."""
    period = await PayrollPeriodService(db).require_period(period_id)
    return PeriodResponse.model_validate(period)


@router.get(
    "/{period_id}/entries",
    response_model=list[EntrySummaryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_period_entries(
    db: DbSession,
    period_id: Annotated[UUID, Path()],
) -> list[EntrySummaryResponse]:
    """List the period's entries without line items."""
    await PayrollPeriodService(db).require_period(period_id)
    entries = await PayrollEntryService(db).list_entries(period_id)
    return [EntrySummaryResponse.model_validate(entry) for entry in entries]


# ============================================================================
# Period state transitions
# ============================================================================


@router.post(
    "/{period_id}/transition",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_period(
    db: DbSession,
    actor_id: ActorId,
    period_id: Annotated[UUID, Path()],
    payload: PeriodTransitionRequest,
) -> PeriodResponse:
    """Move a period to a new status."""
    period = await PayrollPeriodService(db).transition_period(
        period_id, payload.status, actor_id, payload.reason
    )
    await db.commit()
    return PeriodResponse.model_validate(period)


@router.post(
    "/{period_id}/compute",
    response_model=PeriodComputationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def compute_period(
    session_factory: SessionFactory,
    settings: AppSettings,
    actor_id: ActorId,
    period_id: Annotated[UUID, Path()],
    payload: ComputeRequest | None = None,
) -> PeriodComputationResponse:
    """Compute every employee in the period. Failures are reported, not raised."""
    force_recompute = payload.force_recompute if payload else False
    result = await PayrollBatchService(session_factory, settings).compute_period(
        period_id, actor_id, force_recompute
    )
    return PeriodComputationResponse.model_validate(result)


@router.post(
    "/{period_id}/corrections",
    response_model=PeriodResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_correction_period(
    db: DbSession,
    actor_id: ActorId,
    period_id: Annotated[UUID, Path()],
    payload: CorrectionPeriodCreate,
) -> PeriodResponse:
    """Create a Draft correction period for a closed period."""
    period = await PayrollPeriodService(db).create_correction_period(
        period_id,
        payload.pay_date,
        payload.cutoff_start,
        payload.cutoff_end,
        actor_id,
    )
    await db.commit()
    return PeriodResponse.model_validate(period)

"""Adjustment ledger API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from ph_payroll.api.dependencies import ActorId, DbSession
from ph_payroll.api.schemas import (
    AdjustmentApplicationResponse,
    AdjustmentApplyRequest,
    AdjustmentResponse,
    AdjustmentStatusRequest,
    ErrorResponse,
)
from ph_payroll.services.ledger_service import AdjustmentService

router = APIRouter(prefix="/adjustments", tags=["adjustments"])


@router.post(
    "/{adjustment_id}/apply",
    response_model=AdjustmentApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def apply_adjustment(
    db: DbSession,
    actor_id: ActorId,
    adjustment_id: Annotated[UUID, Path()],
    payload: AdjustmentApplyRequest,
) -> AdjustmentApplicationResponse:
    """Apply an adjustment to a period once."""
    application = await AdjustmentService(db).apply_adjustment(
        adjustment_id, payload.period_id, actor_id
    )
    await db.commit()
    return AdjustmentApplicationResponse.model_validate(application)


@router.post(
    "/{adjustment_id}/hold",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def hold_adjustment(
    db: DbSession,
    actor_id: ActorId,
    adjustment_id: Annotated[UUID, Path()],
    payload: AdjustmentStatusRequest | None = None,
) -> AdjustmentResponse:
    """Stop applying an adjustment until it is resumed."""
    adjustment = await AdjustmentService(db).put_on_hold(
        adjustment_id, payload.reason if payload else None, actor_id
    )
    await db.commit()
    return AdjustmentResponse.model_validate(adjustment)


@router.post(
    "/{adjustment_id}/resume",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def resume_adjustment(
    db: DbSession,
    actor_id: ActorId,
    adjustment_id: Annotated[UUID, Path()],
) -> AdjustmentResponse:
    adjustment = await AdjustmentService(db).resume(adjustment_id, actor_id)
    await db.commit()
    return AdjustmentResponse.model_validate(adjustment)


@router.post(
    "/{adjustment_id}/cancel",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_adjustment(
    db: DbSession,
    actor_id: ActorId,
    adjustment_id: Annotated[UUID, Path()],
    payload: AdjustmentStatusRequest | None = None,
) -> AdjustmentResponse:
    adjustment = await AdjustmentService(db).cancel(
        adjustment_id, payload.reason if payload else None, actor_id
    )
    await db.commit()
    return AdjustmentResponse.model_validate(adjustment)

"""Payroll entry API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from ph_payroll.api.dependencies import ActorId, AppSettings, DbSession
from ph_payroll.api.schemas import EntryResponse, EntryTransitionRequest, ErrorResponse
from ph_payroll.services.computation_service import PayrollComputationService
from ph_payroll.services.entry_service import PayrollEntryService

router = APIRouter(prefix="/payroll-entries", tags=["payroll-entries"])


@router.get(
    "/{entry_id}",
    response_model=EntryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_entry(
    db: DbSession,
    entry_id: Annotated[UUID, Path()],
) -> EntryResponse:
    """Get a payroll entry with its earning and deduction lines."""
    entry = await PayrollEntryService(db).require_entry(entry_id, load_lines=True)
    return EntryResponse.model_validate(entry)


@router.post(
    "/{entry_id}/transition",
    response_model=EntryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_entry(
    db: DbSession,
    actor_id: ActorId,
    entry_id: Annotated[UUID, Path()],
    payload: EntryTransitionRequest,
) -> EntryResponse:
    """Review, approve, send back, or reset an entry."""
    service = PayrollEntryService(db)
    await service.transition_entry(entry_id, payload.status, actor_id, payload.remarks)
    await db.commit()
    entry = await service.require_entry(entry_id, load_lines=True)
    return EntryResponse.model_validate(entry)


@router.post(
    "/{entry_id}/recompute",
    response_model=EntryResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def recompute_entry(
    db: DbSession,
    settings: AppSettings,
    actor_id: ActorId,
    entry_id: Annotated[UUID, Path()],
) -> EntryResponse:
    """Recompute one entry, regenerating its line items."""
    await PayrollComputationService(db, settings=settings).recompute_entry(entry_id, actor_id)
    await db.commit()
    db.expire_all()
    entry = await PayrollEntryService(db).require_entry(entry_id, load_lines=True)
    return EntryResponse.model_validate(entry)

"""Statutory contribution lookup endpoints."""

from fastapi import APIRouter, status

from ph_payroll.api.dependencies import DbSession
from ph_payroll.api.schemas import (
    ContributionCalculateRequest,
    ContributionResultResponse,
    ContributionSummaryRequest,
    ContributionSummaryResponse,
)
from ph_payroll.calculators.contributions import ContributionService

router = APIRouter(prefix="/contributions", tags=["contributions"])


@router.post(
    "/calculate",
    response_model=ContributionResultResponse,
    status_code=status.HTTP_200_OK,
)
async def calculate_contribution(
    db: DbSession,
    payload: ContributionCalculateRequest,
) -> ContributionResultResponse:
    """Calculate one contribution. A missing table is reported in ``error``."""
    service = ContributionService(db)
    result = await service.calculate_contribution(
        payload.type, payload.compensation, payload.as_of, payload.pay_period
    )
    return ContributionResultResponse.model_validate(result)


@router.post(
    "/calculate-all",
    response_model=ContributionSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def calculate_all_contributions(
    db: DbSession,
    payload: ContributionSummaryRequest,
) -> ContributionSummaryResponse:
    """SSS, PhilHealth, Pag-IBIG and withholding tax on a monthly salary."""
    summary = await ContributionService(db).calculate_all(payload.salary, payload.as_of)
    return ContributionSummaryResponse(
        salary=summary.salary,
        sss=ContributionResultResponse.model_validate(summary.sss),
        philhealth=ContributionResultResponse.model_validate(summary.philhealth),
        pagibig=ContributionResultResponse.model_validate(summary.pagibig),
        withholding_tax=ContributionResultResponse.model_validate(summary.withholding_tax),
        taxable_income=summary.taxable_income,
        total_employee_contributions=summary.total_employee_contributions,
        total_employer_contributions=summary.total_employer_contributions,
        total_deductions=summary.total_deductions,
        net_pay=summary.net_pay,
        errors=summary.errors,
    )

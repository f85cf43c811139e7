"""ORM models."""

from ph_payroll.models.base import Base, JsonType, TimestampMixin
from ph_payroll.models.employee import Employee, EmployeeCompensation
from ph_payroll.models.attendance import (
    AttendancePunch,
    DailyTimeRecord,
    Holiday,
    LeaveApplication,
    OvertimeRequest,
    WorkSchedule,
)
from ph_payroll.models.contributions import (
    PagibigContributionTable,
    PagibigContributionTier,
    PhilhealthContributionTable,
    SssContributionBracket,
    SssContributionTable,
    WithholdingTaxBracket,
    WithholdingTaxTable,
)
from ph_payroll.models.ledger import Adjustment, AdjustmentApplication, Loan, LoanPayment
from ph_payroll.models.payroll import (
    AuditEvent,
    PayrollCycle,
    PayrollDeduction,
    PayrollEarning,
    PayrollEntry,
    PayrollPeriod,
)

__all__ = [
    "Base",
    "JsonType",
    "TimestampMixin",
    "Employee",
    "EmployeeCompensation",
    "AttendancePunch",
    "DailyTimeRecord",
    "Holiday",
    "LeaveApplication",
    "OvertimeRequest",
    "WorkSchedule",
    "PagibigContributionTable",
    "PagibigContributionTier",
    "PhilhealthContributionTable",
    "SssContributionBracket",
    "SssContributionTable",
    "WithholdingTaxBracket",
    "WithholdingTaxTable",
    "Adjustment",
    "AdjustmentApplication",
    "Loan",
    "LoanPayment",
    "AuditEvent",
    "PayrollCycle",
    "PayrollDeduction",
    "PayrollEarning",
    "PayrollEntry",
    "PayrollPeriod",
]

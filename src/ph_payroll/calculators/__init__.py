"""Statutory contribution, rate, and line item calculators.

The entry pipeline (earnings, deductions, engine) depends on the attendance
summary and is imported from its own modules.
"""

from ph_payroll.calculators.brackets import BracketTableError, find_bracket, validate_brackets
from ph_payroll.calculators.contributions import (
    ContributionService,
    ContributionTableNotFoundError,
    PagibigCalculator,
    PhilhealthCalculator,
    SssCalculator,
    WithholdingTaxCalculator,
)
from ph_payroll.calculators.line_builder import LineItemBuilder
from ph_payroll.calculators.rates import PayrollRateCalculator

__all__ = [
    "BracketTableError",
    "ContributionService",
    "ContributionTableNotFoundError",
    "LineItemBuilder",
    "PagibigCalculator",
    "PayrollRateCalculator",
    "PhilhealthCalculator",
    "SssCalculator",
    "WithholdingTaxCalculator",
    "find_bracket",
    "validate_brackets",
]

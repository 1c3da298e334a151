"""Payroll engine services."""

from shiftpay.services.deduction_service import AdvanceResult, DeductionLine, DeductionService
from shiftpay.services.ledger_lock import KeyedLock
from shiftpay.services.loan_service import LoanService
from shiftpay.services.payroll_service import (
    BatchFailure,
    BatchResult,
    PayrollService,
    PayslipDay,
    PayslipDetail,
)
from shiftpay.services.period_service import (
    PayPeriod,
    PeriodService,
    resolve_current_period,
    resolve_rolling_period,
)
from shiftpay.services.state_machine import InvalidTransitionError, PayrollStateMachine

__all__ = [
    "AdvanceResult",
    "BatchFailure",
    "BatchResult",
    "DeductionLine",
    "DeductionService",
    "InvalidTransitionError",
    "KeyedLock",
    "LoanService",
    "PayPeriod",
    "PayrollService",
    "PayrollStateMachine",
    "PayslipDay",
    "PayslipDetail",
    "PeriodService",
    "resolve_current_period",
    "resolve_rolling_period",
]

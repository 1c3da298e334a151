"""ORM models."""

from shiftpay.models.base import Base, TimestampMixin
from shiftpay.models.employee import Employee
from shiftpay.models.payroll import (
    AuditEvent,
    BonusWithdrawal,
    Deduction,
    Loan,
    PayrollEntry,
    Setting,
)
from shiftpay.models.timesheet import TimesheetEntry

__all__ = [
    "AuditEvent",
    "Base",
    "BonusWithdrawal",
    "Deduction",
    "Employee",
    "Loan",
    "PayrollEntry",
    "Setting",
    "TimesheetEntry",
    "TimestampMixin",
]

"""Data store access for the payroll engine."""

from shiftpay.repositories.base import (
    BONUS_SETTING_KEY,
    PERIOD_LOCK_KEY,
    PayrollRepository,
    load_bonus_setting,
)
from shiftpay.repositories.memory import InMemoryPayrollRepository
from shiftpay.repositories.records import (
    DEFAULT_BONUS_SETTING,
    BonusSetting,
    DeductionRecord,
    EmployeeRecord,
    LoanRecord,
    PayrollRecord,
    PeriodLock,
    TimesheetRecord,
    WithdrawalRecord,
)

__all__ = [
    "BONUS_SETTING_KEY",
    "PERIOD_LOCK_KEY",
    "PayrollRepository",
    "load_bonus_setting",
    "InMemoryPayrollRepository",
    "DEFAULT_BONUS_SETTING",
    "BonusSetting",
    "DeductionRecord",
    "EmployeeRecord",
    "LoanRecord",
    "PayrollRecord",
    "PeriodLock",
    "TimesheetRecord",
    "WithdrawalRecord",
]

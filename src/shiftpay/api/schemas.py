"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from shiftpay.calculators.types import DayType, DeductionType, NightStatus, PayrollStatus


class ErrorResponse(BaseModel):
    """Error body returned for every PayrollError."""

    detail: str
    code: str


# ============================================================================
# Payroll entry schemas
# ============================================================================


class PayrollEntryResponse(BaseModel):
    """Schema for one ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    employee_id: int
    period_start: date
    period_end: date
    gross_pay: Decimal
    overtime_pay: Decimal
    deductions: Decimal
    advance_deductions: Decimal
    loan_deductions: Decimal
    net_pay: Decimal
    status: PayrollStatus
    paid_at: datetime | None = None
    total_billable_minutes: int
    total_regular_minutes: int
    total_overtime_minutes: int
    working_days: int
    hourly_rate: Decimal
    per_shift_amount: Decimal | None = None
    calculated_at: datetime | None = None


class BatchFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    code: str
    reason: str


class BatchResponse(BaseModel):
    """Schema for bulk operations: entries plus per-employee failures."""

    model_config = ConfigDict(from_attributes=True)

    entries: list[PayrollEntryResponse]
    failures: list[BatchFailureResponse]


class StatusChangeRequest(BaseModel):
    """Schema for mark-paid / mark-unpaid."""

    employee_ids: list[int] = Field(min_length=1)
    period_start: date
    period_end: date
    actor: str | None = None


class AdjustRequest(BaseModel):
    reason: str = Field(min_length=1)
    actor: str | None = None


# ============================================================================
# Period schemas
# ============================================================================


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: date
    end: date
    locked: bool = False


class PeriodLockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: date
    end: date
    locked_by: str
    locked_at: datetime


class LockedPeriodResponse(BaseModel):
    locked: bool
    period: PeriodLockResponse | None = None


class LockPeriodRequest(BaseModel):
    start: date
    end: date
    locked_by: str = Field(min_length=1)


class UnlockPeriodRequest(BaseModel):
    actor: str | None = None


# ============================================================================
# Deduction, loan and bonus schemas
# ============================================================================


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    employee_id: int
    amount: Decimal
    type: DeductionType
    deduction_date: date | None = Field(
        default=None, validation_alias=AliasChoices("date", "deduction_date")
    )
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None
    status: str


class AdvanceRequest(BaseModel):
    """Schema for issuing an advance salary."""

    employee_id: int
    amount: Decimal = Field(gt=0)
    date_issued: date
    reason: str | None = None
    period_start: date | None = None
    period_end: date | None = None


class AdvanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deduction: DeductionResponse
    period: PeriodResponse
    entry: PayrollEntryResponse | None = None


class DeductionLineRequest(BaseModel):
    type: DeductionType
    amount: Decimal = Field(ge=0)
    description: str | None = None


class ReplaceDeductionsRequest(BaseModel):
    """Schema for replacing a period's deductions."""

    employee_id: int
    period_start: date
    period_end: date
    deductions: list[DeductionLineRequest]


class ReplaceDeductionsResponse(BaseModel):
    deductions: list[DeductionResponse]
    entry: PayrollEntryResponse


class CloseLoanRequest(BaseModel):
    employee_id: int
    period_start: date
    period_end: date
    actor: str | None = None


class CloseLoanResponse(BaseModel):
    closed: bool


class BonusSettingSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_date: date
    end_date: date
    amount_per_day: Decimal = Field(ge=0)


# ============================================================================
# Payslip schemas
# ============================================================================


class ShiftHoursResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_minutes: int
    billable_minutes: int
    regular_minutes: int
    overtime_minutes: int
    night_status: NightStatus | None = None
    dinner_break_deduction: int
    day_type: DayType


class PayslipDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    work_date: date = Field(validation_alias=AliasChoices("date", "work_date"))
    clock_in: str
    clock_out: str
    break_minutes: int
    hours: ShiftHoursResponse


class EmployeeSummaryResponse(BaseModel):
    """Employee display metadata shown on a payslip."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    role: str | None = None
    image: str | None = None
    contact: str | None = None
    per_shift_amount: Decimal | None = None
    hourly_rate: Decimal | None = None
    salary: Decimal | None = None


class LoanSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    loan_date: date
    original_amount: Decimal
    opening_balance: Decimal
    current_deduction: Decimal
    remaining_balance: Decimal


class BonusSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ytd_days: int
    ytd_accrued: Decimal
    total_withdrawn: Decimal
    balance: Decimal


class PayslipResponse(BaseModel):
    """Schema for the payslip detail view."""

    model_config = ConfigDict(from_attributes=True)

    entry: PayrollEntryResponse
    employee: EmployeeSummaryResponse
    timesheet: list[PayslipDayResponse]
    advances: list[DeductionResponse]
    loans: list[DeductionResponse]
    loan_summary: LoanSummaryResponse | None = None
    bonus: BonusSummaryResponse

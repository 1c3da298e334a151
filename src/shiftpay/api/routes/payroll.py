"""Payroll API endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from shiftpay.api.dependencies import Payroll, Periods, Repository
from shiftpay.api.schemas import (
    AdjustRequest,
    AdvanceRequest,
    AdvanceResponse,
    BatchResponse,
    BonusSettingSchema,
    CloseLoanRequest,
    CloseLoanResponse,
    DeductionResponse,
    ErrorResponse,
    LockedPeriodResponse,
    LockPeriodRequest,
    PayrollEntryResponse,
    PayslipResponse,
    PeriodLockResponse,
    PeriodResponse,
    ReplaceDeductionsRequest,
    ReplaceDeductionsResponse,
    StatusChangeRequest,
    UnlockPeriodRequest,
)
from shiftpay.repositories.base import BONUS_SETTING_KEY, load_bonus_setting
from shiftpay.repositories.records import DEFAULT_BONUS_SETTING, BonusSetting
from shiftpay.services.deduction_service import DeductionLine, DeductionService
from shiftpay.services.loan_service import LoanService
from shiftpay.services.period_service import PayPeriod

router = APIRouter(prefix="/payroll", tags=["payroll"])

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ============================================================================
# Calculation
# ============================================================================


@router.get("/calculate", response_model=PayrollEntryResponse, responses=ERROR_RESPONSES)
async def calculate(
    payroll: Payroll,
    employee_id: Annotated[int, Query()],
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
) -> PayrollEntryResponse:
    """Recalculate one employee's entry for a period."""
    entry = await payroll.calculate(employee_id, start, end)
    return PayrollEntryResponse.model_validate(entry)


@router.get("/period", response_model=BatchResponse, responses=ERROR_RESPONSES)
async def period_entries(
    payroll: Payroll,
    repository: Repository,
    start: Annotated[date, Query()],
    end: Annotated[date, Query()],
    refresh: bool = False,
    employee_ids: Annotated[list[int] | None, Query()] = None,
) -> BatchResponse:
    """Entries for a period, computing missing ones.

    Defaults to every active employee. ``refresh`` recomputes existing
    Pending entries as well.
    """
    ids = employee_ids or await payroll.load(
        "employees", None, repository.list_employee_ids("Active")
    )
    result = await payroll.recalculate_bulk(ids, start, end, force=refresh)
    return BatchResponse.model_validate(result)


@router.get("/history/{employee_id}", response_model=list[PayrollEntryResponse])
async def history(
    payroll: Payroll,
    employee_id: Annotated[int, Path()],
) -> list[PayrollEntryResponse]:
    """Paid entries for an employee, newest first."""
    entries = await payroll.get_history(employee_id)
    return [PayrollEntryResponse.model_validate(e) for e in entries]


# ============================================================================
# Status transitions
# ============================================================================


@router.post("/mark-paid", response_model=BatchResponse, responses=ERROR_RESPONSES)
async def mark_paid(payroll: Payroll, payload: StatusChangeRequest) -> BatchResponse:
    """Recalculate and freeze entries for the given employees."""
    result = await payroll.mark_paid(
        payload.employee_ids, payload.period_start, payload.period_end, payload.actor
    )
    return BatchResponse.model_validate(result)


@router.post("/mark-unpaid", response_model=BatchResponse, responses=ERROR_RESPONSES)
async def mark_unpaid(payroll: Payroll, payload: StatusChangeRequest) -> BatchResponse:
    """Reopen Paid entries for the given employees."""
    result = await payroll.mark_unpaid(
        payload.employee_ids, payload.period_start, payload.period_end, payload.actor
    )
    return BatchResponse.model_validate(result)


@router.post(
    "/entries/{entry_id}/adjust",
    response_model=PayrollEntryResponse,
    responses=ERROR_RESPONSES,
)
async def adjust_entry(
    payroll: Payroll,
    entry_id: Annotated[int, Path()],
    payload: AdjustRequest,
) -> PayrollEntryResponse:
    """Recompute a Paid entry without reopening it."""
    entry = await payroll.adjust(entry_id, payload.reason, payload.actor)
    return PayrollEntryResponse.model_validate(entry)


@router.get(
    "/entries/{entry_id}/payslip",
    response_model=PayslipResponse,
    responses=ERROR_RESPONSES,
)
async def payslip(payroll: Payroll, entry_id: Annotated[int, Path()]) -> PayslipResponse:
    """Payslip detail for one entry."""
    detail = await payroll.get_payslip_detail(entry_id)
    return PayslipResponse.model_validate(detail)


# ============================================================================
# Period lock
# ============================================================================


@router.get("/locked-period", response_model=LockedPeriodResponse)
async def locked_period(periods: Periods) -> LockedPeriodResponse:
    """Current period lock, if any."""
    state = await periods.get_locked_period()
    lock = state["period"]
    return LockedPeriodResponse(
        locked=state["locked"],
        period=PeriodLockResponse.model_validate(lock) if lock else None,
    )


@router.get("/current-period", response_model=PeriodResponse)
async def current_period(
    periods: Periods,
    today: Annotated[date | None, Query()] = None,
) -> PeriodResponse:
    """The locked period, or the rolling period containing ``today``."""
    period = await periods.current_period(today)
    return PeriodResponse.model_validate(period)


@router.post("/lock-period", response_model=PeriodLockResponse, responses=ERROR_RESPONSES)
async def lock_period(periods: Periods, payload: LockPeriodRequest) -> PeriodLockResponse:
    """Pin the current period."""
    lock = await periods.lock_period(payload.start, payload.end, payload.locked_by)
    return PeriodLockResponse.model_validate(lock)


@router.post("/unlock-period", status_code=status.HTTP_204_NO_CONTENT)
async def unlock_period(periods: Periods, payload: UnlockPeriodRequest | None = None) -> None:
    """Remove the period lock."""
    await periods.unlock_period(payload.actor if payload else None)


# ============================================================================
# Bonus settings
# ============================================================================


@router.get("/settings/bonus", response_model=BonusSettingSchema)
async def get_bonus_setting(payroll: Payroll, repository: Repository) -> BonusSettingSchema:
    """Stored bonus setting, or the default window and rate."""
    setting = await payroll.load("settings", None, load_bonus_setting(repository))
    return BonusSettingSchema.model_validate(setting or DEFAULT_BONUS_SETTING)


@router.post("/settings/bonus", response_model=BonusSettingSchema, responses=ERROR_RESPONSES)
async def save_bonus_setting(
    payroll: Payroll, repository: Repository, payload: BonusSettingSchema
) -> BonusSettingSchema:
    """Replace the bonus setting."""
    setting = BonusSetting(
        start_date=payload.start_date,
        end_date=payload.end_date,
        amount_per_day=payload.amount_per_day,
    )
    await payroll.load(
        "settings_write", None, repository.save_setting(BONUS_SETTING_KEY, setting.to_dict())
    )
    return BonusSettingSchema.model_validate(setting)


# ============================================================================
# Deductions and loans
# ============================================================================


@router.post("/advance-salary", response_model=AdvanceResponse, responses=ERROR_RESPONSES)
async def advance_salary(
    payroll: Payroll, periods: Periods, payload: AdvanceRequest
) -> AdvanceResponse:
    """Issue an advance and recalculate the period it is deducted from."""
    period = None
    if payload.period_start and payload.period_end:
        period = PayPeriod(start=payload.period_start, end=payload.period_end)
    result = await DeductionService(payroll, periods).issue_advance(
        payload.employee_id,
        payload.amount,
        payload.date_issued,
        payload.reason,
        period,
    )
    return AdvanceResponse.model_validate(result)


@router.post("/deductions", response_model=ReplaceDeductionsResponse, responses=ERROR_RESPONSES)
async def replace_deductions(
    payroll: Payroll, periods: Periods, payload: ReplaceDeductionsRequest
) -> ReplaceDeductionsResponse:
    """Replace a period's deductions and recalculate."""
    lines = [DeductionLine(d.type, d.amount, d.description) for d in payload.deductions]
    saved, entry = await DeductionService(payroll, periods).replace_period_deductions(
        payload.employee_id, payload.period_start, payload.period_end, lines
    )
    return ReplaceDeductionsResponse(
        deductions=[DeductionResponse.model_validate(d) for d in saved],
        entry=PayrollEntryResponse.model_validate(entry),
    )


@router.post("/loans/close", response_model=CloseLoanResponse, responses=ERROR_RESPONSES)
async def close_loan(payroll: Payroll, payload: CloseLoanRequest) -> CloseLoanResponse:
    """Close the employee's active loan if this period settles it."""
    closed = await LoanService(payroll).close_loan_if_settled(
        payload.employee_id, payload.period_start, payload.period_end, payload.actor
    )
    return CloseLoanResponse(closed=closed)

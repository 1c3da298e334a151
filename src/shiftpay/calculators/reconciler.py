"""Deduction classification and loan balance reconciliation."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from shiftpay.calculators.types import DeductionBreakdown, DeductionType, LoanSummary

if TYPE_CHECKING:
    from shiftpay.repositories.records import DeductionRecord, LoanRecord


def _amount(deduction: DeductionRecord) -> Decimal:
    return Decimal(deduction.amount or 0)


def classify_deductions(deductions: Iterable[DeductionRecord]) -> DeductionBreakdown:
    """Total active deductions by type."""
    totals = {kind: Decimal("0") for kind in DeductionType}
    for deduction in deductions:
        if deduction.status != "active":
            continue
        totals[DeductionType(deduction.type)] += _amount(deduction)

    return DeductionBreakdown(
        total=sum(totals.values(), Decimal("0")),
        advance=totals[DeductionType.ADVANCE],
        loan=totals[DeductionType.LOAN],
        penalty=totals[DeductionType.PENALTY],
        custom=totals[DeductionType.CUSTOM],
    )


def summarize_loan(
    loan: LoanRecord,
    all_loan_deductions: Iterable[DeductionRecord],
    current_deductions: Iterable[DeductionRecord],
    period_start: date,
) -> LoanSummary:
    """Compute a loan's balance as seen from the period starting ``period_start``.

    Opening balance is the principal less every loan repayment from periods
    ending before this one; the remaining balance never goes below zero.
    """
    previous = sum(
        (
            _amount(d)
            for d in all_loan_deductions
            if d.type == DeductionType.LOAN
            and d.status == "active"
            and d.effective_end is not None
            and d.effective_end < period_start
        ),
        Decimal("0"),
    )
    current = classify_deductions(current_deductions).loan

    opening = Decimal(loan.amount) - previous
    return LoanSummary(
        loan_date=loan.date,
        original_amount=Decimal(loan.amount),
        opening_balance=opening,
        current_deduction=current,
        remaining_balance=max(Decimal("0"), opening - current),
    )

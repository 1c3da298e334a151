"""Payroll ledger, deduction, loan and bonus models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from shiftpay.models.base import Base, TimestampMixin


class Deduction(Base, TimestampMixin):
    """Deduction from an employee's pay (advance, loan repayment, penalty, custom)."""

    __tablename__ = "deduction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    deduction_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    linked_advance_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('advance', 'loan', 'penalty', 'custom')",
            name="deduction_type_check",
        ),
        CheckConstraint(
            "status IN ('active', 'cancelled')",
            name="deduction_status_check",
        ),
        CheckConstraint(
            "deduction_date IS NOT NULL OR period_start IS NOT NULL",
            name="deduction_dated_check",
        ),
    )


class Loan(Base, TimestampMixin):
    """Loan principal repaid through loan-type deductions."""

    __tablename__ = "loan"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    loan_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'closed')", name="loan_status_check"),
    )


class BonusWithdrawal(Base, TimestampMixin):
    """Withdrawal against accrued attendance bonus."""

    __tablename__ = "bonus_withdrawal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    withdrawal_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(String, nullable=True)


class PayrollEntry(Base, TimestampMixin):
    """Ledger row: one employee's pay for one period."""

    __tablename__ = "payroll_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    advance_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    loan_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="Pending")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Computation metadata
    total_billable_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_regular_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hourly_rate: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0")
    )
    per_shift_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "period_start", "period_end", name="payroll_entry_period_unique"
        ),
        CheckConstraint("status IN ('Pending', 'Paid')", name="payroll_entry_status_check"),
        CheckConstraint("period_end >= period_start", name="payroll_entry_period_check"),
        CheckConstraint(
            "(status = 'Paid') = (paid_at IS NOT NULL)",
            name="payroll_entry_paid_at_check",
        ),
    )


class Setting(Base):
    """Key/value application setting (bonus rate, period lock)."""

    __tablename__ = "setting"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AuditEvent(Base, TimestampMixin):
    """Audit trail of ledger and period lock actions."""

    __tablename__ = "audit_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

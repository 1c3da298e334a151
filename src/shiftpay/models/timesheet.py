"""Timesheet entry model."""

from __future__ import annotations

from datetime import date

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shiftpay.models.base import Base, TimestampMixin


class TimesheetEntry(Base, TimestampMixin):
    """One day of clock times for one employee."""

    __tablename__ = "timesheet_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    clock_in: Mapped[str | None] = mapped_column(String(5), nullable=True)
    clock_out: Mapped[str | None] = mapped_column(String(5), nullable=True)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day_type: Mapped[str] = mapped_column(String, nullable=False, default="Work")

    # Planned shift, used when clock times are missing
    shift_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    shift_end: Mapped[str | None] = mapped_column(String(5), nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="timesheet_employee_day_unique"),
        CheckConstraint("day_type IN ('Work', 'Travel')", name="timesheet_day_type_check"),
        CheckConstraint("break_minutes >= 0", name="timesheet_break_check"),
    )

"""Employee model (read-only to the payroll engine)."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shiftpay.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record with pay model and standard shift."""

    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    image: Mapped[str | None] = mapped_column(String, nullable=True)
    contact: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="Active")

    # Pay model: first non-empty of per_shift_amount, hourly_rate, salary
    per_shift_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    salary: Mapped[Decimal | None] = mapped_column(nullable=True)

    shift_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    shift_end: Mapped[str | None] = mapped_column(String(5), nullable=True)
    break_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Active', 'Inactive', 'Resigned')",
            name="employee_status_check",
        ),
    )

"""Payroll entry state machine with transition validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shiftpay.calculators.types import PayrollStatus
from shiftpay.errors import PayrollError

if TYPE_CHECKING:
    from shiftpay.repositories.records import PayrollRecord


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollStateMachine:
    """State machine for payroll entry status transitions.

    Allowed transitions:
    - Pending → Paid (mark paid, freezes the figures)
    - Paid → Pending (mark unpaid, figures kept)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.PENDING: [PayrollStatus.PAID],
        PayrollStatus.PAID: [PayrollStatus.PENDING],
    }

    # Statuses where recalculation rewrites the entry
    CALCULATION_ALLOWED = {PayrollStatus.PENDING}

    # Statuses whose figures only change through an adjustment
    RESULTS_IMMUTABLE = {PayrollStatus.PAID}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_label(from_status), _label(to_status))

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if recalculation may overwrite an entry in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def are_results_immutable(cls, status: str) -> bool:
        """Check if an entry's figures are frozen in this status."""
        return status in cls.RESULTS_IMMUTABLE

    @classmethod
    def validate_entry_for_transition(
        cls, entry: PayrollRecord, to_status: str
    ) -> list[str]:
        """Validate an entry for a specific transition, returning any errors."""
        errors: list[str] = []
        from_status = entry.status

        if not cls.can_transition(from_status, to_status):
            errors.append(
                f"Cannot transition from '{_label(from_status)}' to '{_label(to_status)}'"
            )
            return errors

        if to_status == PayrollStatus.PAID and entry.calculated_at is None:
            errors.append("Entry has never been calculated")

        return errors


def _label(status: str) -> str:
    return status.value if isinstance(status, PayrollStatus) else str(status)

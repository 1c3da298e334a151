"""Error taxonomy for payroll operations.

Every error carries a stable ``code`` so API callers and bulk results can
tell "no such employee" apart from "period already paid" and from
"upstream data store unavailable".
"""

from __future__ import annotations

from typing import Any


class PayrollError(Exception):
    """Base class for all payroll engine errors."""

    code = "payroll_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(PayrollError):
    """Raised when an employee or payroll entry does not exist."""

    code = "not_found"

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"No such {entity}: {identifier}")


class DataSourceError(PayrollError):
    """Raised when a collaborator read or write against the store fails."""

    code = "data_source_unavailable"

    def __init__(self, collaborator: str, employee_id: Any = None, reason: str | None = None):
        self.collaborator = collaborator
        self.employee_id = employee_id
        msg = f"Upstream data store unavailable: {collaborator} failed"
        if employee_id is not None:
            msg += f" for employee {employee_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvariantViolationError(PayrollError):
    """Raised on an attempt to mutate a paid period outside the adjustment path."""

    code = "period_paid"


class ValidationError(PayrollError):
    """Raised for malformed input, before the store is touched."""

    code = "validation_error"

"""shiftpay - timesheet payroll engine."""

__version__ = "1.0.0"

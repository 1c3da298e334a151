"""Pay period resolution and the admin period lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from shiftpay.config import Settings, get_settings
from shiftpay.errors import ValidationError
from shiftpay.repositories.base import PERIOD_LOCK_KEY, PayrollRepository
from shiftpay.repositories.records import PeriodLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayPeriod:
    """Inclusive date range of one pay period."""

    start: date
    end: date
    locked: bool = False

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def validate_range(start: date, end: date) -> None:
    """Reject a period whose start falls after its end."""
    if start > end:
        raise ValidationError(
            f"Invalid period: start {start.isoformat()} is after end {end.isoformat()}"
        )


def resolve_rolling_period(today: date, anchor: date, cycle_days: int) -> PayPeriod:
    """Rolling period containing ``today``, counted in whole cycles from ``anchor``.

    Days before the anchor fall into earlier cycles.
    """
    if cycle_days < 1:
        raise ValidationError(f"Cycle length must be at least one day, got {cycle_days}")
    cycle = (today - anchor).days // cycle_days
    start = anchor + timedelta(days=cycle * cycle_days)
    return PayPeriod(start=start, end=start + timedelta(days=cycle_days - 1))


def resolve_current_period(
    today: date,
    lock: PeriodLock | None,
    anchor: date,
    cycle_days: int,
) -> PayPeriod:
    """The locked period if one is set, else the rolling period for ``today``."""
    if lock is not None:
        return PayPeriod(start=lock.start, end=lock.end, locked=True)
    return resolve_rolling_period(today, anchor, cycle_days)


class PeriodService:
    """Reads and writes the period lock.

    The lock only pins which period the console treats as current; it
    never touches payroll entries.
    """

    def __init__(self, repository: PayrollRepository, settings: Settings | None = None):
        self.repository = repository
        self.settings = settings or get_settings()

    async def get_lock(self) -> PeriodLock | None:
        value = await self.repository.get_setting(PERIOD_LOCK_KEY)
        return PeriodLock.from_dict(value) if value else None

    async def get_locked_period(self) -> dict[str, Any]:
        lock = await self.get_lock()
        return {"locked": lock is not None, "period": lock}

    async def lock_period(self, start: date, end: date, locked_by: str) -> PeriodLock:
        """Pin the current period to [start, end]."""
        validate_range(start, end)
        if not locked_by:
            raise ValidationError("locked_by is required")

        lock = PeriodLock(
            start=start,
            end=end,
            locked_by=locked_by,
            locked_at=datetime.now(timezone.utc),
        )
        await self.repository.save_setting(PERIOD_LOCK_KEY, lock.to_dict())
        await self.repository.record_audit(
            "payroll_period_locked",
            locked_by,
            {"start": start.isoformat(), "end": end.isoformat()},
        )
        logger.info("Payroll period locked to %s..%s by %s", start, end, locked_by)
        return lock

    async def unlock_period(self, actor: str | None = None) -> None:
        await self.repository.save_setting(PERIOD_LOCK_KEY, None)
        await self.repository.record_audit("payroll_period_unlocked", actor, None)
        logger.info("Payroll period unlocked by %s", actor or "unknown")

    async def current_period(self, today: date | None = None) -> PayPeriod:
        lock = await self.get_lock()
        return resolve_current_period(
            today or date.today(),
            lock,
            self.settings.period_anchor,
            self.settings.period_length_days,
        )

    def rolling_period(self, day: date) -> PayPeriod:
        """Rolling period containing ``day``, ignoring any lock."""
        return resolve_rolling_period(
            day, self.settings.period_anchor, self.settings.period_length_days
        )

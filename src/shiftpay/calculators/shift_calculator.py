"""Shift hour calculator.

Converts a day's raw clock times into regular, overtime and billable
minutes. Times are local wall-clock "HH:MM" strings.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from shiftpay.calculators.types import DayType, NightStatus, ShiftHours
from shiftpay.errors import ValidationError

MINUTES_PER_DAY = 24 * 60
NIGHT_SHIFT_START = 20 * 60


def parse_clock(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight."""
    try:
        hours, minutes = value.split(":")[:2]
        parsed_hours, parsed_minutes = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time of day: {value!r}")

    if (parsed_hours, parsed_minutes) != (24, 0) and not (
        0 <= parsed_hours < 24 and 0 <= parsed_minutes < 60
    ):
        raise ValidationError(f"Invalid time of day: {value!r}")
    return parsed_hours * 60 + parsed_minutes


def calculate_shift_hours(
    start_time: str | None,
    end_time: str | None,
    break_minutes: int | None = 0,
    day_type: DayType | str = DayType.WORK,
    ot_cutoff: str = "18:00",
    dinner_start: str = "20:00",
    dinner_end: str = "21:00",
) -> ShiftHours:
    """Calculate the minute breakdown for a single shift.

    A missing start or end time is an unworked day, not an error: all
    figures are zero and no night status is set.

    Work days split at ``ot_cutoff``. The break comes off regular time
    first and any remainder spills into overtime; dinner-window time
    inside the overtime portion is unpaid. Travel days count all worked
    time (less the break) as regular.
    """
    try:
        day_type = DayType(day_type or DayType.WORK)
    except ValueError:
        raise ValidationError(f"Unknown day type: {day_type!r}")

    if not start_time or not end_time:
        return ShiftHours(day_type=day_type)

    start = parse_clock(start_time)
    end = parse_clock(end_time)
    cutoff = parse_clock(ot_cutoff)
    window_start = parse_clock(dinner_start)
    window_end = parse_clock(dinner_end)
    brk = break_minutes or 0

    # Overnight shift, e.g. 22:00 to 02:00
    if end < start:
        end += MINUTES_PER_DAY

    duration = end - start

    dinner_deduction = 0
    if start < window_end and end > window_start:
        overlap = min(end, window_end) - max(start, window_start)
        if overlap > 0:
            dinner_deduction = overlap

    night_status: NightStatus | None = None
    if end > MINUTES_PER_DAY:
        night_status = NightStatus.EXTENDED_NIGHT
    elif end >= NIGHT_SHIFT_START:
        night_status = NightStatus.NIGHT_SHIFT

    if day_type == DayType.TRAVEL:
        billable = max(0, duration - brk)
        return ShiftHours(
            total_minutes=duration,
            billable_minutes=billable,
            regular_minutes=billable,
            overtime_minutes=0,
            night_status=NightStatus.TRAVEL,
            dinner_break_deduction=0,
            day_type=day_type,
        )

    regular = max(0, min(end, cutoff) - start)
    overtime = max(0, end - max(start, cutoff))

    remaining_break = brk
    if regular >= remaining_break:
        regular -= remaining_break
        remaining_break = 0
    else:
        remaining_break -= regular
        regular = 0

    if remaining_break > 0:
        overtime = max(0, overtime - remaining_break)

    if overtime > 0 and dinner_deduction > 0:
        ot_start = max(start, cutoff)
        if ot_start < window_end and end > window_start:
            overlap_in_ot = max(0, min(end, window_end) - max(ot_start, window_start))
            overtime = max(0, overtime - min(dinner_deduction, overlap_in_ot))

    # Night badge only applies when overtime was actually worked
    if overtime == 0:
        night_status = None

    return ShiftHours(
        total_minutes=duration,
        billable_minutes=regular + overtime,
        regular_minutes=regular,
        overtime_minutes=overtime,
        night_status=night_status,
        dinner_break_deduction=dinner_deduction,
        day_type=day_type,
    )


def is_working_day(entry: Any) -> bool:
    """Check whether a timesheet entry marks the employee as present."""
    if entry is None:
        return False
    return bool(getattr(entry, "clock_in", None) or getattr(entry, "shift_start", None))


def count_working_days(entries: Iterable[Any] | None) -> int:
    """Count present days in a set of timesheet entries."""
    if entries is None:
        return 0
    return sum(1 for entry in entries if is_working_day(entry))

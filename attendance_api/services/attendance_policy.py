# attendance_api/services/attendance_policy.py
"""
Office-hours policy used when a punch opens or closes a day.

The classification itself (derive_status) is pure: it only needs the check-in
time, the shift start and the grace window. Where those values come from is
resolved separately by resolve_policy so callers and tests can inject their own.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from attendance_api.models.attendance import (
    DEFAULT_CHECKIN,
    DEFAULT_CHECKOUT,
    DEFAULT_COOLDOWN_MINUTES,
    STATUS_LATE,
    STATUS_PRESENT,
    HrmSetting,
)
from attendance_api.models.employee import Employee


@dataclass(frozen=True)
class ShiftPolicy:
    start_time: time = DEFAULT_CHECKIN
    end_time: time = DEFAULT_CHECKOUT
    grace_minutes: int = 0
    cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES


def _add_minutes(t: time, minutes: int) -> datetime:
    # anchor on an arbitrary day so a grace window past midnight still compares
    return datetime.combine(date.min, t) + timedelta(minutes=minutes)


def derive_status(checkin: time, shift_start: time, grace_minutes: int = 0) -> str:
    """'late' iff checkin is strictly after shift_start + grace, else 'present'."""
    limit = _add_minutes(shift_start, max(int(grace_minutes or 0), 0))
    return STATUS_LATE if datetime.combine(date.min, checkin) > limit else STATUS_PRESENT


def is_early_checkout(punch_time: time, policy: ShiftPolicy) -> bool:
    return punch_time < policy.end_time


def minutes_between(start: time, end: time) -> float:
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return delta.total_seconds() / 60.0


def resolve_policy(employee: Optional[Employee] = None) -> ShiftPolicy:
    """
    Effective policy for an employee:
      1. their assigned, active shift (start/end/grace)
      2. the latest hrm_settings row
      3. built-in defaults (08:00 / 17:00 / no grace)
    The cooldown always comes from hrm_settings (or its default).
    """
    setting = HrmSetting.latest()
    cooldown = (
        int(setting.punch_cooldown_minutes)
        if setting is not None and setting.punch_cooldown_minutes is not None
        else DEFAULT_COOLDOWN_MINUTES
    )

    shift = getattr(employee, "shift", None) if employee is not None else None
    if shift is not None and shift.is_active:
        return ShiftPolicy(
            start_time=shift.start_time,
            end_time=shift.end_time,
            grace_minutes=int(shift.grace_minutes or 0),
            cooldown_minutes=cooldown,
        )

    if setting is not None:
        return ShiftPolicy(
            start_time=setting.checkin or DEFAULT_CHECKIN,
            end_time=setting.checkout or DEFAULT_CHECKOUT,
            grace_minutes=int(setting.grace_minutes or 0),
            cooldown_minutes=cooldown,
        )

    return ShiftPolicy(cooldown_minutes=cooldown)

# attendance_api/services/punch_engine.py
"""
Turns a punch (device line or web click) into a check-in or a check-out.

Per employee and calendar day there is at most one attendance row:

    no row            -> check-in  (row created, status derived once)
    row, no checkout  -> check-out (subject to cooldown / early-checkout rules)
    row with checkout -> ignored

Callers pass identity explicitly and get a PunchOutcome back; publishing the
domain event is the caller's job (see services.events.publish).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError

from attendance_api.extensions import db
from attendance_api.models.attendance import Attendance, SOURCE_DEVICE, SOURCE_WEB
from attendance_api.models.employee import Employee
from attendance_api.services.attendance_policy import (
    ShiftPolicy,
    derive_status,
    is_early_checkout,
    minutes_between,
    resolve_policy,
)
from attendance_api.services.device_feed import DEFAULT_DEVICE_ID, PunchEvent

log = logging.getLogger(__name__)

PUNCH_CHECK_IN = "check-in"
PUNCH_CHECK_OUT = "check-out"

IGNORED_COOLDOWN = "cooldown"
IGNORED_EARLY_CHECKOUT = "early_checkout"
IGNORED_NOT_AFTER_CHECKIN = "not_after_checkin"
IGNORED_ALREADY_CLOSED = "already_checked_out"

IGNORED_MESSAGES = {
    IGNORED_COOLDOWN: "Punch ignored. You punched in only moments ago.",
    IGNORED_EARLY_CHECKOUT: "Punch ignored. Check-out is not allowed before the official closing time.",
    IGNORED_NOT_AFTER_CHECKIN: "Punch ignored. Check-out must be later than the recorded check-in.",
    IGNORED_ALREADY_CLOSED: "Punch ignored. Attendance for today is already complete.",
}

CHANNEL_LABELS = {SOURCE_DEVICE: "Device", SOURCE_WEB: "Web Portal"}

# first try + one retry after losing a create race on (employee_id, date)
MAX_ATTEMPTS = 2


class PunchError(Exception):
    """A punch that cannot be processed at all (as opposed to one ignored by policy)."""


class EmployeeNotFound(PunchError):
    pass


class PunchConflict(PunchError):
    pass


@dataclass
class PunchOutcome:
    attendance: Optional[Attendance]
    punch_type: Optional[str] = None
    ignored_reason: Optional[str] = None
    channel: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.punch_type is not None

    @property
    def message(self) -> str:
        if self.recorded:
            via = CHANNEL_LABELS.get(self.channel)
            return f"Successfully recorded {self.punch_type}" + (f" via {via}." if via else ".")
        return IGNORED_MESSAGES.get(self.ignored_reason, "Punch ignored.")


# ---------- identity ----------

def resolve_device_employee(staff_id: str) -> Employee:
    code = (staff_id or "").strip()
    emp = Employee.query.filter_by(staff_id=code).first() if code else None
    if emp is None:
        raise EmployeeNotFound(f"Employee with staff ID {code!r} not found")
    if emp.status != "active":
        raise PunchError(f"Employee with staff ID {code!r} is not active")
    return emp


def resolve_web_employee(user_id: int) -> Employee:
    emp = Employee.query.filter_by(user_id=user_id).first() if user_id is not None else None
    if emp is None:
        raise EmployeeNotFound(
            "No employee profile is associated with your account. Unable to log attendance."
        )
    if emp.status != "active":
        raise PunchError("Your employee profile is not active. Unable to log attendance.")
    return emp


def server_now(tz_name: Optional[str] = None) -> datetime:
    """Wall-clock time in the attendance timezone, as a naive datetime."""
    if not tz_name or tz_name.upper() == "UTC":
        tz = timezone.utc
    else:
        tz = ZoneInfo(tz_name)
    return datetime.now(tz).replace(tzinfo=None, microsecond=0)


# ---------- core ----------

def _find_record(employee_id: int, day: date) -> Optional[Attendance]:
    return (
        Attendance.query.filter(
            Attendance.employee_id == employee_id,
            Attendance.date == day,
        )
        .with_for_update(of=Attendance)
        .first()
    )


def _apply(
    employee_id: int,
    ts: datetime,
    channel: str,
    policy: ShiftPolicy,
    source_label: str,
    recorded_by: Optional[int],
    device_id: Optional[str],
) -> PunchOutcome:
    day, at = ts.date(), ts.time()
    row = _find_record(employee_id, day)

    if row is None:
        row = Attendance(
            employee_id=employee_id,
            date=day,
            checkin=at,
            checkout=None,
            status=derive_status(at, policy.start_time, policy.grace_minutes),
            note=f"Check-in via {source_label}",
            user_id=recorded_by,
            source=channel,
            device_id=device_id,
        )
        db.session.add(row)
        db.session.flush()
        return PunchOutcome(row, PUNCH_CHECK_IN)

    if not row.is_open:
        return PunchOutcome(row, ignored_reason=IGNORED_ALREADY_CLOSED)

    if at <= row.checkin:
        return PunchOutcome(row, ignored_reason=IGNORED_NOT_AFTER_CHECKIN)

    if minutes_between(row.checkin, at) < policy.cooldown_minutes:
        return PunchOutcome(row, ignored_reason=IGNORED_COOLDOWN)

    early = is_early_checkout(at, policy)
    if early and channel == SOURCE_WEB:
        return PunchOutcome(row, ignored_reason=IGNORED_EARLY_CHECKOUT)

    label = "Early Check-out" if early else "Check-out"
    prefix = f"{row.note} | " if row.note else ""
    row.checkout = at
    row.note = f"{prefix}{label} via {source_label} at {at.strftime('%H:%M:%S')}"
    if recorded_by is not None:
        row.user_id = recorded_by
    db.session.flush()
    return PunchOutcome(row, PUNCH_CHECK_OUT)


def process_punch(
    employee: Employee,
    ts: datetime,
    channel: str,
    *,
    source_label: str,
    recorded_by: Optional[int] = None,
    device_id: Optional[str] = None,
    policy: Optional[ShiftPolicy] = None,
) -> PunchOutcome:
    """
    Create-or-update the day's row for `employee` and commit.

    A unique-key violation means another request created the same
    (employee, date) row between our lookup and our insert; the transaction
    is rolled back and the resolution re-run so the second punch lands on
    the check-out / ignore branches instead of a duplicate create.
    """
    employee_id = employee.id
    policy = policy or resolve_policy(employee)
    ts = ts.replace(tzinfo=None, microsecond=0)

    last_exc: Optional[IntegrityError] = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            outcome = _apply(employee_id, ts, channel, policy, source_label, recorded_by, device_id)
            db.session.commit()
            outcome.channel = channel
            return outcome
        except IntegrityError as exc:
            db.session.rollback()
            last_exc = exc
            log.info(
                "[punch] create race on employee=%s date=%s (attempt %s/%s)",
                employee_id, ts.date(), attempt, MAX_ATTEMPTS,
            )

    raise PunchConflict(
        f"Could not record punch for employee {employee_id} on {ts.date()}; please retry"
    ) from last_exc


def handle_device_punch(event: PunchEvent) -> PunchOutcome:
    """Device channel: duplicates and too-early punches are ignored, not errors."""
    employee = resolve_device_employee(event.staff_id)
    device_id = event.device_id or DEFAULT_DEVICE_ID
    outcome = process_punch(
        employee,
        event.timestamp,
        SOURCE_DEVICE,
        source_label=f"Device: {device_id}",
        recorded_by=None,
        device_id=device_id,
    )
    if not outcome.recorded:
        log.info(
            "[punch.device] ignored staff_id=%s ts=%s reason=%s",
            event.staff_id, event.timestamp, outcome.ignored_reason,
        )
    return outcome


def handle_web_punch(
    user_id: int,
    ip_address: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> PunchOutcome:
    """
    Web channel: the timestamp is always the server clock. `now` exists so
    tests can pin the clock; views never take it from the request.
    """
    employee = resolve_web_employee(user_id)
    event = PunchEvent(
        source=SOURCE_WEB,
        employee_id=employee.id,
        timestamp=now or server_now(tz_name),
    )
    source = "Web Portal" + (f" (IP: {ip_address})" if ip_address else "")
    return process_punch(
        employee,
        event.timestamp,
        SOURCE_WEB,
        source_label=source,
        recorded_by=user_id,
    )

# attendance_api/services/events.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from blinker import Namespace

if TYPE_CHECKING:
    from attendance_api.models.attendance import Attendance
    from attendance_api.services.punch_engine import PunchOutcome

log = logging.getLogger(__name__)

_signals = Namespace()

# receivers get (sender, event=AttendancePunched)
attendance_punched = _signals.signal("attendance-punched")


@dataclass(frozen=True)
class AttendancePunched:
    attendance: "Attendance"
    punch_type: str

    def to_dict(self):
        return {"type": self.punch_type, "attendance": self.attendance.to_dict()}


def publish(outcome: "PunchOutcome", sender=None) -> bool:
    """Fire the event for a recorded punch; ignored punches publish nothing."""
    if outcome is None or not outcome.recorded:
        return False
    event = AttendancePunched(attendance=outcome.attendance, punch_type=outcome.punch_type)
    attendance_punched.send(sender, event=event)
    return True


def log_punch(sender, event: AttendancePunched, **_):
    a = event.attendance
    log.info(
        "[attendance.punched] %s employee=%s date=%s checkin=%s checkout=%s status=%s",
        event.punch_type, a.employee_id, a.date, a.checkin, a.checkout, a.status,
    )

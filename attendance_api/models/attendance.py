# attendance_api/models/attendance.py
from datetime import datetime, date, time
from typing import Optional, Dict, Any

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.extensions import db

STATUS_PRESENT = "present"
STATUS_LATE = "late"
STATUS_ABSENT = "absent"
STATUSES = (STATUS_PRESENT, STATUS_LATE, STATUS_ABSENT)

SOURCE_DEVICE = "device"
SOURCE_WEB = "web"
SOURCE_MANUAL = "manual"

DEFAULT_CHECKIN = time(8, 0)
DEFAULT_CHECKOUT = time(17, 0)
DEFAULT_COOLDOWN_MINUTES = 15

# who may list attendance rows: everyone with attendance.read, or only their own
STAFF_ACCESS_ALL = "all"
STAFF_ACCESS_OWN = "own"
STAFF_ACCESS_CHOICES = (STAFF_ACCESS_ALL, STAFF_ACCESS_OWN)


class Shift(db.Model):
    __tablename__ = "shifts"
    id = db.Column(db.Integer, primary_key=True)
    code          = db.Column(db.String(20), unique=True, nullable=False)
    name          = db.Column(db.String(60), nullable=False)
    start_time    = db.Column(db.Time, nullable=False)
    end_time      = db.Column(db.Time, nullable=False)
    grace_minutes = db.Column(db.Integer, nullable=False, default=0)
    is_active     = db.Column(db.Boolean, nullable=False, default=True)
    created_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class HrmSetting(db.Model):
    """
    Company-wide office hours. The latest row wins; with no row at all the
    DEFAULT_* constants above apply.
    """
    __tablename__ = "hrm_settings"
    id = db.Column(db.Integer, primary_key=True)
    checkin                = db.Column(db.Time, nullable=False, default=DEFAULT_CHECKIN)
    checkout               = db.Column(db.Time, nullable=False, default=DEFAULT_CHECKOUT)
    grace_minutes          = db.Column(db.Integer, nullable=False, default=0)
    punch_cooldown_minutes = db.Column(db.Integer, nullable=False, default=DEFAULT_COOLDOWN_MINUTES)
    staff_access           = db.Column(db.String(8), nullable=False, default=STAFF_ACCESS_ALL)
    updated_at             = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def latest(cls) -> Optional["HrmSetting"]:
        return cls.query.order_by(cls.id.desc()).first()


class Attendance(db.Model):
    """
    One row per (employee, calendar day).

      checkin   -> first punch of the day; status is derived from it once
      checkout  -> closing punch; null while the day is open
      user_id   -> who recorded it (null = device / system)
      source    -> 'device' | 'web' | 'manual'
    """

    __tablename__ = "attendances"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), index=True, nullable=False
    )
    date: Mapped[date] = mapped_column(db.Date, index=True, nullable=False)

    checkin: Mapped[time] = mapped_column(db.Time, nullable=False)
    checkout: Mapped[Optional[time]] = mapped_column(db.Time, nullable=True)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=STATUS_PRESENT)
    note: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    source: Mapped[Optional[str]] = mapped_column(db.String(16), nullable=True)
    device_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    employee = relationship("Employee", lazy="joined")
    user = relationship("User", lazy="joined")

    __table_args__ = (
        CheckConstraint("status in ('present','late','absent')", name="ck_attendance_status"),
        CheckConstraint("checkout is null or checkout > checkin", name="ck_attendance_checkout_after_checkin"),
        UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        Index("ix_attendance_date_employee", "date", "employee_id"),
    )

    @property
    def is_open(self) -> bool:
        return self.checkout is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "employee_id": self.employee_id,
            "employee_name": self.employee.full_name if self.employee else None,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "checkin": self.checkin.strftime("%H:%M:%S") if self.checkin else None,
            "checkout": self.checkout.strftime("%H:%M:%S") if self.checkout else None,
            "status": self.status,
            "note": self.note,
            "source": self.source,
            "device_id": self.device_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

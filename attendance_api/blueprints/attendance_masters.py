# attendance_api/blueprints/attendance_masters.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from attendance_api.common.auth import requires_perms
from attendance_api.common.http import ok, fail
from attendance_api.common.paging import as_bool, as_int, page_limit, parse_clock, text_q
from attendance_api.extensions import db
from attendance_api.models.attendance import (
    DEFAULT_CHECKIN,
    DEFAULT_CHECKOUT,
    DEFAULT_COOLDOWN_MINUTES,
    STAFF_ACCESS_ALL,
    STAFF_ACCESS_CHOICES,
    HrmSetting,
    Shift,
)

bp = Blueprint("attendance_masters", __name__, url_prefix="/api/v1/attendance")


def _json():
    data = request.get_json(silent=True, force=True)
    return data if isinstance(data, dict) else {}


def _minutes(val, field):
    n = as_int(val, field)
    if n is not None and n < 0:
        raise ValueError(f"{field} must be >= 0")
    return n


def _hhmm(t):
    return t.strftime("%H:%M") if t else None


# ========================= SHIFTS =========================

def _shift_row(s: Shift):
    return {
        "id": s.id,
        "code": s.code,
        "name": s.name,
        "start_time": _hhmm(s.start_time),
        "end_time": _hhmm(s.end_time),
        "grace_minutes": int(s.grace_minutes or 0),
        "is_active": bool(s.is_active),
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }


@bp.get("/shifts")
@jwt_required()
@requires_perms("attendance.shift.read")
def list_shifts():
    q = Shift.query

    try:
        is_active = as_bool(request.args.get("is_active"), "is_active")
    except ValueError as ex:
        return fail(str(ex), 422)
    if is_active is not None:
        q = q.filter(Shift.is_active.is_(is_active))

    s = text_q()
    if s:
        like = f"%{s}%"
        q = q.filter(or_(Shift.name.ilike(like), Shift.code.ilike(like)))

    q = q.order_by(Shift.start_time.asc(), Shift.id.asc())
    page, size = page_limit()
    total = q.count()
    items = q.offset((page - 1) * size).limit(size).all()
    return ok([_shift_row(i) for i in items], page=page, size=size, total=total)


@bp.get("/shifts/<int:shift_id>")
@jwt_required()
@requires_perms("attendance.shift.read")
def get_shift(shift_id: int):
    row = db.session.get(Shift, shift_id)
    if not row:
        return fail("Shift not found", 404)
    return ok(_shift_row(row))


@bp.post("/shifts")
@jwt_required()
@requires_perms("attendance.shift.manage")
def create_shift():
    """
    {"code": "GEN", "name": "General", "start_time": "09:00", "end_time": "18:00", "grace_minutes": 10}
    """
    d = _json()
    code = (d.get("code") or "").strip()
    name = (d.get("name") or "").strip()
    if not code or not name:
        return fail("code and name are required", 422)

    try:
        start = parse_clock(d.get("start_time"), "start_time")
        end = parse_clock(d.get("end_time"), "end_time")
        grace = _minutes(d.get("grace_minutes"), "grace_minutes") or 0
    except ValueError as ex:
        return fail(str(ex), 422)
    if start is None or end is None:
        return fail("start_time and end_time are required", 422)
    if end <= start:
        return fail("end_time must be after start_time", 422)

    if Shift.query.filter(Shift.code == code).first():
        return fail("Shift code already exists", 409)

    row = Shift(code=code, name=name, start_time=start, end_time=end, grace_minutes=grace, is_active=True)
    db.session.add(row)
    db.session.commit()
    return ok(_shift_row(row), 201)


@bp.route("/shifts/<int:shift_id>", methods=["PUT", "PATCH"])
@jwt_required()
@requires_perms("attendance.shift.manage")
def update_shift(shift_id: int):
    row = db.session.get(Shift, shift_id)
    if not row:
        return fail("Shift not found", 404)

    d = _json()
    try:
        if "name" in d:
            name = (d.get("name") or "").strip()
            if not name:
                raise ValueError("name cannot be empty")
            row.name = name
        if "start_time" in d:
            row.start_time = parse_clock(d.get("start_time"), "start_time") or row.start_time
        if "end_time" in d:
            row.end_time = parse_clock(d.get("end_time"), "end_time") or row.end_time
        if "grace_minutes" in d:
            row.grace_minutes = _minutes(d.get("grace_minutes"), "grace_minutes") or 0
        if "is_active" in d:
            row.is_active = bool(as_bool(d.get("is_active"), "is_active"))
    except ValueError as ex:
        db.session.rollback()
        return fail(str(ex), 422)

    if row.end_time <= row.start_time:
        db.session.rollback()
        return fail("end_time must be after start_time", 422)

    db.session.commit()
    return ok(_shift_row(row))


@bp.delete("/shifts/<int:shift_id>")
@jwt_required()
@requires_perms("attendance.shift.manage")
def delete_shift(shift_id: int):
    row = db.session.get(Shift, shift_id)
    if not row:
        return fail("Shift not found", 404)
    # soft delete; employees keep the reference but fall back to office hours
    row.is_active = False
    db.session.commit()
    return ok({"id": row.id, "is_active": False})


# ========================= OFFICE HOURS =========================

def _setting_row(s: HrmSetting | None):
    if s is None:
        return {
            "checkin": _hhmm(DEFAULT_CHECKIN),
            "checkout": _hhmm(DEFAULT_CHECKOUT),
            "grace_minutes": 0,
            "punch_cooldown_minutes": DEFAULT_COOLDOWN_MINUTES,
            "staff_access": STAFF_ACCESS_ALL,
            "updated_at": None,
        }
    return {
        "checkin": _hhmm(s.checkin),
        "checkout": _hhmm(s.checkout),
        "grace_minutes": int(s.grace_minutes or 0),
        "punch_cooldown_minutes": int(s.punch_cooldown_minutes or 0),
        "staff_access": s.staff_access or STAFF_ACCESS_ALL,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }


@bp.get("/settings")
@jwt_required()
@requires_perms("attendance.settings.read")
def get_settings():
    return ok(_setting_row(HrmSetting.latest()))


@bp.put("/settings")
@jwt_required()
@requires_perms("attendance.settings.manage")
def update_settings():
    """
    {"checkin": "08:00", "checkout": "17:00", "grace_minutes": 10,
     "punch_cooldown_minutes": 15, "staff_access": "all" | "own"}
    Any subset of keys; unspecified keys keep their current value.
    """
    d = _json()
    row = HrmSetting.latest()
    if row is None:
        row = HrmSetting(
            checkin=DEFAULT_CHECKIN,
            checkout=DEFAULT_CHECKOUT,
            grace_minutes=0,
            punch_cooldown_minutes=DEFAULT_COOLDOWN_MINUTES,
            staff_access=STAFF_ACCESS_ALL,
        )
        db.session.add(row)

    try:
        if "checkin" in d:
            row.checkin = parse_clock(d.get("checkin"), "checkin") or row.checkin
        if "checkout" in d:
            row.checkout = parse_clock(d.get("checkout"), "checkout") or row.checkout
        if "grace_minutes" in d:
            row.grace_minutes = _minutes(d.get("grace_minutes"), "grace_minutes") or 0
        if "punch_cooldown_minutes" in d:
            row.punch_cooldown_minutes = _minutes(d.get("punch_cooldown_minutes"), "punch_cooldown_minutes") or 0
        if "staff_access" in d:
            access = str(d.get("staff_access") or "").strip().lower()
            if access not in STAFF_ACCESS_CHOICES:
                raise ValueError(f"staff_access must be one of {', '.join(STAFF_ACCESS_CHOICES)}")
            row.staff_access = access
    except ValueError as ex:
        db.session.rollback()
        return fail(str(ex), 422)

    if row.checkout <= row.checkin:
        db.session.rollback()
        return fail("checkout must be after checkin", 422)

    db.session.commit()
    return ok(_setting_row(row))

# attendance_api/blueprints/attendances.py
from __future__ import annotations

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from attendance_api.common.auth import current_user_id, is_admin, requires_perms
from attendance_api.common.http import ok, fail
from attendance_api.common.paging import as_int, page_limit, parse_clock, parse_date, text_q
from attendance_api.extensions import db
from attendance_api.models.attendance import (
    Attendance,
    HrmSetting,
    SOURCE_MANUAL,
    STAFF_ACCESS_OWN,
    STATUSES,
    STATUS_ABSENT,
    STATUS_LATE,
    STATUS_PRESENT,
)
from attendance_api.models.employee import Employee
from attendance_api.services.attendance_policy import derive_status, resolve_policy

bp = Blueprint("attendances", __name__, url_prefix="/api/v1/attendances")


# ---------- helpers ----------

def _json():
    data = request.get_json(silent=True, force=True)
    return data if isinstance(data, dict) else {}


def _status_or_none(v):
    if v in (None, ""):
        return None
    s = str(v).strip().lower()
    if s not in STATUSES:
        raise ValueError(f"status must be one of {', '.join(STATUSES)}")
    return s


def _int_list(raw, field) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ValueError(f"{field} must be a non-empty list")
    try:
        return sorted({int(i) for i in raw})
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be integers")


def _ids_from_payload(payload) -> list[int]:
    return _int_list(payload.get("ids"), "ids")


def _scoped(q):
    """
    With staff_access = "own" only admins see everyone; other callers see
    the rows of the employee profile linked to their account.
    """
    setting = HrmSetting.latest()
    if setting is None or setting.staff_access != STAFF_ACCESS_OWN or is_admin():
        return q
    uid = current_user_id()
    return q.filter(Attendance.employee.has(Employee.user_id == uid))


# ---------- list / show ----------

@bp.get("")
@jwt_required()
@requires_perms("attendance.read")
def list_attendances():
    """
    GET /api/v1/attendances?status=&employee_id=&user_id=&q=&start_date=&end_date=&page=&size=
    """
    q = _scoped(Attendance.query)

    try:
        status = _status_or_none(request.args.get("status"))
        emp_id = as_int(request.args.get("employee_id"), "employee_id")
        user_id = as_int(request.args.get("user_id"), "user_id")
        d_from = parse_date(request.args.get("start_date"), "start_date")
        d_to = parse_date(request.args.get("end_date"), "end_date")
    except ValueError as ex:
        return fail(str(ex), 422)

    if status:
        q = q.filter(Attendance.status == status)
    if emp_id:
        q = q.filter(Attendance.employee_id == emp_id)
    if user_id:
        q = q.filter(Attendance.user_id == user_id)
    if d_from:
        q = q.filter(Attendance.date >= d_from)
    if d_to:
        q = q.filter(Attendance.date <= d_to)

    term = text_q()
    if term:
        like = f"%{term}%"
        q = q.join(Employee, Employee.id == Attendance.employee_id).filter(
            or_(
                Attendance.note.ilike(like),
                Employee.first_name.ilike(like),
                Employee.last_name.ilike(like),
                Employee.staff_id.ilike(like),
            )
        )

    q = q.order_by(Attendance.date.desc(), Attendance.id.desc())

    page, size = page_limit()
    total = q.count()
    items = q.offset((page - 1) * size).limit(size).all()
    return ok([a.to_dict() for a in items], page=page, size=size, total=total)


@bp.get("/<int:attendance_id>")
@jwt_required()
@requires_perms("attendance.read")
def get_attendance(attendance_id: int):
    row = _scoped(Attendance.query).filter(Attendance.id == attendance_id).first()
    if not row:
        return fail("Attendance not found", 404)
    return ok(row.to_dict())


# ---------- manual create / update ----------

@bp.post("")
@jwt_required()
@requires_perms("attendance.create")
def create_attendance():
    """
    POST /api/v1/attendances

    {
      "employee_ids": [1, 2],        // or "employee_id": 1
      "date": "2024-12-01",
      "checkin": "08:05",
      "checkout": "17:00",           // optional
      "status": "present",           // optional; derived from office hours when absent
      "note": "..."                  // optional
    }

    All rows are created or none: an existing (employee, date) row rejects the request.
    """
    payload = _json()

    raw_ids = payload.get("employee_ids")
    if raw_ids is None and payload.get("employee_id") is not None:
        raw_ids = [payload.get("employee_id")]
    try:
        emp_ids = _int_list(raw_ids, "employee_ids")
        day = parse_date(payload.get("date"), "date")
        checkin = parse_clock(payload.get("checkin"), "checkin")
        checkout = parse_clock(payload.get("checkout"), "checkout")
        status = _status_or_none(payload.get("status"))
    except ValueError as ex:
        return fail(str(ex), 422)

    if day is None:
        return fail("date is required", 422)
    if checkin is None:
        return fail("checkin is required", 422)
    if checkout is not None and checkout <= checkin:
        return fail("checkout must be after checkin", 422)

    employees = Employee.query.filter(Employee.id.in_(emp_ids)).all()
    found = {e.id: e for e in employees}
    missing = [i for i in emp_ids if i not in found]
    if missing:
        return fail("Employee not found", 404, detail={"employee_ids": missing})

    clash = (
        Attendance.query.filter(Attendance.employee_id.in_(emp_ids), Attendance.date == day)
        .with_entities(Attendance.employee_id)
        .all()
    )
    if clash:
        return fail(
            f"Attendance record already exists on {day.isoformat()}. "
            "Please update the existing record instead of creating a duplicate.",
            409,
            code="DUPLICATE_ATTENDANCE",
            detail={"employee_ids": sorted(r[0] for r in clash)},
        )

    created = []
    uid = current_user_id()
    for emp_id in emp_ids:
        emp = found[emp_id]
        if status:
            row_status = status
        else:
            policy = resolve_policy(emp)
            row_status = derive_status(checkin, policy.start_time, policy.grace_minutes)
        row = Attendance(
            employee_id=emp_id,
            date=day,
            checkin=checkin,
            checkout=checkout,
            status=row_status,
            note=(payload.get("note") or "").strip() or None,
            user_id=uid,
            source=SOURCE_MANUAL,
        )
        db.session.add(row)
        created.append(row)

    db.session.commit()
    return ok([r.to_dict() for r in created], 201)


@bp.route("/<int:attendance_id>", methods=["PUT", "PATCH"])
@jwt_required()
@requires_perms("attendance.update")
def update_attendance(attendance_id: int):
    """
    HR correction of a row. When checkin changes and no status is sent the
    status is derived again from the new checkin.
    """
    row = db.session.get(Attendance, attendance_id)
    if not row:
        return fail("Attendance not found", 404)

    payload = _json()
    try:
        checkin = parse_clock(payload.get("checkin"), "checkin") if "checkin" in payload else row.checkin
        if "checkout" in payload:
            checkout = parse_clock(payload.get("checkout"), "checkout")
        else:
            checkout = row.checkout
        status = _status_or_none(payload.get("status"))
    except ValueError as ex:
        return fail(str(ex), 422)

    if checkin is None:
        return fail("checkin cannot be empty", 422)
    if checkout is not None and checkout <= checkin:
        return fail("checkout must be after checkin", 422)

    if "checkin" in payload and not status:
        policy = resolve_policy(row.employee)
        status = derive_status(checkin, policy.start_time, policy.grace_minutes)

    row.checkin = checkin
    row.checkout = checkout
    if status:
        row.status = status
    if "note" in payload:
        row.note = (payload.get("note") or "").strip() or None

    db.session.commit()
    return ok(row.to_dict())


# ---------- delete / bulk ----------

@bp.delete("/<int:attendance_id>")
@jwt_required()
@requires_perms("attendance.delete")
def delete_attendance(attendance_id: int):
    row = db.session.get(Attendance, attendance_id)
    if not row:
        return fail("Attendance not found", 404)
    db.session.delete(row)
    db.session.commit()
    return ok({"id": attendance_id, "deleted": True})


@bp.post("/bulk-destroy")
@jwt_required()
@requires_perms("attendance.delete")
def bulk_destroy():
    try:
        ids = _ids_from_payload(_json())
    except ValueError as ex:
        return fail(str(ex), 422)
    count = Attendance.query.filter(Attendance.id.in_(ids)).delete(synchronize_session=False)
    db.session.commit()
    return ok({"deleted_count": count}, message=f"Successfully deleted {count} attendance records")


def _bulk_mark(status: str):
    try:
        ids = _ids_from_payload(_json())
    except ValueError as ex:
        return fail(str(ex), 422)
    count = (
        Attendance.query.filter(Attendance.id.in_(ids))
        .update({Attendance.status: status}, synchronize_session=False)
    )
    db.session.commit()
    return ok({"updated_count": count}, message=f"{count} attendance records marked as {status}")


@bp.post("/bulk-mark-present")
@jwt_required()
@requires_perms("attendance.update")
def bulk_mark_present():
    return _bulk_mark(STATUS_PRESENT)


@bp.post("/bulk-mark-late")
@jwt_required()
@requires_perms("attendance.update")
def bulk_mark_late():
    return _bulk_mark(STATUS_LATE)


@bp.post("/bulk-mark-absent")
@jwt_required()
@requires_perms("attendance.update")
def bulk_mark_absent():
    return _bulk_mark(STATUS_ABSENT)

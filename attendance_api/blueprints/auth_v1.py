from datetime import timedelta

from flask import Blueprint, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required,
)

from attendance_api.common.auth import current_user_id
from attendance_api.common.http import ok, fail
from attendance_api.extensions import db
from attendance_api.models.employee import Employee
from attendance_api.models.security import user_permission_codes
from attendance_api.models.user import User

bp = Blueprint("auth_v1", __name__, url_prefix="/api/v1/auth")


def _user_payload(u: User):
    emp = Employee.query.filter_by(user_id=u.id).first()
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "roles": u.role_codes(),
        "employee_id": emp.id if emp else None,
    }


def _claims(u: User):
    return {
        "roles": u.role_codes(),
        "perms": sorted(user_permission_codes(u.id)),
        "email": u.email,
        "name": u.full_name,
    }


@bp.post("/login")
def login():
    data = request.get_json(silent=True, force=True)
    if not isinstance(data, dict):
        data = {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    u = User.query.filter_by(email=email).first()
    if not u or not u.check_password(password):
        return fail("Invalid credentials", 401)
    if (u.status or "active") != "active":
        return fail("Account is not active", 403)

    access = create_access_token(identity=str(u.id), additional_claims=_claims(u), expires_delta=timedelta(days=1))
    refresh = create_refresh_token(identity=str(u.id), additional_claims={"roles": u.role_codes()})
    return ok({"access": access, "refresh": refresh, "user": _user_payload(u)})


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = current_user_id()
    u = db.session.get(User, uid) if uid is not None else None
    if not u:
        return fail("User not found", 404)
    return ok({"access": create_access_token(identity=str(u.id), additional_claims=_claims(u))})


@bp.get("/me")
@jwt_required()
def me():
    uid = current_user_id()
    u = db.session.get(User, uid) if uid is not None else None
    if not u:
        return fail("User not found", 404)
    return ok(_user_payload(u))

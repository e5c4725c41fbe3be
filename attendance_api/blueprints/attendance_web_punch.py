# attendance_api/blueprints/attendance_web_punch.py
from __future__ import annotations

import logging

from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from attendance_api.common.auth import current_user_id, requires_perms
from attendance_api.common.errors import APIError
from attendance_api.common.http import ok, fail
from attendance_api.extensions import db
from attendance_api.services.events import publish
from attendance_api.services.punch_engine import PunchConflict, PunchError, handle_web_punch

log = logging.getLogger(__name__)

bp = Blueprint(
    "attendance_web_punch",
    __name__,
    url_prefix="/api/v1/attendances",
)


@bp.post("/web-punch")
@jwt_required()
@requires_perms("attendance.web_punch")
def web_punch():
    """
    POST /api/v1/attendances/web-punch

    Clock in/out for the logged-in employee. No body is read: the timestamp
    is the server clock and the employee comes from the token.

    200 -> {"success": true, "data": <attendance>, "meta": {"type", "message"}}
    422 -> punch ignored by policy (error.code = PUNCH_IGNORED, detail.reason)
    400 -> the punch could not be processed (error.code = PUNCH_FAILED)
    409 -> lost a race with a concurrent punch; safe to retry
    """
    uid = current_user_id()
    try:
        outcome = handle_web_punch(
            uid,
            request.remote_addr,
            tz_name=current_app.config.get("ATTENDANCE_TIMEZONE"),
        )
    except PunchConflict as exc:
        db.session.rollback()
        raise APIError("PUNCH_CONFLICT", str(exc), 409)
    except PunchError as exc:
        db.session.rollback()
        return fail(str(exc), 400, code="PUNCH_FAILED")
    except Exception as exc:
        db.session.rollback()
        log.error("Web punch failed for user %s: %s", uid, exc, exc_info=True)
        return fail(str(exc) or exc.__class__.__name__, 400, code="PUNCH_FAILED")

    if not outcome.recorded:
        return fail(
            outcome.message,
            422,
            code="PUNCH_IGNORED",
            detail={"reason": outcome.ignored_reason},
        )

    try:
        publish(outcome, sender=current_app._get_current_object())
    except Exception as exc:
        # already committed; the punch stands
        log.error("attendance-punched subscriber failed for user %s: %s", uid, exc, exc_info=True)

    return ok(
        outcome.attendance.to_dict(),
        type=outcome.punch_type,
        message=outcome.message,
    )

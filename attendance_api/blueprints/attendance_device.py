# attendance_api/blueprints/attendance_device.py
from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, request

from attendance_api.extensions import db
from attendance_api.services.device_feed import DEFAULT_DEVICE_ID, iter_lines, to_event
from attendance_api.services.events import publish
from attendance_api.services.punch_engine import EmployeeNotFound, handle_device_punch

log = logging.getLogger(__name__)

# ZKTeco-style clocks POST to this exact path; no auth, no JSON.
bp = Blueprint("attendance_device", __name__)


def _device_ok() -> Response:
    # the firmware only clears its buffer on this exact body; anything else => resend forever
    return Response("OK", status=200, content_type="text/plain")


@bp.get("/iclock/cdata")
def device_handshake():
    return _device_ok()


@bp.post("/iclock/cdata")
def device_push():
    """
    POST /iclock/cdata?SN=<serial>

    Body (text/plain), one punch per line:
        EMP001\t2024-12-01 08:15:00\t1\t1

    Every line is processed on its own and in order; a bad line is logged
    and skipped. The response is always "OK".
    """
    device_id = request.args.get("SN") or current_app.config.get(
        "ATTENDANCE_DEVICE_DEFAULT_SN", DEFAULT_DEVICE_ID
    )
    raw = request.get_data(as_text=True) or ""

    recorded = ignored = failed = 0
    for line in iter_lines(raw):
        try:
            outcome = handle_device_punch(to_event(line, device_id))
        except EmployeeNotFound as exc:
            db.session.rollback()
            failed += 1
            log.warning("Device ADMS punch skipped for %s: %s", line.staff_id, exc)
            continue
        except Exception as exc:
            db.session.rollback()
            failed += 1
            log.error("Device ADMS sync failed for %s: %s", line.staff_id, exc, exc_info=True)
            continue

        if not outcome.recorded:
            ignored += 1
            continue
        recorded += 1
        try:
            publish(outcome, sender=current_app._get_current_object())
        except Exception as exc:
            # the row is committed; a broken subscriber must not stop the batch
            log.error("attendance-punched subscriber failed for %s: %s", line.staff_id, exc, exc_info=True)

    log.info(
        "[iclock] SN=%s recorded=%s ignored=%s failed=%s",
        device_id, recorded, ignored, failed,
    )
    return _device_ok()

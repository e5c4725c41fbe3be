from datetime import datetime

import pytest

from attendance_api.extensions import db
from attendance_api.models.attendance import Attendance

URL = "/api/v1/attendances/web-punch"
PERMS = ["attendance.web_punch"]


@pytest.fixture
def clock(monkeypatch):
    """Pin the server clock used for web punches."""
    state = {"now": datetime(2024, 1, 1, 8, 0)}
    monkeypatch.setattr(
        "attendance_api.services.punch_engine.server_now",
        lambda tz_name=None: state["now"],
    )
    return state


def test_check_in_then_check_out(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)

    resp = client.post(URL, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["meta"]["type"] == "check-in"
    assert body["meta"]["message"] == "Successfully recorded check-in via Web Portal."
    assert body["data"]["checkin"] == "08:00:00"
    assert body["data"]["status"] == "present"
    assert body["data"]["source"] == "web"

    clock["now"] = datetime(2024, 1, 1, 17, 15)
    resp = client.post(URL, headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["meta"]["type"] == "check-out"
    assert body["data"]["checkout"] == "17:15:00"


def test_early_checkout_is_rejected_without_mutation(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)
    client.post(URL, headers=headers)

    clock["now"] = datetime(2024, 1, 1, 15, 0)
    resp = client.post(URL, headers=headers)

    assert resp.status_code == 422
    err = resp.get_json()["error"]
    assert err["code"] == "PUNCH_IGNORED"
    assert err["detail"] == {"reason": "early_checkout"}
    db.session.expire_all()
    assert Attendance.query.one().checkout is None


def test_cooldown_is_rejected(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)
    client.post(URL, headers=headers)

    clock["now"] = datetime(2024, 1, 1, 8, 5)
    resp = client.post(URL, headers=headers)
    assert resp.status_code == 422
    assert resp.get_json()["error"]["detail"]["reason"] == "cooldown"


def test_user_without_employee_profile(client, office_hours, auth_headers, clock):
    from attendance_api.models.user import User

    u = User(email="nobody@test.local", full_name="Nobody", status="active")
    u.set_password("x")
    db.session.add(u)
    db.session.commit()

    resp = client.post(URL, headers=auth_headers(u.id, perms=PERMS))
    assert resp.status_code == 400
    err = resp.get_json()["error"]
    assert err["code"] == "PUNCH_FAILED"
    assert "No employee profile" in err["message"]


def test_missing_permission_is_forbidden(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    resp = client.post(URL, headers=auth_headers(emp.user_id, perms=["attendance.read"]))
    assert resp.status_code == 403
    db.session.expire_all()
    assert Attendance.query.count() == 0


def test_wildcard_permission_is_enough(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    resp = client.post(URL, headers=auth_headers(emp.user_id, perms=["attendance.*"]))
    assert resp.status_code == 200


def test_requires_token(client):
    assert client.post(URL).status_code == 401


def test_unresolved_race_is_a_retryable_conflict(client, office_hours, make_employee, auth_headers, clock, monkeypatch):
    from attendance_api.services import punch_engine

    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)
    client.post(URL, headers=headers)

    # every lookup misses the row that is already there
    monkeypatch.setattr(punch_engine, "_find_record", lambda employee_id, day: None)
    clock["now"] = datetime(2024, 1, 1, 17, 30)
    resp = client.post(URL, headers=headers)

    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "PUNCH_CONFLICT"
    db.session.expire_all()
    assert Attendance.query.one().checkout is None


def test_third_punch_after_checkout_is_ignored(client, office_hours, make_employee, auth_headers, clock):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)
    client.post(URL, headers=headers)
    clock["now"] = datetime(2024, 1, 1, 17, 0)
    assert client.post(URL, headers=headers).status_code == 200

    clock["now"] = datetime(2024, 1, 1, 18, 0)
    resp = client.post(URL, headers=headers)

    assert resp.status_code == 422
    assert resp.get_json()["error"]["detail"] == {"reason": "already_checked_out"}
    db.session.expire_all()
    assert Attendance.query.one().checkout.hour == 17


def test_unexpected_failure_is_a_client_error_with_message(app, client, office_hours, make_employee, auth_headers):
    emp = make_employee(with_user=True)
    app.config["ATTENDANCE_TIMEZONE"] = "Not/AZone"

    resp = client.post(URL, headers=auth_headers(emp.user_id, perms=PERMS))

    assert resp.status_code == 400
    err = resp.get_json()["error"]
    assert err["code"] == "PUNCH_FAILED"
    assert "Not/AZone" in err["message"]
    db.session.expire_all()
    assert Attendance.query.count() == 0


def test_failing_subscriber_keeps_the_recorded_punch(client, office_hours, make_employee, auth_headers, clock):
    from attendance_api.services.events import attendance_punched

    emp = make_employee(with_user=True)

    def broken(sender, event, **_):
        raise RuntimeError("broadcaster down")

    with attendance_punched.connected_to(broken):
        resp = client.post(URL, headers=auth_headers(emp.user_id, perms=PERMS))

    assert resp.status_code == 200
    assert resp.get_json()["meta"]["type"] == "check-in"
    db.session.expire_all()
    assert Attendance.query.count() == 1

from datetime import datetime

from attendance_api.extensions import db
from attendance_api.models.attendance import Attendance, HrmSetting
from attendance_api.models.employee import Employee
from attendance_api.services.device_feed import PunchEvent
from attendance_api.services.punch_engine import handle_device_punch

SHIFTS = "/api/v1/attendance/shifts"
SETTINGS = "/api/v1/attendance/settings"
PERMS = ["attendance.shift.*", "attendance.settings.*"]


def test_settings_default_then_update(client, make_employee, auth_headers):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)

    data = client.get(SETTINGS, headers=headers).get_json()["data"]
    assert (data["checkin"], data["checkout"], data["punch_cooldown_minutes"]) == ("08:00", "17:00", 15)

    resp = client.put(SETTINGS, json={"checkin": "09:00", "checkout": "18:00", "grace_minutes": 5}, headers=headers)
    assert resp.status_code == 200
    db.session.expire_all()
    s = HrmSetting.latest()
    assert (s.checkin.hour, s.checkout.hour, s.grace_minutes) == (9, 18, 5)

    assert client.put(SETTINGS, json={"checkout": "08:00"}, headers=headers).status_code == 422
    assert client.put(SETTINGS, json={"grace_minutes": -1}, headers=headers).status_code == 422


def test_shift_crud(client, make_employee, auth_headers):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)

    resp = client.post(SHIFTS, json={
        "code": "GEN", "name": "General", "start_time": "09:00", "end_time": "18:00", "grace_minutes": 10,
    }, headers=headers)
    assert resp.status_code == 201
    sid = resp.get_json()["data"]["id"]

    assert client.post(SHIFTS, json={
        "code": "GEN", "name": "Again", "start_time": "09:00", "end_time": "18:00",
    }, headers=headers).status_code == 409
    assert client.post(SHIFTS, json={
        "code": "BAD", "name": "Backwards", "start_time": "18:00", "end_time": "09:00",
    }, headers=headers).status_code == 422

    resp = client.patch(f"{SHIFTS}/{sid}", json={"grace_minutes": 0}, headers=headers)
    assert resp.get_json()["data"]["grace_minutes"] == 0

    body = client.get(f"{SHIFTS}?q=gen", headers=headers).get_json()
    assert [s["code"] for s in body["data"]] == ["GEN"]

    assert client.delete(f"{SHIFTS}/{sid}", headers=headers).status_code == 200
    body = client.get(f"{SHIFTS}?is_active=false", headers=headers).get_json()
    assert [s["id"] for s in body["data"]] == [sid]


def test_assigned_shift_drives_punch_status(client, office_hours, make_employee, auth_headers):
    admin = make_employee(with_user=True)
    headers = auth_headers(admin.user_id, roles=["admin"])
    sid = client.post(SHIFTS, json={
        "code": "LATE", "name": "Late shift", "start_time": "10:00", "end_time": "19:00",
    }, headers=headers).get_json()["data"]["id"]

    emp = make_employee(staff_id="EMP9")
    db.session.get(Employee, emp.id).shift_id = sid
    db.session.commit()

    # 09:30 is late against office hours but early for this shift
    out = handle_device_punch(PunchEvent(source="device", staff_id="EMP9", timestamp=datetime(2024, 1, 1, 9, 30)))
    assert out.attendance.status == "present"
    db.session.expire_all()
    assert Attendance.query.one().status == "present"


def test_staff_access_setting(client, office_hours, make_employee, auth_headers):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=PERMS)

    assert client.get(SETTINGS, headers=headers).get_json()["data"]["staff_access"] == "all"
    resp = client.put(SETTINGS, json={"staff_access": "own"}, headers=headers)
    assert resp.get_json()["data"]["staff_access"] == "own"
    assert client.put(SETTINGS, json={"staff_access": "team"}, headers=headers).status_code == 422

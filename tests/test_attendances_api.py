from datetime import date, time

import pytest

from attendance_api.extensions import db
from attendance_api.models.attendance import Attendance

URL = "/api/v1/attendances"
HR_PERMS = ["attendance.read", "attendance.create", "attendance.update", "attendance.delete"]


@pytest.fixture
def hr(auth_headers, make_employee):
    hr_emp = make_employee(with_user=True)
    return auth_headers(hr_emp.user_id, perms=HR_PERMS)


def _row(employee_id, day=date(2024, 1, 1), checkin=time(8, 0), status="present", **kw):
    a = Attendance(employee_id=employee_id, date=day, checkin=checkin, status=status, **kw)
    db.session.add(a)
    db.session.commit()
    return a


def test_manual_create_derives_status(client, office_hours, make_employee, hr):
    a = make_employee()
    b = make_employee()

    resp = client.post(URL, json={
        "employee_ids": [a.id, b.id], "date": "2024-01-01", "checkin": "08:30", "note": "forgot card",
    }, headers=hr)

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert [r["employee_id"] for r in data] == [a.id, b.id]
    assert {r["status"] for r in data} == {"late"}
    assert {r["source"] for r in data} == {"manual"}
    assert data[0]["note"] == "forgot card"


def test_manual_create_rejects_duplicate_day(client, office_hours, make_employee, hr):
    emp = make_employee()
    _row(emp.id)

    resp = client.post(URL, json={"employee_id": emp.id, "date": "2024-01-01", "checkin": "08:00"}, headers=hr)

    assert resp.status_code == 409
    err = resp.get_json()["error"]
    assert err["code"] == "DUPLICATE_ATTENDANCE"
    assert err["detail"] == {"employee_ids": [emp.id]}


def test_manual_create_validation(client, office_hours, make_employee, hr):
    emp = make_employee()
    bad = [
        {"employee_id": emp.id, "date": "2024-01-01"},
        {"employee_id": emp.id, "date": "01/01/2024", "checkin": "08:00"},
        {"employee_id": emp.id, "date": "2024-01-01", "checkin": "08:00", "checkout": "07:00"},
        {"employee_id": emp.id, "date": "2024-01-01", "checkin": "08:00", "status": "holiday"},
        {"date": "2024-01-01", "checkin": "08:00"},
    ]
    for payload in bad:
        assert client.post(URL, json=payload, headers=hr).status_code == 422, payload

    resp = client.post(URL, json={"employee_id": 9999, "date": "2024-01-01", "checkin": "08:00"}, headers=hr)
    assert resp.status_code == 404


def test_update_rederives_status_from_new_checkin(client, office_hours, make_employee, hr):
    emp = make_employee()
    a = _row(emp.id, checkin=time(9, 0), status="late")

    resp = client.patch(f"{URL}/{a.id}", json={"checkin": "08:05", "checkout": "17:00"}, headers=hr)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == "present"
    assert (data["checkin"], data["checkout"]) == ("08:05:00", "17:00:00")

    resp = client.patch(f"{URL}/{a.id}", json={"checkout": "08:00"}, headers=hr)
    assert resp.status_code == 422


def test_list_filters_and_paging(client, office_hours, make_employee, hr):
    a = make_employee(staff_id="ALPHA")
    b = make_employee(staff_id="BRAVO")
    _row(a.id, day=date(2024, 1, 1))
    _row(a.id, day=date(2024, 1, 2), status="late")
    _row(b.id, day=date(2024, 1, 2))

    body = client.get(f"{URL}?start_date=2024-01-02", headers=hr).get_json()
    assert body["meta"]["total"] == 2

    body = client.get(f"{URL}?status=late", headers=hr).get_json()
    assert [r["employee_id"] for r in body["data"]] == [a.id]

    body = client.get(f"{URL}?q=bravo", headers=hr).get_json()
    assert [r["employee_id"] for r in body["data"]] == [b.id]

    body = client.get(f"{URL}?employee_id={a.id}&size=1", headers=hr).get_json()
    assert body["meta"] == {"page": 1, "size": 1, "total": 2}
    assert body["data"][0]["date"] == "2024-01-02"

    assert client.get(f"{URL}?start_date=yesterday", headers=hr).status_code == 422


def test_show_and_delete(client, office_hours, make_employee, hr):
    emp = make_employee()
    a = _row(emp.id)
    aid = a.id

    assert client.get(f"{URL}/{aid}", headers=hr).get_json()["data"]["id"] == aid
    assert client.delete(f"{URL}/{aid}", headers=hr).status_code == 200
    assert client.get(f"{URL}/{aid}", headers=hr).status_code == 404


def test_bulk_mark_and_destroy(client, office_hours, make_employee, hr):
    emp = make_employee()
    ids = [_row(emp.id, day=date(2024, 1, d)).id for d in (1, 2, 3)]

    resp = client.post(f"{URL}/bulk-mark-absent", json={"ids": ids[:2]}, headers=hr)
    assert resp.get_json()["data"] == {"updated_count": 2}
    db.session.expire_all()
    assert [a.status for a in Attendance.query.order_by(Attendance.date)] == ["absent", "absent", "present"]

    resp = client.post(f"{URL}/bulk-destroy", json={"ids": ids}, headers=hr)
    assert resp.get_json()["data"] == {"deleted_count": 3}
    assert client.post(f"{URL}/bulk-destroy", json={"ids": []}, headers=hr).status_code == 422


def test_employee_cannot_manage_records(client, office_hours, make_employee, auth_headers):
    emp = make_employee(with_user=True)
    headers = auth_headers(emp.user_id, perms=["attendance.web_punch"])
    assert client.get(URL, headers=headers).status_code == 403
    assert client.post(f"{URL}/bulk-destroy", json={"ids": [1]}, headers=headers).status_code == 403


def test_own_staff_access_limits_listing_to_own_rows(client, office_hours, make_employee, auth_headers):
    me = make_employee(with_user=True)
    other = make_employee()
    mine = _row(me.id)
    theirs = _row(other.id)

    staff = auth_headers(me.user_id, perms=["attendance.read"])
    admin = auth_headers(me.user_id, roles=["admin"])
    assert client.get(URL, headers=staff).get_json()["meta"]["total"] == 2

    office_hours.staff_access = "own"
    db.session.commit()

    body = client.get(URL, headers=staff).get_json()
    assert [r["id"] for r in body["data"]] == [mine.id]
    assert client.get(f"{URL}/{theirs.id}", headers=staff).status_code == 404
    assert client.get(f"{URL}/{mine.id}", headers=staff).status_code == 200
    assert client.get(URL, headers=admin).get_json()["meta"]["total"] == 2

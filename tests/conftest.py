import os
from datetime import time

import pytest
from flask_jwt_extended import create_access_token

from attendance_api import create_app
from attendance_api.extensions import db
from attendance_api.models.attendance import HrmSetting
from attendance_api.models.employee import Employee
from attendance_api.models.user import User


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def office_hours(app):
    """08:00-17:00, 10 minutes grace, 15 minutes between punches."""
    s = HrmSetting(checkin=time(8, 0), checkout=time(17, 0), grace_minutes=10, punch_cooldown_minutes=15)
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def make_employee(app):
    seq = {"n": 0}

    def _make(staff_id=None, with_user=False, **kw):
        seq["n"] += 1
        n = seq["n"]
        user_id = None
        if with_user:
            u = User(email=f"user{n}@test.local", full_name=f"User {n}", status="active")
            u.set_password("secret")
            db.session.add(u)
            db.session.flush()
            user_id = u.id
        emp = Employee(
            staff_id=staff_id or f"EMP{n:03d}",
            first_name="Test",
            last_name=f"Emp{n}",
            user_id=user_id,
            **kw,
        )
        db.session.add(emp)
        db.session.commit()
        return emp

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user_id, perms=(), roles=()):
        token = create_access_token(
            identity=str(user_id),
            additional_claims={"perms": list(perms), "roles": list(roles)},
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers

# attendance_api/seed_rbac.py
from attendance_api.extensions import db
from attendance_api.models.security import Role, Permission, RolePermission, UserRole
from attendance_api.models.user import User

DEFAULT_ROLES = [
    ("admin", "Administrator"),
    ("hr", "HR"),
    ("manager", "Manager"),
    ("employee", "Employee"),
]

DEFAULT_PERMS = [
    # Attendance records
    "attendance.read", "attendance.create", "attendance.update", "attendance.delete",
    "attendance.web_punch",

    # Office hours
    "attendance.shift.read", "attendance.shift.manage",
    "attendance.settings.read", "attendance.settings.manage",
]

ROLE_PERM_MAP = {
    "admin": DEFAULT_PERMS,
    "hr": DEFAULT_PERMS,
    "manager": [
        "attendance.read", "attendance.update", "attendance.web_punch",
        "attendance.shift.read", "attendance.settings.read",
    ],
    "employee": [
        "attendance.web_punch",
    ],
}


def _ensure_roles():
    code_to_role = {}
    for code, name in DEFAULT_ROLES:
        r = Role.query.filter_by(code=code).first()
        if not r:
            r = Role(code=code, name=name)
            db.session.add(r)
            db.session.flush()
        code_to_role[code] = r
    return code_to_role


def _ensure_permissions():
    code_to_perm = {}
    for code in DEFAULT_PERMS:
        p = Permission.query.filter_by(code=code).first()
        if not p:
            p = Permission(code=code, name=code.replace(".", " ").replace("_", " ").title())
            db.session.add(p)
            db.session.flush()
        code_to_perm[code] = p
    return code_to_perm


def _map_role_perms(code_to_role, code_to_perm):
    for rcode, perms in ROLE_PERM_MAP.items():
        r = code_to_role[rcode]
        existing = {p.id for p in r.permissions}
        for pcode in perms:
            p = code_to_perm[pcode]
            if p.id not in existing:
                db.session.add(RolePermission(role_id=r.id, permission_id=p.id))


def assign_role(user: User, role_code: str):
    role = Role.query.filter_by(code=role_code).first()
    if role is None:
        role = Role(code=role_code)
        db.session.add(role)
        db.session.flush()
    if not UserRole.query.filter_by(user_id=user.id, role_id=role.id).first():
        db.session.add(UserRole(user_id=user.id, role_id=role.id))


def run():
    code_to_role = _ensure_roles()
    code_to_perm = _ensure_permissions()
    _map_role_perms(code_to_role, code_to_perm)
    db.session.commit()
    return {"ok": True, "roles": len(DEFAULT_ROLES), "perms": len(DEFAULT_PERMS)}

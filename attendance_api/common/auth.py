# attendance_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Iterable, Optional, Set

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from attendance_api.common.http import fail
from attendance_api.extensions import db
from attendance_api.models.user import User
from attendance_api.models.security import ADMIN_ROLE, user_permission_codes, user_role_codes


# ---------- helpers ----------

def _wildcard_match(user_perm: str, required: str) -> bool:
    """
    Match required permission against a user's permission with simple wildcards.
    Examples:
      user_perm: 'attendance.*'        matches required: 'attendance.shift.read'
      user_perm: 'attendance.shift.*'  matches required: 'attendance.shift.manage'
      user_perm: 'attendance.read'     matches only exact
    """
    if user_perm == required:
        return True
    if user_perm.endswith(".*"):
        prefix = user_perm[:-2]
        return required.startswith(prefix + ".")
    return False


def _has_any_perm(user_perms: Set[str], required_perms: Iterable[str]) -> bool:
    if not required_perms:
        return True
    if not user_perms:
        return False
    for req in required_perms:
        if any(_wildcard_match(up, req) for up in user_perms):
            return True
    return False


def current_user_id() -> Optional[int]:
    """JWT identity is issued as str(user.id); tolerate ints too."""
    ident = get_jwt_identity()
    if ident is None:
        return None
    try:
        return int(ident)
    except (TypeError, ValueError):
        return None


def _load_user() -> Optional[User]:
    uid = current_user_id()
    if uid is None:
        return None
    return db.session.get(User, uid)


def is_admin() -> bool:
    claims = get_jwt() or {}
    if ADMIN_ROLE in (claims.get("roles") or []):
        return True
    uid = current_user_id()
    return uid is not None and ADMIN_ROLE in user_role_codes(uid)


# ---------- decorators ----------

def requires_perms(*perm_codes: str):
    """
    Require that the current user has ANY of the given permission codes.

    Fast path: read 'perms' and 'roles' from JWT claims if present.
    Fallback:  query DB for permissions via role mappings (stale tokens).
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            if not perm_codes:
                return fn(*args, **kwargs)

            claims = get_jwt() or {}
            jwt_roles = set(claims.get("roles") or [])
            if ADMIN_ROLE in jwt_roles:
                return fn(*args, **kwargs)

            jwt_perms = set(claims.get("perms") or [])
            if jwt_perms and _has_any_perm(jwt_perms, perm_codes):
                return fn(*args, **kwargs)

            user = _load_user()
            if not user:
                return fail("Unauthorized", status=401)

            db_roles = user_role_codes(user.id)
            if ADMIN_ROLE in db_roles:
                return fn(*args, **kwargs)

            db_perms = user_permission_codes(user.id)
            if not _has_any_perm(db_perms, perm_codes):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer

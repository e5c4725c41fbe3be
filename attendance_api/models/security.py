# attendance_api/models/security.py
"""
Role based access for the attendance API.

Users hold roles, roles hold permission codes ("attendance.read",
"attendance.shift.*" style). Tokens carry both as claims; these tables are
the fallback when a token predates a role change.
"""
from typing import List, Optional, Set

from sqlalchemy import ForeignKey, String, select
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.extensions import db

ADMIN_ROLE = "admin"


class Role(db.Model):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # writes go through RolePermission rows
    permissions: Mapped[List["Permission"]] = relationship(
        secondary="role_permissions", lazy="selectin", viewonly=True
    )


class Permission(db.Model):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)


class UserRole(db.Model):
    __tablename__ = "user_roles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


def user_role_codes(user_id: int) -> Set[str]:
    stmt = (
        select(Role.code)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .distinct()
    )
    return set(db.session.scalars(stmt))


def user_permission_codes(user_id: int) -> Set[str]:
    """Permission codes granted to the user through any of their roles."""
    stmt = (
        select(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .where(UserRole.user_id == user_id)
        .distinct()
    )
    return set(db.session.scalars(stmt))

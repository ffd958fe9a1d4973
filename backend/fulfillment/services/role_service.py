# Overview: Marketplace role assignment for users on first checkout.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import User, USER_ROLES
from .concurrency import lock_for_update, run_with_retry


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", details={"user_id": user_id})
    return user


def create_user(username: str, role: str | None = None) -> User:
    if not username or not username.strip():
        raise ValidationError("username is required")
    if role is not None and role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}", details={"role": role})

    user = User(username=username.strip(), role=role)
    db.session.add(user)
    db.session.commit()
    return user


def assign_role_if_unset(user_id: int, role: str) -> str:
    """
    Give a user their first role; an existing role is never overwritten.

    Runs and commits in its own transaction so identity state never rides
    along with (or rolls back) an order transaction. Returns the role the
    user ends up with.
    """
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}", details={"role": role})

    def _op():
        user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        if user.role is None:
            user.role = role
        effective = user.role
        db.session.commit()
        return effective

    return run_with_retry(_op)

# Overview: Request decorators establishing the acting user for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User, USER_ROLES


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def require_actor(f):
    """
    Require a verified actor forwarded by the upstream auth layer.

    Sets the following Flask g attributes:
    - g.current_user: the User row for X-Actor-Id
    - g.actor_role: the role asserted in X-Actor-Role (buyer, seller, admin)

    Returns 401 if the headers are missing or malformed or the user does not
    exist. While User.role is unset only buyer or seller may be asserted (checkout
    assigns it); once set, the header must match it. Otherwise 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = request.headers.get(ACTOR_ID_HEADER, "")
        role = request.headers.get(ACTOR_ROLE_HEADER)

        if not raw_id.strip().isdigit():
            return jsonify({"error": "Authentication required"}), 401

        if role not in USER_ROLES:
            return jsonify({"error": "Invalid actor role"}), 401

        user = db.session.get(User, int(raw_id))
        if user is None:
            return jsonify({"error": "Unknown actor"}), 401

        expected = (user.role,) if user.role else ("buyer", "seller")
        if role not in expected:
            return jsonify({"error": "Actor role does not match"}), 403

        g.current_user = user
        g.actor_role = role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the asserted actor role to be one of `roles`."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if g.actor_role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator

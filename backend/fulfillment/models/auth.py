from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

USER_ROLES = ("buyer", "seller", "admin")


class User(db.Model):
    """
    Actor accounts referenced by carts and orders.

    Credentials live with the upstream auth layer; this table only keeps the
    identity and the marketplace role. role stays NULL until the user's first
    checkout assigns it (see role_service).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IS NULL OR role IN ('buyer', 'seller', 'admin')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    role = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }

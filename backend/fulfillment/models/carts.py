from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

CART_KINDS = ("buy", "sell")


class Cart(db.Model):
    """
    Pending selection owned by one user.

    Carts and orders are separate id spaces. A checkout converts the open
    cart into exactly one Order, deletes its lines and records the link in
    order_id; the user's next add opens a fresh cart.
    """
    __tablename__ = "carts"
    __table_args__ = (
        db.CheckConstraint("kind IN ('buy', 'sell')", name="ck_carts_kind"),
        db.Index("ix_carts_owner_kind_status", "owner_user_id", "kind", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    kind = db.Column(db.String(8), nullable=False)

    # open -> checked_out, never back
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", use_alter=True, name="fk_carts_order_id"),
        nullable=True,
        unique=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    checked_out_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship("User", backref=db.backref("carts", lazy=True))
    lines = db.relationship(
        "CartLine",
        back_populates="cart",
        lazy=True,
        order_by="CartLine.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "kind": self.kind,
            "status": self.status,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
            "checked_out_at": to_utc_z(self.checked_out_at) if self.checked_out_at else None,
        }


class CartLine(db.Model):
    """One (cart, product) selection; quantity is always positive."""
    __tablename__ = "cart_lines"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_lines_cart_product"),
        db.CheckConstraint("quantity > 0", name="ck_cart_lines_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    cart = db.relationship("Cart", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

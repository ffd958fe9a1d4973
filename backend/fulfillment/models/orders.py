from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

ORDER_KINDS = ("buy", "sell")
ORDER_STATUSES = ("pending", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "upi")


class Order(db.Model):
    """
    One checkout of one cart, covering every line in it.

    quantity and total_amount_cents are aggregates fixed at creation.
    open_quantity counts units not yet matched against the opposite side:
    sell orders start fully open and are drained by FIFO matching of later
    buys; buy orders start with whatever the match could not cover. An order
    is completed exactly when open_quantity reaches zero through matching.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("kind IN ('buy', 'sell')", name="ck_orders_kind"),
        db.CheckConstraint("payment_method IN ('cash', 'upi')", name="ck_orders_payment_method"),
        db.CheckConstraint("status IN ('pending', 'completed', 'cancelled')", name="ck_orders_status"),
        db.CheckConstraint("open_quantity >= 0", name="ck_orders_open_nonneg"),
        # FIFO scan: open sell orders oldest first
        db.Index("ix_orders_kind_status_created", "kind", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Human-readable label (e.g., "ORD-001")
    serial_label = db.Column(db.String(64), nullable=False, unique=True)

    kind = db.Column(db.String(8), nullable=False)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    open_quantity = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(8), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # Python-side default keeps sub-second ordering for FIFO
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    owner = db.relationship("User", backref=db.backref("orders", lazy=True))
    cart = db.relationship("Cart", foreign_keys=[cart_id])
    lines = db.relationship("OrderLine", back_populates="order", lazy=True, order_by="OrderLine.id")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "serial_label": self.serial_label,
            "kind": self.kind,
            "cart_id": self.cart_id,
            "quantity": self.quantity,
            "open_quantity": self.open_quantity,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """
    One product of an order.

    unit_price_cents is the price snapshot at checkout and is never re-read
    from the product. serial_numbers holds exactly `quantity` serials: the
    ones minted for a sell line or consumed by a buy line.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_id", name="uq_order_lines_order_product"),
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_pos"),
        db.CheckConstraint("open_quantity >= 0", name="ck_order_lines_open_nonneg"),
        db.Index("ix_order_lines_product_open", "product_id", "open_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    open_quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    serial_numbers = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else None,
            "quantity": self.quantity,
            "open_quantity": self.open_quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "serial_numbers": list(self.serial_numbers or []),
            "created_at": to_utc_z(self.created_at),
        }


class LabelSequence(db.Model):
    """
    Atomic per-namespace counters for human-readable labels.

    The row is locked while a number is drawn, so two checkouts never share one.
    """
    __tablename__ = "label_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    namespace = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "namespace": self.namespace,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }

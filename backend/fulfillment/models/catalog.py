from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its live stock counter.

    available_quantity is the authoritative sellable count. It must always
    equal the number of unconsumed SerialAllocation rows for the product;
    only order creation and stock receiving mutate it, in the same
    transaction that mints or consumes those serials.

    code is the serial prefix: unit 7 of "DFT-P" is "DFT-P007".
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("available_quantity >= 0", name="ck_products_available_nonneg"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonneg"),
        db.Index("ix_products_name_variant", "name", "variant"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    variant = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    available_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} available={self.available_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "variant": self.variant,
            "price_cents": self.price_cents,
            "available_quantity": self.available_quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

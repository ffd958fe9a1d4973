from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class SerialAllocation(db.Model):
    """
    Append-only ledger of individually numbered units.

    A row is minted bound to the sell order that introduced it (NULL for
    opening stock) with buy_order_id NULL, and is consumed by setting
    buy_order_id. Rows are never deleted or renumbered; sequence is the
    integer suffix of serial_number and only ever grows per product code.
    """
    __tablename__ = "serial_allocations"
    __table_args__ = (
        db.UniqueConstraint("product_code", "serial_number", name="uq_serials_code_number"),
        db.UniqueConstraint("product_code", "sequence", name="uq_serials_code_sequence"),
        # Allocation scan: unconsumed units lowest first
        db.Index("ix_serials_product_buy_seq", "product_id", "buy_order_id", "sequence"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_code = db.Column(db.String(32), nullable=False)
    sequence = db.Column(db.Integer, nullable=False)
    serial_number = db.Column(db.String(64), nullable=False)

    sell_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    buy_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    minted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    allocated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")

    @property
    def is_consumed(self) -> bool:
        return self.buy_order_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "sequence": self.sequence,
            "serial_number": self.serial_number,
            "sell_order_id": self.sell_order_id,
            "buy_order_id": self.buy_order_id,
            "minted_at": to_utc_z(self.minted_at),
            "allocated_at": to_utc_z(self.allocated_at) if self.allocated_at else None,
        }

# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, ProductNotFound, ValidationError
from ..models import Product, SerialAllocation
from . import serial_service
from .concurrency import begin_write, lock_for_update, run_with_retry
"""
Inventory invariants (authoritative)

- Product.available_quantity is the stock gate for buy orders and never
  goes negative (check constraint plus adjust_available_quantity guard).
- available_quantity == number of SerialAllocation rows for the product with
  buy_order_id NULL, after every commit. Every path that changes one changes
  the other in the same transaction:
    * sell checkout: mint serials, +quantity
    * buy checkout: allocate serials, -quantity
    * receive_stock: mint serials without a sell order, +quantity
"""


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return product


def get_product_by_code(code: str) -> Product:
    product = db.session.query(Product).filter_by(code=code).first()
    if product is None:
        raise ProductNotFound("Product not found", details={"product_code": code})
    return product


def list_products(name: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if name:
        q = q.filter(Product.name == name)
    return q.order_by(Product.code.asc()).all()


def create_product(
    *,
    code: str,
    name: str,
    price_cents: int,
    variant: str | None = None,
    opening_quantity: int = 0,
) -> Product:
    """
    Register a catalog product and receive its opening stock.

    Catalog management proper lives outside this service; this exists for
    seeding and tests so opening stock always arrives with serials.
    """
    if not code or not name:
        raise ValidationError("code and name are required")
    if not isinstance(price_cents, int) or price_cents < 0:
        raise ValidationError("price_cents must be a non-negative integer", details={"price_cents": price_cents})
    if db.session.query(Product).filter_by(code=code).first() is not None:
        raise ValidationError("Product code already exists", details={"code": code})

    product = Product(code=code, name=name, variant=variant, price_cents=price_cents, available_quantity=0)
    db.session.add(product)
    db.session.commit()

    if opening_quantity:
        receive_stock(product.id, opening_quantity)
    return product


def lock_products(product_ids) -> dict[int, Product]:
    """
    Locked read of several products.

    Rows are locked in ascending id order so concurrent checkouts touching
    overlapping products cannot deadlock.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id.asc())
    ).all()
    products = {p.id: p for p in rows}
    missing = [pid for pid in ids if pid not in products]
    if missing:
        raise ProductNotFound("Product not found", details={"product_ids": missing})
    return products


def adjust_available_quantity(product: Product, delta: int) -> Product:
    new_quantity = product.available_quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            f"Insufficient stock for {product.code}",
            details={
                "product_id": product.id,
                "product_code": product.code,
                "requested_quantity": -delta,
                "available_quantity": product.available_quantity,
            },
        )
    product.available_quantity = new_quantity
    return product


def receive_stock(product_id: int, quantity: int) -> list[str]:
    """
    Bring units into stock outside of an order (opening stock, restocks).

    Mints serials with no sell order and raises available_quantity by the
    same amount, then commits.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", details={"quantity": quantity})

    def _op():
        begin_write()
        product = lock_products([product_id])[product_id]
        serials = serial_service.mint(product, quantity, sell_order_id=None)
        adjust_available_quantity(product, quantity)
        db.session.commit()
        return serials

    return run_with_retry(_op)


def verify_quantity_conservation() -> list[dict]:
    """
    Report products whose stock counter disagrees with the serial ledger.

    Also flags ledger rows whose serial text does not carry their stored
    sequence. An empty list means the ledger is consistent.
    """
    unconsumed = dict(
        db.session.query(SerialAllocation.product_id, func.count(SerialAllocation.id))
        .filter(SerialAllocation.buy_order_id.is_(None))
        .group_by(SerialAllocation.product_id)
        .all()
    )

    problems = []
    for product in db.session.query(Product).order_by(Product.id.asc()).all():
        ledger_count = int(unconsumed.get(product.id, 0))
        if ledger_count != product.available_quantity:
            problems.append({
                "product_id": product.id,
                "product_code": product.code,
                "available_quantity": product.available_quantity,
                "unconsumed_serials": ledger_count,
            })

    for row in db.session.query(SerialAllocation).order_by(SerialAllocation.id.asc()).all():
        if serial_service.parse_serial_suffix(row.product_code, row.serial_number) != row.sequence:
            problems.append({
                "product_id": row.product_id,
                "product_code": row.product_code,
                "serial_number": row.serial_number,
                "sequence": row.sequence,
            })

    return problems

# Overview: Service-layer operations for carts; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..errors import InsufficientStock, NotFoundError, Unauthorized, ValidationError
from ..models import Cart, CartLine, CART_KINDS
from .concurrency import run_with_retry
from .inventory_service import get_product


def _validate_kind(kind: str) -> str:
    if kind not in CART_KINDS:
        raise ValidationError(
            f"Cart kind must be one of: {', '.join(CART_KINDS)}",
            details={"kind": kind},
        )
    return kind


def _validate_quantity(quantity, *, allow_zero: bool = False) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise ValidationError("Quantity must be an integer", details={"quantity": quantity})
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
    return quantity


def find_open_cart(owner_id: int, kind: str) -> Cart | None:
    return (
        db.session.query(Cart)
        .filter_by(owner_user_id=owner_id, kind=_validate_kind(kind), status="open")
        .order_by(Cart.id.desc())
        .first()
    )


def get_or_open_cart(owner_id: int, kind: str) -> Cart:
    """The owner's open cart of this kind, creating one if needed (flushes only)."""
    cart = find_open_cart(owner_id, kind)
    if cart is None:
        cart = Cart(owner_user_id=owner_id, kind=kind, status="open")
        db.session.add(cart)
        db.session.flush()
    return cart


def get_cart(cart_id: int, actor_id: int) -> Cart:
    cart = db.session.get(Cart, cart_id)
    if cart is None:
        raise NotFoundError("Cart not found", details={"cart_id": cart_id})
    if cart.owner_user_id != actor_id:
        raise Unauthorized("Cart does not belong to you", details={"cart_id": cart_id})
    return cart


def _check_availability(product, quantity: int) -> None:
    if product.available_quantity < quantity:
        raise InsufficientStock(
            f"Insufficient stock for {product.name}. Only {product.available_quantity} items available",
            details={
                "product_id": product.id,
                "product_code": product.code,
                "requested_quantity": quantity,
                "available_quantity": product.available_quantity,
            },
        )


def _find_line(cart: Cart, product_id: int) -> CartLine | None:
    return db.session.query(CartLine).filter_by(cart_id=cart.id, product_id=product_id).first()


def add_to_cart(owner_id: int, kind: str, product_id: int, quantity: int = 1) -> CartLine:
    """
    Add units of a product to the owner's open cart.

    Repeated adds merge into the existing line. Buy carts may not hold more
    than the product currently has available; checkout re-checks anyway.
    """
    _validate_kind(kind)
    _validate_quantity(quantity)

    def _op():
        product = get_product(product_id)
        cart = get_or_open_cart(owner_id, kind)
        line = _find_line(cart, product_id)
        new_quantity = quantity + (line.quantity if line else 0)

        if kind == "buy":
            _check_availability(product, new_quantity)

        if line:
            line.quantity = new_quantity
        else:
            line = CartLine(cart_id=cart.id, product_id=product_id, quantity=new_quantity)
            db.session.add(line)

        db.session.commit()
        return line

    return run_with_retry(_op)


def update_line(owner_id: int, kind: str, product_id: int, quantity: int) -> CartLine | None:
    """Set a line's quantity; zero removes the line and returns None."""
    _validate_kind(kind)
    _validate_quantity(quantity, allow_zero=True)

    def _op():
        cart = find_open_cart(owner_id, kind)
        line = _find_line(cart, product_id) if cart else None
        if line is None:
            raise NotFoundError("Cart item not found", details={"product_id": product_id})

        if quantity == 0:
            db.session.delete(line)
            db.session.commit()
            return None

        if kind == "buy":
            _check_availability(get_product(product_id), quantity)

        line.quantity = quantity
        db.session.commit()
        return line

    return run_with_retry(_op)


def remove_line(owner_id: int, kind: str, product_id: int) -> None:
    return update_line(owner_id, kind, product_id, 0)


def clear_cart(owner_id: int, kind: str) -> int:
    """Delete every line of the owner's open cart; returns how many went."""
    def _op():
        cart = find_open_cart(owner_id, kind)
        if cart is None:
            return 0
        deleted = db.session.query(CartLine).filter_by(cart_id=cart.id).delete(synchronize_session="fetch")
        db.session.commit()
        return deleted

    return run_with_retry(_op)


def cart_summary(cart: Cart | None) -> dict:
    """Lines with current prices plus totals (display only; checkout recomputes)."""
    if cart is None:
        return {"cart": None, "items": [], "summary": {"total_items": 0, "unique_items": 0, "subtotal_cents": 0}}

    lines = db.session.query(CartLine).filter_by(cart_id=cart.id).order_by(CartLine.id.asc()).all()
    items = []
    for line in lines:
        product = line.product
        items.append({
            **line.to_dict(),
            "product_code": product.code,
            "product_name": product.name,
            "product_variant": product.variant,
            "unit_price_cents": product.price_cents,
            "available_quantity": product.available_quantity,
            "line_total_cents": product.price_cents * line.quantity,
        })

    return {
        "cart": cart.to_dict(),
        "items": items,
        "summary": {
            "total_items": sum(item["quantity"] for item in items),
            "unique_items": len(items),
            "subtotal_cents": sum(item["line_total_cents"] for item in items),
        },
    }

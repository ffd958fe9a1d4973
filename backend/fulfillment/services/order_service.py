"""
Order Service - cart checkout and order bookkeeping

A checkout writes stock counters, serials, sell backlog and the cart inside
one locked transaction; it lands completely or not at all.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import (
    EmptyCart,
    FulfillmentError,
    InsufficientStock,
    InvalidPaymentMethod,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from ..models import Cart, CartLine, Order, OrderLine, ORDER_KINDS, ORDER_STATUSES, PAYMENT_METHODS
from ..time_utils import utcnow
from . import fifo_service, serial_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import adjust_available_quantity, lock_products
from .role_service import assign_role_if_unset
from .sequence_service import next_order_label

ROLE_FOR_KIND = {"buy": "buyer", "sell": "seller"}
KIND_FOR_ROLE = {role: kind for kind, role in ROLE_FOR_KIND.items()}

# pending is the only state an order can leave
STATUS_TRANSITIONS = {
    "pending": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def kind_for_role(role: str | None) -> str:
    kind = KIND_FOR_ROLE.get(role)
    if kind is None:
        raise Unauthorized("Only buyers and sellers can check out", details={"role": role})
    return kind


def _validate_checkout_input(order_kind: str, payment_method: str | None) -> None:
    if order_kind not in ORDER_KINDS:
        raise ValidationError(
            f"Order kind must be one of: {', '.join(ORDER_KINDS)}",
            details={"kind": order_kind},
        )
    if not payment_method or payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentMethod(
            "Payment method must be either cash or upi",
            details={"payment_method": payment_method},
        )


def _load_cart_for_checkout(actor_id: int, cart_id: int, order_kind: str) -> Cart:
    cart = lock_for_update(db.session.query(Cart).filter_by(id=cart_id)).first()
    if cart is None:
        raise NotFoundError("Cart not found", details={"cart_id": cart_id})
    if cart.owner_user_id != actor_id:
        raise Unauthorized("Cart does not belong to you", details={"cart_id": cart_id})
    if cart.kind != order_kind:
        raise ValidationError(
            f"Cannot create a {order_kind} order from a {cart.kind} cart",
            details={"cart_id": cart_id, "cart_kind": cart.kind},
        )
    if cart.status != "open":
        raise EmptyCart("Cart has already been checked out", details={"cart_id": cart_id, "order_id": cart.order_id})
    return cart


def _validate_buy_lines(lines: list[CartLine], products: dict) -> None:
    """
    All-or-nothing stock check for every line before anything is written.
    """
    insufficient = []
    require_backlog = current_app.config.get("FIFO_REQUIRE_SELL_BACKLOG", False)

    for line in lines:
        product = products[line.product_id]
        if product.available_quantity < line.quantity:
            insufficient.append({
                "product_id": product.id,
                "product_code": product.code,
                "requested_quantity": line.quantity,
                "available_quantity": product.available_quantity,
            })
            continue

        if require_backlog:
            backlog = fifo_service.open_backlog(product.id)
            if backlog < line.quantity:
                insufficient.append({
                    "product_id": product.id,
                    "product_code": product.code,
                    "requested_quantity": line.quantity,
                    "open_sell_backlog": backlog,
                })

    if insufficient:
        first = insufficient[0]
        raise InsufficientStock(
            f"Insufficient stock for {first['product_code']}",
            details={"items": insufficient},
        )


def _apply_buy_line(order: Order, product, quantity: int) -> tuple[list[str], int]:
    matched = fifo_service.match_fifo(product.id, quantity)
    adjust_available_quantity(product, -quantity)
    serials = serial_service.allocate(product, quantity, buy_order_id=order.id)
    return serials, quantity - matched


def _apply_sell_line(order: Order, product, quantity: int) -> tuple[list[str], int]:
    serials = serial_service.mint(product, quantity, sell_order_id=order.id)
    adjust_available_quantity(product, quantity)
    return serials, quantity


def _create_order_locked(actor_id: int, cart_id: int, order_kind: str, payment_method: str) -> Order:
    cart = _load_cart_for_checkout(actor_id, cart_id, order_kind)

    lines = (
        db.session.query(CartLine)
        .filter_by(cart_id=cart.id)
        .order_by(CartLine.id.asc())
        .all()
    )
    if not lines:
        raise EmptyCart("Cart is empty", details={"cart_id": cart_id})

    products = lock_products(line.product_id for line in lines)

    if order_kind == "buy":
        _validate_buy_lines(lines, products)

    total_quantity = sum(line.quantity for line in lines)
    total_amount_cents = sum(products[line.product_id].price_cents * line.quantity for line in lines)

    order = Order(
        owner_user_id=actor_id,
        serial_label=next_order_label(),
        kind=order_kind,
        cart_id=cart.id,
        quantity=total_quantity,
        open_quantity=total_quantity,
        total_amount_cents=total_amount_cents,
        payment_method=payment_method,
        status="pending",
    )
    db.session.add(order)
    db.session.flush()

    apply_line = _apply_buy_line if order_kind == "buy" else _apply_sell_line
    open_quantity = 0
    for line in lines:
        product = products[line.product_id]
        unit_price_cents = product.price_cents
        serials, line_open = apply_line(order, product, line.quantity)
        open_quantity += line_open

        db.session.add(OrderLine(
            order_id=order.id,
            product_id=product.id,
            quantity=line.quantity,
            open_quantity=line_open,
            unit_price_cents=unit_price_cents,
            line_total_cents=unit_price_cents * line.quantity,
            serial_numbers=serials,
        ))

    order.open_quantity = open_quantity
    if order_kind == "buy" and open_quantity == 0:
        order.status = "completed"

    for line in lines:
        db.session.delete(line)
    cart.status = "checked_out"
    cart.order_id = order.id
    cart.checked_out_at = utcnow()

    return order


def create_order(actor_id: int, cart_id: int, order_kind: str, payment_method: str) -> dict:
    """
    Convert the actor's cart into one order covering all of its lines.

    Buy: FIFO-match open sell backlog, decrement stock, bind the lowest
    unconsumed serials. Sell: mint fresh serials, increment stock. Either way
    the cart lines are deleted and the cart is linked to the new order.

    Everything happens in one transaction; any failure leaves no order, no
    serial change, no stock change and the cart untouched. After the commit
    the actor's role is set if it was still unset.
    """
    _validate_checkout_input(order_kind, payment_method)

    def _op():
        begin_write()
        order = _create_order_locked(actor_id, cart_id, order_kind, payment_method)
        db.session.commit()
        return order.id

    order_id = run_with_retry(_op)
    order = db.session.get(Order, order_id)

    current_app.logger.info(
        "Order %s (%s) created from cart %s: %d units, %d cents",
        order.serial_label, order.kind, cart_id, order.quantity, order.total_amount_cents,
    )

    try:
        assign_role_if_unset(actor_id, ROLE_FOR_KIND[order_kind])
    except (FulfillmentError, SQLAlchemyError):
        current_app.logger.warning("Role assignment failed for user %s after order %s", actor_id, order.serial_label, exc_info=True)

    return checkout_response(order)


def checkout_response(order: Order) -> dict:
    items = [
        {
            "product_id": line.product_id,
            "product_code": line.product.code,
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "line_total_cents": line.line_total_cents,
            "serial_numbers": list(line.serial_numbers or []),
        }
        for line in order.lines
    ]
    return {
        "order_id": order.id,
        "serial_label": order.serial_label,
        "kind": order.kind,
        "total_amount_cents": order.total_amount_cents,
        "payment_method": order.payment_method,
        "status": order.status,
        "items": items,
        "total_items": sum(item["quantity"] for item in items),
    }


def _check_order_access(order: Order, actor_id: int, actor_role: str | None) -> None:
    if actor_role != "admin" and order.owner_user_id != actor_id:
        raise Unauthorized("You are not authorized to view this order", details={"order_id": order.id})


def get_order(order_id: int, actor_id: int, actor_role: str | None = None) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    _check_order_access(order, actor_id, actor_role)
    return order


def list_orders(
    actor_id: int,
    *,
    kind: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """The actor's orders, newest first, with pagination metadata."""
    if kind is not None and kind not in ORDER_KINDS:
        raise ValidationError("Invalid order kind", details={"kind": kind})
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError("Invalid order status", details={"status": status})
    if page < 1 or limit < 1 or limit > 100:
        raise ValidationError("page must be >= 1 and limit between 1 and 100", details={"page": page, "limit": limit})

    q = db.session.query(Order).filter(Order.owner_user_id == actor_id)
    if kind:
        q = q.filter(Order.kind == kind)
    if status:
        q = q.filter(Order.status == status)

    total = q.count()
    orders = (
        q.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "orders": orders,
        "pagination": {
            "current_page": page,
            "total_pages": (total + limit - 1) // limit,
            "total_orders": total,
            "limit": limit,
        },
    }


def update_order_status(order_id: int, actor_id: int, actor_role: str | None, status: str) -> Order:
    """
    Move a pending order to completed or cancelled.

    Owner or admin only. This is bookkeeping: stock and serials are left as
    they are, but a cancelled sell order drops out of FIFO matching.
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(ORDER_STATUSES)}",
            details={"status": status},
        )

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        _check_order_access(order, actor_id, actor_role)

        if status not in STATUS_TRANSITIONS[order.status]:
            raise ValidationError(
                f"Cannot change order status from {order.status} to {status}",
                details={"order_id": order_id, "from": order.status, "to": status},
            )

        order.status = status
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s status -> %s by user %s", order.serial_label, status, actor_id)
    return order

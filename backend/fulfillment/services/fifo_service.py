# Overview: FIFO matching of buy demand against open sell-order backlog.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderLine
from .concurrency import lock_for_update


def _open_sell_lines_query(product_id: int):
    return (
        db.session.query(OrderLine)
        .join(Order, Order.id == OrderLine.order_id)
        .filter(
            Order.kind == "sell",
            Order.status == "pending",
            OrderLine.product_id == product_id,
            OrderLine.open_quantity > 0,
        )
    )


def open_backlog(product_id: int) -> int:
    """Units of a product still committed by pending sell orders."""
    total = (
        _open_sell_lines_query(product_id)
        .with_entities(func.coalesce(func.sum(OrderLine.open_quantity), 0))
        .scalar()
    )
    return int(total or 0)


def match_fifo(product_id: int, requested_quantity: int) -> int:
    """
    Drain pending sell orders for a product, oldest first.

    Takes min(open, remaining) from each sell line in order of the parent
    order's creation, decrements the line and the sell order's open quantity,
    and completes the sell order when its open quantity reaches zero. Stops
    once the request is covered or the backlog runs out.

    Returns the matched quantity, which may be less than requested: this is
    bookkeeping against seller commitments, not the stock gate.
    """
    if requested_quantity <= 0:
        return 0

    lines = lock_for_update(
        _open_sell_lines_query(product_id)
        .order_by(Order.created_at.asc(), Order.id.asc(), OrderLine.id.asc())
    ).all()

    remaining = requested_quantity
    for line in lines:
        if remaining <= 0:
            break

        take = min(line.open_quantity, remaining)
        line.open_quantity -= take
        sell_order = line.order
        sell_order.open_quantity -= take
        if sell_order.open_quantity == 0:
            sell_order.status = "completed"
        remaining -= take

    db.session.flush()
    return requested_quantity - remaining

# Overview: Serial allocation ledger; the only writer of SerialAllocation rows.

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientSerials, ValidationError
from ..models import Product, SerialAllocation
from ..time_utils import utcnow
from .concurrency import lock_for_update
"""
Serial numbering rules:
- A serial is "<product code><zero-padded sequence>", e.g. DFT-P001.
- Sequences per product code start at 1 and only grow; mint() continues from
  the ledger maximum, never from the count of unconsumed units, so suffixes
  are never reused even after every unit has been sold.
- allocate() consumes the lowest-numbered unconsumed units first.
- Rows are updated on consumption, never deleted.

Neither operation commits: both run inside the order transaction.
"""


def format_serial(product_code: str, sequence: int, pad: int | None = None) -> str:
    if pad is None:
        pad = current_app.config.get("SERIAL_PAD", 3)
    return f"{product_code}{sequence:0{pad}d}"


def parse_serial_suffix(product_code: str, serial_number: str) -> int | None:
    """
    Strip the product code prefix and parse the trailing digits.

    Returns None when the serial does not belong to the code or has no
    numeric suffix.
    """
    if not serial_number or not serial_number.startswith(product_code):
        return None
    match = re.fullmatch(r"(\d+)", serial_number[len(product_code):])
    if not match:
        return None
    return int(match.group(1))


def _max_sequence(product_code: str) -> int:
    value = (
        db.session.query(func.max(SerialAllocation.sequence))
        .filter(SerialAllocation.product_code == product_code)
        .scalar()
    )
    return int(value or 0)


def mint(product: Product, quantity: int, sell_order_id: int | None) -> list[str]:
    """
    Create `quantity` new serials for a product, bound to the sell order.

    sell_order_id is None only for opening stock received outside an order.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be positive", details={"quantity": quantity})

    start = _max_sequence(product.code) + 1
    now = utcnow()
    serials = []
    for sequence in range(start, start + quantity):
        serial_number = format_serial(product.code, sequence)
        db.session.add(SerialAllocation(
            product_id=product.id,
            product_code=product.code,
            sequence=sequence,
            serial_number=serial_number,
            sell_order_id=sell_order_id,
            buy_order_id=None,
            minted_at=now,
        ))
        serials.append(serial_number)

    db.session.flush()
    return serials


def allocate(product: Product, quantity: int, buy_order_id: int) -> list[str]:
    """
    Bind the `quantity` lowest-numbered unconsumed serials to a buy order.

    Raises InsufficientSerials if the ledger cannot cover the request. That
    means available_quantity and the ledger have drifted, so the whole order
    must abort.
    """
    if quantity <= 0:
        raise ValidationError("quantity must be positive", details={"quantity": quantity})

    rows = lock_for_update(
        db.session.query(SerialAllocation)
        .filter(
            SerialAllocation.product_id == product.id,
            SerialAllocation.buy_order_id.is_(None),
        )
        .order_by(SerialAllocation.sequence.asc())
        .limit(quantity)
    ).all()

    if len(rows) < quantity:
        raise InsufficientSerials(
            f"Not enough unconsumed serials for {product.code}",
            details={
                "product_id": product.id,
                "product_code": product.code,
                "requested_quantity": quantity,
                "available_serials": len(rows),
            },
        )

    now = utcnow()
    for row in rows:
        row.buy_order_id = buy_order_id
        row.allocated_at = now

    db.session.flush()
    return [row.serial_number for row in rows]


def count_unconsumed(product_id: int) -> int:
    return int(
        db.session.query(func.count(SerialAllocation.id))
        .filter(
            SerialAllocation.product_id == product_id,
            SerialAllocation.buy_order_id.is_(None),
        )
        .scalar()
        or 0
    )


def list_serials(product_id: int, consumed: bool | None = None) -> list[SerialAllocation]:
    q = db.session.query(SerialAllocation).filter(SerialAllocation.product_id == product_id)
    if consumed is True:
        q = q.filter(SerialAllocation.buy_order_id.isnot(None))
    elif consumed is False:
        q = q.filter(SerialAllocation.buy_order_id.is_(None))
    return q.order_by(SerialAllocation.sequence.asc()).all()

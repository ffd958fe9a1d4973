# Overview: Atomic label counters for human-readable order labels.

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..models import LabelSequence, Order
from ..time_utils import utcnow
from .concurrency import lock_for_update


class LabelSequenceError(Exception):
    """Raised when a label counter cannot produce a number."""


def _initial_number(prefix: str) -> int:
    """
    First number for a namespace that has no counter row yet.

    Continues after the highest existing "<prefix>-<digits>" label so data
    created before the counter existed is never relabelled. Labels that do
    not parse (e.g. time-derived fallbacks) are skipped.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    labels = (
        db.session.query(Order.serial_label)
        .filter(Order.serial_label.like(f"{prefix}-%"))
        .all()
    )
    highest = 0
    for (label,) in labels:
        match = pattern.match(label or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def next_label_number(namespace: str) -> int:
    """
    Allocate the next number for a namespace inside the caller's transaction.

    The counter row is locked for update, so two checkouts can never draw the
    same number; nothing is committed here.
    """
    if not namespace:
        raise LabelSequenceError("namespace is required")

    seq = lock_for_update(
        db.session.query(LabelSequence).filter_by(namespace=namespace)
    ).first()

    if seq is None:
        seq = LabelSequence(namespace=namespace, next_number=_initial_number(namespace))
        db.session.add(seq)
        db.session.flush()

    current = seq.next_number
    if current is None or current < 1:
        raise LabelSequenceError(f"corrupt counter for {namespace}: {current!r}")

    seq.next_number = current + 1
    db.session.flush()
    return current


def fallback_order_label(prefix: str | None = None) -> str:
    """Time-derived label used when the counter is unusable."""
    prefix = prefix or current_app.config.get("ORDER_LABEL_PREFIX", "ORD")
    return f"{prefix}-T{utcnow():%Y%m%d%H%M%S%f}"


def next_order_label(pad: int = 3) -> str:
    """
    Next order label such as "ORD-001".

    Never raises for counter problems: the order transaction must not abort
    because of its label, so a broken counter degrades to a time-derived one.
    """
    prefix = current_app.config.get("ORDER_LABEL_PREFIX", "ORD")
    try:
        number = next_label_number(prefix)
    except (LabelSequenceError, ValueError, TypeError) as exc:
        label = fallback_order_label(prefix)
        current_app.logger.warning("Order label counter unusable (%s); using %s", exc, label)
        return label
    return f"{prefix}-{number:0{pad}d}"

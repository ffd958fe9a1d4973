# backend/fulfillment/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fulfillment.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///fulfillment.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Order labels look like ORD-001
    ORDER_LABEL_PREFIX = os.environ.get("ORDER_LABEL_PREFIX", "ORD")

    # Serial numbers look like DFT-P001
    SERIAL_PAD = int(os.environ.get("SERIAL_PAD", "3"))

    ORDER_RETRY_ATTEMPTS = int(os.environ.get("ORDER_RETRY_ATTEMPTS", "3"))

    # False: product.available_quantity alone gates a buy; FIFO matching is bookkeeping.
    # True: a buy line must also be covered by open sell-order backlog.
    FIFO_REQUIRE_SELL_BACKLOG = _env_flag("FIFO_REQUIRE_SELL_BACKLOG")

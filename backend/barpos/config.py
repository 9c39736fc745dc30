# backend/barpos/config.py
from __future__ import annotations
import os
from decimal import Decimal


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/barpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///barpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sales tax applied to (subtotal - discount)
    TAX_RATE = Decimal(os.environ.get("TAX_RATE", "0.07"))

    # Tracked items below this effective stock are flagged low
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    # "sha256" (unsalted, legacy terminals) or "bcrypt" (salted)
    PIN_HASH_SCHEME = os.environ.get("PIN_HASH_SCHEME", "sha256")

    # Simulated card reader delay
    CARD_AUTH_DELAY_SECONDS = float(os.environ.get("CARD_AUTH_DELAY_SECONDS", "2.0"))


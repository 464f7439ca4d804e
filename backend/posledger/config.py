# backend/posledger/config.py
from __future__ import annotations
import os


class Config:
    # SQLite ledger file in the working directory by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Money limits are in cents
    # 1,000,000.00 per payment, 10,000,000.00 per credit limit
    MAX_PAYMENT_CENTS = int(os.environ.get("MAX_PAYMENT_CENTS", 100_000_000))
    MAX_CREDIT_LIMIT_CENTS = int(os.environ.get("MAX_CREDIT_LIMIT_CENTS", 1_000_000_000))

    DEFAULT_PAYMENT_TERMS = os.environ.get("DEFAULT_PAYMENT_TERMS", "Net 30")
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", 10))

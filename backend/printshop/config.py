# backend/printshop/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/printshop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///printshop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Invoices fall due this many days after the invoice date
    DEFAULT_INVOICE_DUE_DAYS = int(os.environ.get("DEFAULT_INVOICE_DUE_DAYS", "30"))

    DEFAULT_PER_PAGE = int(os.environ.get("DEFAULT_PER_PAGE", "20"))
    MAX_PER_PAGE = int(os.environ.get("MAX_PER_PAGE", "100"))

    # bcrypt cost factor; tests lower it
    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))

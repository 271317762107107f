# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///shopledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Backups are uploaded as one JSON document
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 50 * 1024 * 1024))

    # "allow" keeps selling below zero and flags it, "reject" aborts the unit
    NEGATIVE_STOCK_POLICY = os.environ.get("NEGATIVE_STOCK_POLICY", "allow")

    # "last" overwrites unit cost on every purchase, "weighted_average" blends it
    COST_BASIS_POLICY = os.environ.get("COST_BASIS_POLICY", "last")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", 12))

    # Create tables on startup (the CLI can still reset them)
    AUTO_CREATE_SCHEMA = os.environ.get("AUTO_CREATE_SCHEMA", "1") == "1"

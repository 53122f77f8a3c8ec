# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # In-memory SQLite by default (one shared connection, so writes run one at a time);
    # point DATABASE_URL at any SQLAlchemy URL to persist
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///:memory:",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Alert thresholds
    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "5"))
    EXPIRY_ALERT_DAYS = int(os.environ.get("EXPIRY_ALERT_DAYS", "7"))

    # Text-generation collaborator (OpenAI-compatible chat completions)
    ASSISTANT_API_URL = os.environ.get(
        "ASSISTANT_API_URL",
        "https://api.openai.com/v1/chat/completions",
    )
    ASSISTANT_API_KEY = os.environ.get("OPENAI_API_KEY")
    ASSISTANT_MODEL = os.environ.get("ASSISTANT_MODEL", "gpt-4o-mini")
    ASSISTANT_TIMEOUT_SECONDS = float(os.environ.get("ASSISTANT_TIMEOUT_SECONDS", "20"))

    # Create tables and load sample catalog on startup (handy with in-memory DB)
    SEED_DEMO_DATA = os.environ.get("SEED_DEMO_DATA", "false").lower() == "true"

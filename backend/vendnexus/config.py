# backend/vendnexus/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # All state is process-local: in-memory SQLite, rebuilt on every start
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite://")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Mock data loaded by create_app()
    SEED_ON_STARTUP = os.environ.get("VENDNEXUS_SEED", "true").lower() != "false"
    SEED_SALES_COUNT = int(os.environ.get("VENDNEXUS_SEED_SALES", "50"))
    SEED_RANDOM_SEED = os.environ.get("VENDNEXUS_SEED_RANDOM")

    # Context bound for general insight queries
    RECENT_SALES_LIMIT = int(os.environ.get("VENDNEXUS_RECENT_SALES_LIMIT", "50"))

    # Generative-model oracle. The key itself is read from the environment
    # variable named here at call time, never stored in config.
    ORACLE_API_KEY_ENV = "API_KEY"
    ORACLE_BASE_URL = os.environ.get(
        "ORACLE_BASE_URL",
        "https://generativelanguage.googleapis.com/v1beta",
    )
    ORACLE_TIMEOUT_SECONDS = float(os.environ.get("ORACLE_TIMEOUT_SECONDS", "60"))
    ORACLE_REASONING_MODEL = "gemini-3-pro-preview"
    ORACLE_PRICING_MODEL = "gemini-2.5-flash"
    ORACLE_SPEECH_MODEL = "gemini-2.5-flash-preview-tts"
    ORACLE_IMAGE_MODEL = "gemini-2.5-flash-image"
    ORACLE_SPEECH_VOICE = "Kore"

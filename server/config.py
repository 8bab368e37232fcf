"""Configuration settings for the relay server."""

import os


def _split_origins(raw: str) -> list[str]:
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


TELEGRAM_BOT_TOKEN = os.environ.get("TG_BOT_TOKEN", "")

TELEGRAM_CHAT_ID = os.environ.get("TG_CHAT_ID", "")

TELEGRAM_API_BASE = os.environ.get("TG_API_BASE", "https://api.telegram.org").rstrip("/")

DATABASE_PATH = os.environ.get("DATABASE_PATH", "./data/relaybox.db")

ALLOWED_ORIGINS = _split_origins(os.environ.get("ALLOWED_ORIGINS", ""))

EXPECT_REFERER = os.environ.get("ALLOWED_REFERER", "").lower() in ("1", "true", "yes")

CHUNK_TTL_SECONDS = int(os.environ.get("CHUNK_TTL_SECONDS", str(24 * 3600)))

CHUNK_SWEEP_INTERVAL_SECONDS = int(os.environ.get("CHUNK_SWEEP_INTERVAL_SECONDS", "3600"))

AUTH_PASSWORD_HASH = os.environ.get("AUTH_PASSWORD_HASH", "")

SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("SERVER_PORT", "8000"))

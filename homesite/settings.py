"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def admin_emails() -> set[str]:
    """Admin allow-list, lowercased. Read on every call so tests can patch the env."""
    return {email.lower() for email in _list_env("ADMIN_EMAILS")}


# Session cookie used by the server-rendered pages.
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "homesite_session")
SESSION_COOKIE_SECURE: bool = _bool_env("SESSION_COOKIE_SECURE", False)

# Object storage (MinIO or any S3-compatible endpoint).
S3_ENDPOINT_URL: str = os.getenv("S3_ENDPOINT_URL", "http://localhost:9000")
S3_ACCESS_KEY: str = os.getenv("S3_ACCESS_KEY", "")
S3_SECRET_KEY: str = os.getenv("S3_SECRET_KEY", "")
S3_REGION: str = os.getenv("S3_REGION", "us-east-1")
S3_BUCKET: str = os.getenv("S3_BUCKET", "personal-platform")
PUBLIC_MEDIA_BASE_URL: str = os.getenv("PUBLIC_MEDIA_BASE_URL", "/api/media").rstrip("/")
PRESIGN_EXPIRY_SECONDS: int = _int_env("PRESIGN_EXPIRY_SECONDS", 3600)

# Deepest reply level allowed (0 = top-level comment).
MAX_COMMENT_DEPTH: int = _int_env("MAX_COMMENT_DEPTH", 5)

RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)

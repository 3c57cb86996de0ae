"""Core configuration and infrastructure helpers."""

from .config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ALLOWED_CORS_ORIGINS,
    BCRYPT_ROUNDS,
    DATABASE_URL,
    DB_RESET,
    FRONTEND_ORIGIN,
    FRONTEND_ORIGINS,
    JWT_SECRET,
    LINK_STATE_TTL_SECONDS,
    PROVIDER_TIMEOUT_SECONDS,
    TOKEN_TTL_SECONDS,
    WECHAT_APPID,
    WECHAT_PLATFORM,
    WECHAT_REDIRECT,
    WECHAT_SECRET,
)
from .database import engine, get_session
from .passwords import hash_password, unusable_password_hash, verify_password
from .time import as_utc, utcnow

__all__ = [
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
    "ALLOWED_CORS_ORIGINS",
    "BCRYPT_ROUNDS",
    "DATABASE_URL",
    "DB_RESET",
    "FRONTEND_ORIGIN",
    "FRONTEND_ORIGINS",
    "JWT_SECRET",
    "LINK_STATE_TTL_SECONDS",
    "PROVIDER_TIMEOUT_SECONDS",
    "TOKEN_TTL_SECONDS",
    "WECHAT_APPID",
    "WECHAT_PLATFORM",
    "WECHAT_REDIRECT",
    "WECHAT_SECRET",
    "as_utc",
    "engine",
    "get_session",
    "hash_password",
    "unusable_password_hash",
    "utcnow",
    "verify_password",
]

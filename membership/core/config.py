"""Application settings and environment helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from dotenv import load_dotenv

load_dotenv(override=False)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# Token security -------------------------------------------------------------
JWT_SECRET = _require_env("JWT_SECRET")
TOKEN_TTL_SECONDS = _env_int("TOKEN_TTL_SECONDS", 7 * 24 * 3600)
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 10)


# Storage --------------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{_PROJECT_ROOT / 'data' / 'app.db'}"
DB_RESET = _env_bool("DB_RESET", False)

ADMIN_EMAIL = (os.getenv("ADMIN_EMAIL") or "admin@local").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD") or None


# Origins --------------------------------------------------------------------
# FRONTEND_ORIGIN can contain a comma-separated list for multi-domain deploys.
_frontend_origins = _split_csv(os.getenv("FRONTEND_ORIGIN"))
_additional_origins = _split_csv(os.getenv("ADDITIONAL_ALLOWED_ORIGINS"))

_local_dev_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
]

ALLOWED_CORS_ORIGINS = _unique(
    [
        *_frontend_origins,
        *_additional_origins,
        *_local_dev_origins,
    ]
)

FRONTEND_ORIGINS = _frontend_origins
FRONTEND_ORIGIN = FRONTEND_ORIGINS[0] if FRONTEND_ORIGINS else ""


# WeChat login ---------------------------------------------------------------
WECHAT_APPID = os.getenv("WECHAT_APPID", "")
WECHAT_SECRET = os.getenv("WECHAT_SECRET", "")
WECHAT_REDIRECT = os.getenv("WECHAT_REDIRECT", "")
WECHAT_PLATFORM = (os.getenv("WECHAT_PLATFORM") or "qr").strip().lower()
if WECHAT_PLATFORM not in {"qr", "mp"}:
    raise RuntimeError("WECHAT_PLATFORM must be 'qr' or 'mp'")

PROVIDER_TIMEOUT_SECONDS = _env_int("PROVIDER_TIMEOUT_SECONDS", 10)
LINK_STATE_TTL_SECONDS = _env_int("LINK_STATE_TTL_SECONDS", 600)


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
]

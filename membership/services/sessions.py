"""Single-device session guard.

A token is only a snapshot; the store decides whether it is still live.
Every protected request re-reads the account and compares the embedded
epoch and the presented device id against it.
"""

from __future__ import annotations

from typing import Optional

from ..logging import get_logger
from ..models import Account
from .errors import (
    BadRequestError,
    DeviceMismatchError,
    SessionSupersededError,
    UnauthorizedError,
)
from .store import CredentialStore
from .tokens import TokenClaims

logger = get_logger(__name__)


def normalize_device_id(raw: Optional[str]) -> str:
    """Return the trimmed device id or raise when it is absent."""

    device_id = (raw or "").strip()
    if not device_id:
        raise BadRequestError("Missing device id")
    return device_id


def check_session(
    store: CredentialStore, claims: TokenClaims, device_id: Optional[str]
) -> Account:
    """Return the live account if the token still owns the active session."""

    device_id = normalize_device_id(device_id)
    account = store.get_account(claims.account_id)
    if account is None:
        logger.warning(
            "session_rejected", reason="unknown_account", account_id=claims.account_id
        )
        raise UnauthorizedError("Unauthorized")

    if claims.epoch != account.session_epoch:
        logger.info(
            "session_rejected",
            reason="stale_epoch",
            account_id=account.id,
            token_epoch=claims.epoch,
            live_epoch=account.session_epoch,
        )
        raise SessionSupersededError("Session expired")

    if account.active_device_id and account.active_device_id != device_id:
        logger.info("session_rejected", reason="device_mismatch", account_id=account.id)
        raise DeviceMismatchError("Logged in on another device")

    return account


__all__ = ["check_session", "normalize_device_id"]

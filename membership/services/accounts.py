"""Registration, password login and session issuance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.config import ADMIN_EMAIL, ADMIN_PASSWORD
from ..core.passwords import MAX_PASSWORD_BYTES, hash_password, verify_password
from ..logging import get_logger
from ..models import Account, Role
from .approval import PendingApproval, gate
from .errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from .sessions import normalize_device_id
from .store import CredentialStore
from .tokens import TokenIssuer

logger = get_logger(__name__)

REGISTERED_MESSAGE = (
    "Registered. An administrator must approve the account before you can log in."
)
NOT_APPROVED_MESSAGE = "Account is waiting for administrator approval."


@dataclass(frozen=True)
class SessionGrant:
    token: str
    account: Account

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "user": account_summary(self.account)}


LoginResult = Union[SessionGrant, PendingApproval]


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def account_summary(account: Account) -> Dict[str, Any]:
    return {"id": account.id, "email": account.email, "role": account.role}


def account_profile(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "email": account.email,
        "role": account.role,
        "approved": account.approved,
        "nickname": account.wechat_nickname,
        "avatar": account.wechat_avatar,
    }


def account_admin_row(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "email": account.email,
        "role": account.role,
        "approved": account.approved,
        "created_at": account.created_at.isoformat() if account.created_at else None,
        "approved_at": account.approved_at.isoformat() if account.approved_at else None,
        "nickname": account.wechat_nickname,
    }


def _validate_password(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError("Password is too long")


def register(store: CredentialStore, email: str, password: str) -> PendingApproval:
    email = normalize_email(email)
    if not email or not password:
        raise BadRequestError("Missing email/password")
    _validate_password(password)
    if store.find_by_email(email):
        raise ConflictError("Email already registered")

    try:
        account = store.create_account(email=email, password_hash=hash_password(password))
    except ConflictError as exc:
        raise ConflictError("Email already registered") from exc
    logger.info("account_registered", account_id=account.id)
    return PendingApproval(account_id=account.id, message=REGISTERED_MESSAGE)


def open_session(
    store: CredentialStore,
    issuer: TokenIssuer,
    account: Account,
    device_id: str,
    *,
    pending_message: str = NOT_APPROVED_MESSAGE,
) -> LoginResult:
    """Run the approval gate, then start a new session on ``device_id``."""

    pending = gate(account, pending_message)
    if pending is not None:
        return pending

    account = store.record_login(account.id, device_id)
    logger.info("login_succeeded", account_id=account.id, epoch=account.session_epoch)
    return SessionGrant(token=issuer.issue(account), account=account)


def login(
    store: CredentialStore,
    issuer: TokenIssuer,
    email: str,
    password: str,
    device_id: Optional[str],
) -> LoginResult:
    device_id = normalize_device_id(device_id)
    email = normalize_email(email)
    if not email or not password:
        raise BadRequestError("Missing email/password")

    account = store.find_by_email(email)
    if account is None or not verify_password(password, account.password_hash):
        logger.info("login_failed", reason="invalid_credentials")
        raise UnauthorizedError("Invalid credentials")
    return open_session(store, issuer, account, device_id)


def logout_everywhere(store: CredentialStore, account_id: int) -> Account:
    account = store.clear_session(account_id)
    logger.info("logout_everywhere", account_id=account.id, epoch=account.session_epoch)
    return account


def get_profile(store: CredentialStore, account_id: int) -> Account:
    account = store.get_account(account_id)
    if account is None:
        raise NotFoundError("Not found")
    if not account.approved:
        raise ForbiddenError(NOT_APPROVED_MESSAGE)
    return account


def seed_admin(
    store: CredentialStore,
    email: str = ADMIN_EMAIL,
    password: Optional[str] = ADMIN_PASSWORD,
) -> Optional[Account]:
    """Create the admin account when a password is configured and it is missing."""

    email = normalize_email(email)
    if not password or not email:
        return None
    if store.find_by_email(email):
        return None
    account = store.create_account(
        email=email,
        password_hash=hash_password(password),
        role=Role.ADMIN.value,
        approved=True,
    )
    logger.info("admin_seeded", account_id=account.id)
    return account


__all__ = [
    "LoginResult",
    "NOT_APPROVED_MESSAGE",
    "REGISTERED_MESSAGE",
    "SessionGrant",
    "account_admin_row",
    "account_profile",
    "account_summary",
    "get_profile",
    "login",
    "logout_everywhere",
    "normalize_email",
    "open_session",
    "register",
    "seed_admin",
]

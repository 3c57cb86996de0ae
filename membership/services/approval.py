"""Administrator approval gate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ..logging import get_logger
from ..models import Account, Role
from .errors import BadRequestError, ForbiddenError
from .store import CredentialStore
from .tokens import TokenClaims

logger = get_logger(__name__)


@dataclass(frozen=True)
class PendingApproval:
    """Authentication succeeded but the account may not be used yet."""

    account_id: int
    message: str

    def to_dict(self) -> dict:
        return {"pendingApproval": True, "message": self.message}


def gate(account: Account, message: str) -> Optional[PendingApproval]:
    """Return a ``PendingApproval`` for unapproved accounts, else ``None``."""

    if account.approved:
        return None
    logger.info("login_pending_approval", account_id=account.id)
    return PendingApproval(account_id=account.id, message=message)


def require_admin_role(claims: TokenClaims) -> None:
    if claims.role != Role.ADMIN.value:
        raise ForbiddenError("Forbidden")


def list_accounts(store: CredentialStore, approved: Optional[bool] = None) -> List[Account]:
    return store.list_accounts(approved)


def approve_account(store: CredentialStore, account_id: int, approver_id: int) -> Account:
    """Approve an account. Approving twice leaves the first stamp in place."""

    if account_id <= 0:
        raise BadRequestError("Invalid id")
    account = store.set_approved(account_id, approver_id)
    logger.info(
        "account_approved",
        account_id=account.id,
        approved_by=account.approved_by,
        requested_by=approver_id,
    )
    return account


__all__ = [
    "PendingApproval",
    "approve_account",
    "gate",
    "list_accounts",
    "require_admin_role",
]

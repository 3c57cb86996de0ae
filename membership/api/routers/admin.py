"""Administrator account management."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from ...services import approval
from ...services.accounts import account_admin_row
from ...services.store import CredentialStore
from ..deps import SessionContext, get_store, require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
def list_users(
    approved: Optional[bool] = None,
    context: SessionContext = Depends(require_admin),
    store: CredentialStore = Depends(get_store),
):
    """List accounts, newest first, optionally filtered by approval state."""

    return [account_admin_row(a) for a in approval.list_accounts(store, approved)]


@router.post("/users/{account_id}/approve")
def approve_user(
    account_id: int,
    context: SessionContext = Depends(require_admin),
    store: CredentialStore = Depends(get_store),
):
    account = approval.approve_account(store, account_id, context.account.id)
    return {"ok": True, "id": account.id}


__all__ = ["router"]

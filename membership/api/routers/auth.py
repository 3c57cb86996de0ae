"""Password authentication routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from ...services import accounts
from ...services.store import CredentialStore
from ...services.tokens import TokenIssuer
from ..deps import (
    SessionContext,
    device_id_header,
    get_store,
    get_token_issuer,
    require_session,
)
from ..schemas import LoginRequest, RegisterRequest

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register")
def register(body: RegisterRequest, store: CredentialStore = Depends(get_store)):
    """Create an account that waits for administrator approval."""

    return accounts.register(store, body.email, body.password).to_dict()


@router.post("/login")
def login(
    body: LoginRequest,
    device_id: Optional[str] = Depends(device_id_header),
    store: CredentialStore = Depends(get_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Log in and take over the account's single active session."""

    result = accounts.login(store, issuer, body.email, body.password, device_id)
    return result.to_dict()


@router.get("/me")
def me(
    context: SessionContext = Depends(require_session),
    store: CredentialStore = Depends(get_store),
):
    account = accounts.get_profile(store, context.claims.account_id)
    return accounts.account_profile(account)


@router.post("/logout")
def logout(
    context: SessionContext = Depends(require_session),
    store: CredentialStore = Depends(get_store),
):
    """End every session of the account, on every device."""

    accounts.logout_everywhere(store, context.account.id)
    return {"ok": True}


__all__ = ["router"]

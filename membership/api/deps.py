"""FastAPI dependencies: store, token issuer, session guard."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from ..core import (
    FRONTEND_ORIGIN,
    JWT_SECRET,
    LINK_STATE_TTL_SECONDS,
    TOKEN_TTL_SECONDS,
    get_session,
)
from ..models import Account
from ..services.approval import require_admin_role
from ..services.errors import UnauthorizedError
from ..services.linking import IdentityLinker
from ..services.sessions import check_session
from ..services.store import CredentialStore, SqlCredentialStore
from ..services.tokens import TokenClaims, TokenIssuer
from ..services.wechat import WeChatClient, WeChatSettings

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionContext:
    claims: TokenClaims
    account: Account


def get_store(session: Session = Depends(get_session)) -> CredentialStore:
    return SqlCredentialStore(session)


@lru_cache(maxsize=1)
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(JWT_SECRET, ttl=timedelta(seconds=TOKEN_TTL_SECONDS))


def get_wechat_client() -> WeChatClient:
    return WeChatClient(WeChatSettings.from_env())


def get_linker(
    store: CredentialStore = Depends(get_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
    client: WeChatClient = Depends(get_wechat_client),
) -> IdentityLinker:
    return IdentityLinker(
        store,
        issuer,
        client,
        state_ttl=timedelta(seconds=LINK_STATE_TTL_SECONDS),
        trusted_origin=FRONTEND_ORIGIN,
    )


def device_id_header(x_device_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_device_id


def require_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Unauthorized")
    return issuer.verify(credentials.credentials)


def require_session(
    claims: TokenClaims = Depends(require_claims),
    device_id: Optional[str] = Depends(device_id_header),
    store: CredentialStore = Depends(get_store),
) -> SessionContext:
    account = check_session(store, claims, device_id)
    return SessionContext(claims=claims, account=account)


def require_admin(context: SessionContext = Depends(require_session)) -> SessionContext:
    require_admin_role(context.claims)
    return context


__all__ = [
    "SessionContext",
    "device_id_header",
    "get_linker",
    "get_store",
    "get_token_issuer",
    "get_wechat_client",
    "require_admin",
    "require_claims",
    "require_session",
]

"""Third-party account linking.

``start`` records a single-use CSRF state and hands back the provider URL.
``callback`` consumes that state, exchanges the code, links or creates the
account, and then goes through the same approval gate and session issuance
as password login.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from ..core.passwords import unusable_password_hash
from ..core.time import as_utc, utcnow
from ..logging import get_logger
from ..models import Account
from .accounts import LoginResult, open_session
from .errors import BadRequestError, ConflictError, ProviderIntegrationError
from .sessions import normalize_device_id
from .store import CredentialStore
from .tokens import TokenIssuer
from .wechat import ProviderProfile, ProviderToken, WeChatClient

logger = get_logger(__name__)

LINKED_PENDING_MESSAGE = "WeChat linked. Waiting for administrator approval."
DEFAULT_REDIRECT = "/"


class Enrichment(str, Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class LinkStart:
    url: str
    state: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "state": self.state}


@dataclass(frozen=True)
class LinkResult:
    outcome: LoginResult
    redirect: str
    enrichment: Enrichment
    created: bool

    def to_dict(self) -> Dict[str, Any]:
        body = self.outcome.to_dict()
        body["redirect"] = self.redirect
        return body


def safe_redirect(target: Optional[str], trusted_origin: str = "") -> str:
    """Keep relative paths and URLs under the trusted origin; drop the rest."""

    target = (target or "").strip()
    if not target or "\\" in target:
        return DEFAULT_REDIRECT
    parts = urlsplit(target)
    if not parts.scheme and not parts.netloc:
        if target.startswith("/") and not target.startswith("//"):
            return target
        return DEFAULT_REDIRECT
    if trusted_origin:
        trusted = urlsplit(trusted_origin)
        if (parts.scheme.lower(), parts.netloc.lower()) == (
            trusted.scheme.lower(),
            trusted.netloc.lower(),
        ):
            return target
    return DEFAULT_REDIRECT


def placeholder_email(openid: str, unionid: Optional[str]) -> str:
    return f"wx_{unionid or openid}@wx.local"


class IdentityLinker:
    def __init__(
        self,
        store: CredentialStore,
        issuer: TokenIssuer,
        client: WeChatClient,
        *,
        state_ttl: timedelta = timedelta(minutes=10),
        trusted_origin: str = "",
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.client = client
        self.state_ttl = state_ttl
        self.trusted_origin = trusted_origin

    def _require_configured(self) -> None:
        if not self.client.settings.configured:
            raise BadRequestError("WeChat not configured")

    def start(self, redirect: Optional[str] = None) -> LinkStart:
        self._require_configured()
        self.store.purge_link_states(utcnow() - self.state_ttl)

        state = secrets.token_hex(16)
        self.store.save_link_state(
            state=state,
            provider=self.client.provider,
            redirect_to=safe_redirect(redirect, self.trusted_origin),
        )
        logger.info("link_started", provider=self.client.provider)
        return LinkStart(url=self.client.authorize_url(state), state=state)

    async def callback(
        self, code: Optional[str], state: Optional[str], device_id: Optional[str]
    ) -> LinkResult:
        device_id = normalize_device_id(device_id)
        if not code or not state:
            raise BadRequestError("Missing code/state")
        self._require_configured()

        saved = self.store.consume_link_state(state, self.client.provider)
        if saved is None:
            logger.warning("link_state_rejected", reason="unknown_or_used")
            raise BadRequestError("Invalid state")
        if as_utc(saved.created_at) < utcnow() - self.state_ttl:
            logger.warning("link_state_rejected", reason="expired")
            raise BadRequestError("Invalid state")

        try:
            token = await self.client.exchange_code(code)
        except ProviderIntegrationError:
            logger.warning("link_exchange_failed", provider=self.client.provider)
            raise

        profile, enrichment = await self._enrich(token)
        account, created = self._resolve_account(token, profile)
        outcome = open_session(
            self.store,
            self.issuer,
            account,
            device_id,
            pending_message=LINKED_PENDING_MESSAGE,
        )
        logger.info(
            "link_completed",
            account_id=account.id,
            created=created,
            enrichment=enrichment.value,
        )
        return LinkResult(
            outcome=outcome,
            redirect=saved.redirect_to or DEFAULT_REDIRECT,
            enrichment=enrichment,
            created=created,
        )

    async def _enrich(self, token: ProviderToken) -> Tuple[ProviderProfile, Enrichment]:
        try:
            return await self.client.fetch_profile(token), Enrichment.OK
        except ProviderIntegrationError as exc:
            logger.warning("link_enrichment_failed", error=str(exc))
            return ProviderProfile(), Enrichment.FAILED

    def _resolve_account(
        self, token: ProviderToken, profile: ProviderProfile
    ) -> Tuple[Account, bool]:
        existing = self.store.find_by_provider_identity(token.openid, token.unionid)
        if existing is not None:
            account = self.store.refresh_provider_profile(
                existing.id,
                openid=token.openid,
                unionid=token.unionid,
                nickname=profile.nickname,
                avatar=profile.avatar,
            )
            return account, False

        email = placeholder_email(token.openid, token.unionid)
        if self.store.find_by_email(email):
            email = _fallback_email(token.openid)
        try:
            return self._create_linked(email, token, profile), True
        except ConflictError:
            # A concurrent callback for the same identity created it first.
            existing = self.store.find_by_provider_identity(token.openid, token.unionid)
            if existing is not None:
                return existing, False
        # Another identity took the placeholder email in the meantime.
        logger.info("link_email_collision", openid=token.openid)
        return self._create_linked(_fallback_email(token.openid), token, profile), True

    def _create_linked(
        self, email: str, token: ProviderToken, profile: ProviderProfile
    ) -> Account:
        return self.store.create_account(
            email=email,
            password_hash=unusable_password_hash(),
            wechat_openid=token.openid,
            wechat_unionid=token.unionid,
            wechat_nickname=profile.nickname,
            wechat_avatar=profile.avatar,
        )


def _fallback_email(openid: str) -> str:
    return f"wx_{openid}_{int(time.time() * 1000)}@wx.local"


__all__ = [
    "DEFAULT_REDIRECT",
    "Enrichment",
    "IdentityLinker",
    "LINKED_PENDING_MESSAGE",
    "LinkResult",
    "LinkStart",
    "placeholder_email",
    "safe_redirect",
]

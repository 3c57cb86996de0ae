"""WeChat OAuth client: authorization URL, code exchange and profile lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

from ..core.config import (
    PROVIDER_TIMEOUT_SECONDS,
    WECHAT_APPID,
    WECHAT_PLATFORM,
    WECHAT_REDIRECT,
    WECHAT_SECRET,
)
from ..logging import get_logger
from .errors import ProviderIntegrationError

logger = get_logger(__name__)

PROVIDER_NAME = "wechat"

AUTHORIZE_URLS = {
    "qr": "https://open.weixin.qq.com/connect/qrconnect",
    "mp": "https://open.weixin.qq.com/connect/oauth2/authorize",
}
SCOPES = {"qr": "snsapi_login", "mp": "snsapi_userinfo"}
TOKEN_URL = "https://api.weixin.qq.com/sns/oauth2/access_token"
USERINFO_URL = "https://api.weixin.qq.com/sns/userinfo"


@dataclass(frozen=True)
class WeChatSettings:
    appid: str = ""
    secret: str = ""
    redirect_uri: str = ""
    platform: str = "qr"
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.appid and self.secret and self.redirect_uri)

    @classmethod
    def from_env(cls) -> "WeChatSettings":
        return cls(
            appid=WECHAT_APPID,
            secret=WECHAT_SECRET,
            redirect_uri=WECHAT_REDIRECT,
            platform=WECHAT_PLATFORM,
            timeout=float(PROVIDER_TIMEOUT_SECONDS),
        )


@dataclass(frozen=True)
class ProviderToken:
    access_token: str
    openid: str
    unionid: Optional[str] = None


@dataclass(frozen=True)
class ProviderProfile:
    nickname: Optional[str] = None
    avatar: Optional[str] = None


class WeChatClient:
    provider = PROVIDER_NAME

    def __init__(
        self,
        settings: WeChatSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def authorize_url(self, state: str) -> str:
        platform = self.settings.platform
        query = urlencode(
            {
                "appid": self.settings.appid,
                "redirect_uri": self.settings.redirect_uri,
                "response_type": "code",
                "scope": SCOPES[platform],
                "state": state,
            },
            quote_via=quote,
        )
        return f"{AUTHORIZE_URLS[platform]}?{query}#wechat_redirect"

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderIntegrationError("WeChat request timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderIntegrationError("WeChat request failed") from exc
        if not isinstance(payload, dict):
            raise ProviderIntegrationError("WeChat returned an unexpected payload")
        return payload

    async def exchange_code(self, code: str) -> ProviderToken:
        payload = await self._get_json(
            TOKEN_URL,
            {
                "appid": self.settings.appid,
                "secret": self.settings.secret,
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        access_token = payload.get("access_token")
        openid = payload.get("openid")
        if not access_token or not openid:
            logger.warning(
                "provider_token_failed",
                errcode=payload.get("errcode"),
                errmsg=payload.get("errmsg"),
            )
            raise ProviderIntegrationError("WeChat token failed")
        return ProviderToken(
            access_token=str(access_token),
            openid=str(openid),
            unionid=str(payload["unionid"]) if payload.get("unionid") else None,
        )

    async def fetch_profile(self, token: ProviderToken) -> ProviderProfile:
        payload = await self._get_json(
            USERINFO_URL,
            {"access_token": token.access_token, "openid": token.openid},
        )
        if payload.get("errcode"):
            raise ProviderIntegrationError(f"WeChat userinfo failed: {payload.get('errcode')}")
        nickname = payload.get("nickname")
        avatar = payload.get("headimgurl")
        return ProviderProfile(
            nickname=str(nickname) if nickname else None,
            avatar=str(avatar) if avatar else None,
        )


__all__ = [
    "AUTHORIZE_URLS",
    "PROVIDER_NAME",
    "ProviderProfile",
    "ProviderToken",
    "TOKEN_URL",
    "USERINFO_URL",
    "WeChatClient",
    "WeChatSettings",
]

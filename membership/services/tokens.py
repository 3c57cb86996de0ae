"""Bearer token issuing and verification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from ..core.time import utcnow
from ..models import Account
from .errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    """Snapshot of an account at the moment the token was issued."""

    account_id: int
    role: str
    epoch: int
    issued_at: int
    expires_at: int


class TokenIssuer:
    def __init__(self, secret: str, ttl: timedelta = timedelta(days=7)) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.ttl = ttl

    def issue(self, account: Account) -> str:
        now = utcnow()
        payload: Dict[str, Any] = {
            "sub": str(account.id),
            "role": account.role,
            "epoch": account.session_epoch,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Return the embedded claims or raise a ``TokenError`` subclass."""

        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError("Malformed token") from exc

        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError("Token expired") from exc
        except JWTClaimsError as exc:
            raise MalformedTokenError("Token claims are invalid") from exc
        except JWTError as exc:
            raise InvalidSignatureError("Token signature invalid") from exc

        try:
            return TokenClaims(
                account_id=int(payload["sub"]),
                role=str(payload["role"]),
                epoch=int(payload["epoch"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedTokenError("Token is missing claims") from exc


__all__ = ["JWT_ALGORITHM", "TokenClaims", "TokenIssuer"]

"""Service-layer exceptions mapped to HTTP responses."""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for errors the API layer turns into a status code."""

    status_code: int = 500
    public_message: Optional[str] = None

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def client_message(self) -> str:
        return self.public_message or self.message


class BadRequestError(ServiceError):
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class SessionSupersededError(UnauthorizedError):
    """Token epoch is older than the account's live epoch."""

    public_message = "Session is no longer valid"


class DeviceMismatchError(UnauthorizedError):
    """Another device performed the most recent login."""

    public_message = "Session is no longer valid"


class TokenError(UnauthorizedError):
    public_message = "Invalid token"


class MalformedTokenError(TokenError):
    pass


class InvalidSignatureError(TokenError):
    pass


class ExpiredTokenError(TokenError):
    public_message = "Token expired"


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """A write would break a uniqueness rule."""

    status_code = 409


class ProviderIntegrationError(ServiceError):
    """The identity provider exchange failed; the flow must be restarted."""

    status_code = 502


class ServerError(ServiceError):
    status_code = 500
    public_message = "Server error"


__all__ = [
    "BadRequestError",
    "ConflictError",
    "DeviceMismatchError",
    "ExpiredTokenError",
    "ForbiddenError",
    "InvalidSignatureError",
    "MalformedTokenError",
    "NotFoundError",
    "ProviderIntegrationError",
    "ServerError",
    "ServiceError",
    "SessionSupersededError",
    "TokenError",
    "UnauthorizedError",
]

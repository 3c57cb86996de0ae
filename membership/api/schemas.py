"""Request bodies."""

from __future__ import annotations

from sqlmodel import SQLModel


class CredentialsRequest(SQLModel):
    email: str
    password: str


class RegisterRequest(CredentialsRequest):
    pass


class LoginRequest(CredentialsRequest):
    pass


class LinkCallbackRequest(SQLModel):
    code: str
    state: str


__all__ = ["LinkCallbackRequest", "LoginRequest", "RegisterRequest"]

"""Database model for third-party login CSRF states."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.time import utcnow


class LinkState(SQLModel, table=True):
    """Single-use proof that a provider redirect started here."""

    __tablename__ = "oauth_state"

    id: Optional[int] = Field(default=None, primary_key=True)
    provider: str
    state: str = Field(index=True, unique=True)
    redirect_to: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


__all__ = ["LinkState"]

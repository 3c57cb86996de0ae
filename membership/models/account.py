"""Database model for member accounts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.time import utcnow


class Role(str, Enum):
    NORMAL = "normal"
    PREMIUM = "premium"
    ADMIN = "admin"


class Account(SQLModel, table=True):
    """Identity, approval and session state of one member."""

    __tablename__ = "account"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: Optional[str] = Field(default=None, index=True, unique=True)
    password_hash: Optional[str] = None
    role: str = Field(default=Role.NORMAL.value)
    created_at: datetime = Field(default_factory=utcnow)

    approved: bool = Field(default=False, index=True)
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None

    wechat_openid: Optional[str] = Field(default=None, index=True, unique=True)
    wechat_unionid: Optional[str] = Field(default=None, index=True)
    wechat_nickname: Optional[str] = None
    wechat_avatar: Optional[str] = None

    # Bumped on every login; tokens carrying an older value are dead.
    session_epoch: int = Field(default=0, nullable=False)
    active_device_id: Optional[str] = None


__all__ = ["Account", "Role"]

"""Credential store: accounts and CSRF link states.

``CredentialStore`` is the interface the rest of the service talks to.
``SqlCredentialStore`` is backed by a SQLModel session and is what the API
uses; ``MemoryCredentialStore`` (see ``memory_store``) serves tests.

Uniqueness of email and provider user id is enforced here, as is the
atomic epoch bump in ``record_login``. Lookups return ``None`` for missing
rows; writes against a missing account raise ``NotFoundError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, func, select

from ..core.time import utcnow
from ..models import Account, LinkState, Role
from .errors import ConflictError, NotFoundError, ServerError


class CredentialStore(ABC):
    @abstractmethod
    def create_account(
        self,
        *,
        email: Optional[str],
        password_hash: Optional[str],
        role: str = Role.NORMAL.value,
        approved: bool = False,
        wechat_openid: Optional[str] = None,
        wechat_unionid: Optional[str] = None,
        wechat_nickname: Optional[str] = None,
        wechat_avatar: Optional[str] = None,
    ) -> Account:
        ...

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    @abstractmethod
    def find_by_provider_identity(
        self, openid: str, unionid: Optional[str] = None
    ) -> Optional[Account]:
        """Match on provider user id, falling back to the union id."""

    @abstractmethod
    def refresh_provider_profile(
        self,
        account_id: int,
        *,
        openid: Optional[str] = None,
        unionid: Optional[str] = None,
        nickname: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Account:
        """Fill empty identity fields and overwrite profile fields with non-null values."""

    @abstractmethod
    def record_login(self, account_id: int, device_id: str) -> Account:
        """Increment the session epoch and replace the active device in one step."""

    @abstractmethod
    def clear_session(self, account_id: int) -> Account:
        """Increment the session epoch and forget the active device."""

    @abstractmethod
    def set_approved(self, account_id: int, approver_id: Optional[int]) -> Account:
        ...

    @abstractmethod
    def list_accounts(self, approved: Optional[bool] = None) -> List[Account]:
        ...

    @abstractmethod
    def save_link_state(
        self, *, state: str, provider: str, redirect_to: Optional[str]
    ) -> LinkState:
        ...

    @abstractmethod
    def consume_link_state(self, state: str, provider: str) -> Optional[LinkState]:
        """Delete and return the state row, or ``None`` if it is gone already."""

    @abstractmethod
    def purge_link_states(self, older_than: datetime) -> int:
        ...


class SqlCredentialStore(CredentialStore):
    def __init__(self, session: Session) -> None:
        self.session = session

    def _commit_new(self, obj, conflict_message: str):
        self.session.add(obj)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(conflict_message) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise ServerError("Storage write failed") from exc
        self.session.refresh(obj)
        return obj

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise ServerError("Storage write failed") from exc

    def create_account(
        self,
        *,
        email: Optional[str],
        password_hash: Optional[str],
        role: str = Role.NORMAL.value,
        approved: bool = False,
        wechat_openid: Optional[str] = None,
        wechat_unionid: Optional[str] = None,
        wechat_nickname: Optional[str] = None,
        wechat_avatar: Optional[str] = None,
    ) -> Account:
        account = Account(
            email=email,
            password_hash=password_hash,
            role=role,
            approved=approved,
            approved_at=utcnow() if approved else None,
            wechat_openid=wechat_openid,
            wechat_unionid=wechat_unionid,
            wechat_nickname=wechat_nickname,
            wechat_avatar=wechat_avatar,
        )
        return self._commit_new(account, "Account already exists")

    def get_account(self, account_id: int) -> Optional[Account]:
        return self.session.get(Account, account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        normalized = (email or "").strip().lower()
        return self.session.exec(
            select(Account).where(func.lower(Account.email) == normalized)
        ).first()

    def find_by_provider_identity(
        self, openid: str, unionid: Optional[str] = None
    ) -> Optional[Account]:
        account = self.session.exec(
            select(Account).where(Account.wechat_openid == openid)
        ).first()
        if account is None and unionid:
            account = self.session.exec(
                select(Account)
                .where(Account.wechat_unionid == unionid)
                .order_by(Account.id)
            ).first()
        return account

    def refresh_provider_profile(
        self,
        account_id: int,
        *,
        openid: Optional[str] = None,
        unionid: Optional[str] = None,
        nickname: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        changed = False
        if openid and not account.wechat_openid:
            account.wechat_openid = openid
            changed = True
        if unionid and not account.wechat_unionid:
            account.wechat_unionid = unionid
            changed = True
        if nickname and account.wechat_nickname != nickname:
            account.wechat_nickname = nickname
            changed = True
        if avatar and account.wechat_avatar != avatar:
            account.wechat_avatar = avatar
            changed = True
        if changed:
            self._commit_new(account, "Provider identity already linked")
        return account

    def _bump_epoch(self, account_id: int, device_id: Optional[str]) -> Account:
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(
                session_epoch=Account.session_epoch + 1,
                active_device_id=device_id,
            )
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise NotFoundError("Account not found")
        # Read back while the row is still locked by this transaction, then
        # detach so the returned values are exactly the ones written here.
        account = self.session.get(Account, account_id, populate_existing=True)
        self.session.expunge(account)
        self._commit()
        return account

    def record_login(self, account_id: int, device_id: str) -> Account:
        return self._bump_epoch(account_id, device_id)

    def clear_session(self, account_id: int) -> Account:
        return self._bump_epoch(account_id, None)

    def set_approved(self, account_id: int, approver_id: Optional[int]) -> Account:
        self.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.approved == False)  # noqa: E712
            .values(approved=True, approved_at=utcnow(), approved_by=approver_id)
        )
        account = self.session.get(Account, account_id, populate_existing=True)
        if account is None:
            self.session.rollback()
            raise NotFoundError("User not found")
        self._commit()
        self.session.refresh(account)
        return account

    def list_accounts(self, approved: Optional[bool] = None) -> List[Account]:
        query = select(Account).order_by(Account.id.desc())
        if approved is not None:
            query = query.where(Account.approved == approved)
        return list(self.session.exec(query).all())

    def save_link_state(
        self, *, state: str, provider: str, redirect_to: Optional[str]
    ) -> LinkState:
        link_state = LinkState(state=state, provider=provider, redirect_to=redirect_to)
        return self._commit_new(link_state, "State already exists")

    def consume_link_state(self, state: str, provider: str) -> Optional[LinkState]:
        saved = self.session.exec(
            select(LinkState).where(
                LinkState.state == state, LinkState.provider == provider
            )
        ).first()
        if saved is None:
            return None
        result = self.session.execute(delete(LinkState).where(LinkState.id == saved.id))
        if result.rowcount != 1:
            # A concurrent callback deleted it first.
            self.session.rollback()
            return None
        self.session.expunge(saved)
        self._commit()
        return saved

    def purge_link_states(self, older_than: datetime) -> int:
        result = self.session.execute(
            delete(LinkState).where(LinkState.created_at < older_than)
        )
        self._commit()
        return result.rowcount or 0


__all__ = ["CredentialStore", "SqlCredentialStore"]

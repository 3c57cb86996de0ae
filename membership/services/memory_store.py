"""In-process credential store used by tests and local tooling."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional

from ..core.time import as_utc, utcnow
from ..models import Account, LinkState, Role
from .errors import ConflictError, NotFoundError
from .store import CredentialStore


def _copy_account(account: Account) -> Account:
    return Account(**account.model_dump())


class MemoryCredentialStore(CredentialStore):
    """Dict-backed store; one lock serializes every mutation."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._accounts: Dict[int, Account] = {}
        self._states: Dict[str, LinkState] = {}
        self._next_id = 1

    def _find(self, predicate) -> Optional[Account]:
        for account in sorted(self._accounts.values(), key=lambda a: a.id):
            if predicate(account):
                return account
        return None

    def _require(self, account_id: int) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

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
        with self._lock:
            if email and self._find(lambda a: (a.email or "").lower() == email.lower()):
                raise ConflictError("Account already exists")
            if wechat_openid and self._find(lambda a: a.wechat_openid == wechat_openid):
                raise ConflictError("Account already exists")
            account = Account(
                id=self._next_id,
                email=email,
                password_hash=password_hash,
                role=role,
                approved=approved,
                approved_at=utcnow() if approved else None,
                wechat_openid=wechat_openid,
                wechat_unionid=wechat_unionid,
                wechat_nickname=wechat_nickname,
                wechat_avatar=wechat_avatar,
                session_epoch=0,
            )
            self._accounts[account.id] = account
            self._next_id += 1
            return _copy_account(account)

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return _copy_account(account) if account else None

    def find_by_email(self, email: str) -> Optional[Account]:
        normalized = (email or "").strip().lower()
        with self._lock:
            account = self._find(lambda a: (a.email or "").lower() == normalized)
            return _copy_account(account) if account else None

    def find_by_provider_identity(
        self, openid: str, unionid: Optional[str] = None
    ) -> Optional[Account]:
        with self._lock:
            account = self._find(lambda a: a.wechat_openid == openid)
            if account is None and unionid:
                account = self._find(lambda a: a.wechat_unionid == unionid)
            return _copy_account(account) if account else None

    def refresh_provider_profile(
        self,
        account_id: int,
        *,
        openid: Optional[str] = None,
        unionid: Optional[str] = None,
        nickname: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Account:
        with self._lock:
            account = self._require(account_id)
            if openid and not account.wechat_openid:
                if self._find(lambda a: a.wechat_openid == openid):
                    raise ConflictError("Provider identity already linked")
                account.wechat_openid = openid
            if unionid and not account.wechat_unionid:
                account.wechat_unionid = unionid
            if nickname:
                account.wechat_nickname = nickname
            if avatar:
                account.wechat_avatar = avatar
            return _copy_account(account)

    def record_login(self, account_id: int, device_id: str) -> Account:
        with self._lock:
            account = self._require(account_id)
            account.session_epoch += 1
            account.active_device_id = device_id
            return _copy_account(account)

    def clear_session(self, account_id: int) -> Account:
        with self._lock:
            account = self._require(account_id)
            account.session_epoch += 1
            account.active_device_id = None
            return _copy_account(account)

    def set_approved(self, account_id: int, approver_id: Optional[int]) -> Account:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise NotFoundError("User not found")
            if not account.approved:
                account.approved = True
                account.approved_at = utcnow()
                account.approved_by = approver_id
            return _copy_account(account)

    def list_accounts(self, approved: Optional[bool] = None) -> List[Account]:
        with self._lock:
            rows = sorted(self._accounts.values(), key=lambda a: a.id, reverse=True)
            if approved is not None:
                rows = [a for a in rows if a.approved == approved]
            return [_copy_account(a) for a in rows]

    def save_link_state(
        self, *, state: str, provider: str, redirect_to: Optional[str]
    ) -> LinkState:
        with self._lock:
            if state in self._states:
                raise ConflictError("State already exists")
            link_state = LinkState(
                id=len(self._states) + 1,
                state=state,
                provider=provider,
                redirect_to=redirect_to,
                created_at=utcnow(),
            )
            self._states[state] = link_state
            return link_state

    def consume_link_state(self, state: str, provider: str) -> Optional[LinkState]:
        with self._lock:
            saved = self._states.get(state)
            if saved is None or saved.provider != provider:
                return None
            return self._states.pop(state)

    def purge_link_states(self, older_than: datetime) -> int:
        with self._lock:
            stale = [
                key
                for key, value in self._states.items()
                if as_utc(value.created_at) < older_than
            ]
            for key in stale:
                del self._states[key]
            return len(stale)


__all__ = ["MemoryCredentialStore"]

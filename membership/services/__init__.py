"""Service layer helpers."""

from .accounts import SessionGrant, login, open_session, register
from .approval import PendingApproval, approve_account, list_accounts
from .linking import IdentityLinker, LinkResult, LinkStart
from .memory_store import MemoryCredentialStore
from .sessions import check_session
from .store import CredentialStore, SqlCredentialStore
from .tokens import TokenClaims, TokenIssuer
from .wechat import WeChatClient, WeChatSettings

__all__ = [
    "CredentialStore",
    "IdentityLinker",
    "LinkResult",
    "LinkStart",
    "MemoryCredentialStore",
    "PendingApproval",
    "SessionGrant",
    "SqlCredentialStore",
    "TokenClaims",
    "TokenIssuer",
    "WeChatClient",
    "WeChatSettings",
    "approve_account",
    "check_session",
    "list_accounts",
    "login",
    "open_session",
    "register",
]

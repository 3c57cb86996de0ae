"""Database model exports."""

from .account import Account, Role
from .link_state import LinkState

__all__ = [
    "Account",
    "LinkState",
    "Role",
]

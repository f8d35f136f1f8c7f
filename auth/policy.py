"""
auth/policy.py -- Admin set and ownership policy for destructive operations.

AdminSet is built once at startup from Settings.admin_users and passed
explicitly to whoever needs it (login, the delete route). It is immutable,
so concurrent requests can share it without locking.

can_delete() is a pure decision function. Callers must fetch the target
resource first and pass the owner recorded on it -- never an owner claimed
by the client -- then call authorize_delete() before issuing the delete.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import Identity
from core.errors import AuthorizationError


class AdminSet:
    """Case-insensitive, read-only set of admin usernames."""

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names = frozenset(n.strip().lower() for n in names if n and n.strip())

    @classmethod
    def from_csv(cls, raw: str) -> AdminSet:
        """Build from a comma-separated list, e.g. "alice, Bob,carol"."""
        return cls(raw.split(","))

    def __contains__(self, username: object) -> bool:
        return isinstance(username, str) and username.strip().lower() in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"AdminSet({sorted(self._names)!r})"


def can_delete(resource_owner: str, identity: Identity) -> bool:
    """True iff the caller owns the resource or is an admin."""
    return identity.is_admin or resource_owner == identity.username


def authorize_delete(resource_owner: str, identity: Identity) -> None:
    """Raise AuthorizationError unless can_delete() allows the caller."""
    if not can_delete(resource_owner, identity):
        raise AuthorizationError("You can only delete your own posts.")

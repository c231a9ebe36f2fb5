from __future__ import annotations

from typing import Protocol

"""Identity collaborator contract.

The importer never reads session state itself: the caller resolves the user
once and passes the id (or None) into run_import().
"""

__all__ = [
    "NotAuthenticatedError",
    "Identity",
    "StaticIdentity",
    "require_user_id",
]


class NotAuthenticatedError(Exception):
    """Raised when a user-scoped import runs without a signed-in user."""


class Identity(Protocol):
    def current_user_id(self) -> str | None: ...


class StaticIdentity:
    """Identity resolved up front (CLI flag / env / config)."""

    def __init__(self, user_id: str | None) -> None:
        self._user_id = user_id.strip() if user_id and user_id.strip() else None

    def current_user_id(self) -> str | None:
        return self._user_id


def require_user_id(user_id: str | None) -> str:
    if not user_id:
        raise NotAuthenticatedError("a signed-in user is required to import this entity")
    return user_id

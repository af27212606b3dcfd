"""Current-principal lookup used by the map service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IdentityProvider(Protocol):
    """Supplies the authenticated principal's opaque id, or None."""

    def current_user_id(self) -> str | None: ...


class StaticIdentity:
    """Fixed principal, or none when constructed without a user id."""

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id

    def current_user_id(self) -> str | None:
        return self._user_id

    def sign_out(self) -> None:
        self._user_id = None

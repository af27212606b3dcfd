"""Per-user map sessions held by the web application."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from relmap.auth.identity import StaticIdentity
from relmap.core.config import Settings
from relmap.interaction.controller import InteractionController
from relmap.mapping.service import KnowledgeMapService
from relmap.repositories.protocols import KnowledgeRepository


@dataclass
class MapSession:
    identity: StaticIdentity
    service: KnowledgeMapService
    controller: InteractionController


class MapSessionRegistry:
    """Creates one map session per signed-in user and loads it once."""

    def __init__(self, repository: KnowledgeRepository, settings: Settings | None = None) -> None:
        self._repository = repository
        self._settings = settings or Settings()
        self._sessions: dict[str, MapSession] = {}
        self._loading: dict[str, asyncio.Lock] = {}

    async def get(self, user_id: str) -> MapSession:
        """Return the user's session, creating and loading it on first use.

        Only concurrent first requests of the same user wait for its load.
        """
        session = self._sessions.get(user_id)
        if session is not None:
            return session
        lock = self._loading.setdefault(user_id, asyncio.Lock())
        async with lock:
            session = self._sessions.get(user_id)
            if session is None:
                identity = StaticIdentity(user_id)
                service = KnowledgeMapService(identity, self._repository, settings=self._settings)
                session = MapSession(
                    identity=identity,
                    service=service,
                    controller=InteractionController(service),
                )
                await service.load()
                self._sessions[user_id] = session
            return session

    def drop(self, user_id: str) -> bool:
        self._loading.pop(user_id, None)
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.identity.sign_out()
        session.service.sign_out()
        return True

    @property
    def count(self) -> int:
        return len(self._sessions)

"""Sync adapter: replays graph store mutations against the table service.

Local mutations are applied first and queued here as ``MutationEvent``
objects. The adapter consumes the queue in order; each remote call may
fail on its own without touching local state. Failures are logged,
surfaced as user notifications and never rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from relmap.core.config import SyncConfig
from relmap.core.errors import RemoteSyncError
from relmap.graph.events import MutationEvent, MutationKind
from relmap.graph.models import Person, Relation
from relmap.notifications.center import NotificationCenter
from relmap.repositories import resolve
from relmap.repositories.protocols import KnowledgeRepository

logger = logging.getLogger(__name__)


class SyncReport(BaseModel):
    """Outcome of one drain of the outbound queue."""

    processed: int = 0
    failures: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class LoadResult(BaseModel):
    """Bulk load outcome. A table that failed to load is ``None``."""

    persons: list[Person] | None = None
    relations: list[Relation] | None = None

    @property
    def complete(self) -> bool:
        return self.persons is not None and self.relations is not None


class SyncAdapter:
    """Consumes the outbound mutation queue of one graph store."""

    def __init__(
        self,
        repository: KnowledgeRepository,
        notifier: NotificationCenter | None = None,
        config: SyncConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._config = config or SyncConfig()
        self._sleep = sleep
        self._queue: deque[MutationEvent] = deque()
        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, event: MutationEvent) -> None:
        """Graph store listener: queue the event, never blocking the caller."""
        self._queue.append(event)
        self._wakeup.set()

    # -- Background worker --

    def start(self) -> None:
        """Drain continuously in a background task on the running loop."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.drain()

    # -- Draining --

    async def drain(self) -> SyncReport:
        """Replay every queued event in order."""
        report = SyncReport()
        async with self._lock:
            while self._queue:
                event = self._queue.popleft()
                report.failures.extend(await self._dispatch(event))
                report.processed += 1
        return report

    async def _dispatch(self, event: MutationEvent) -> list[str]:
        owner = event.owner_id
        repo = self._repository
        kind = event.kind

        if kind == MutationKind.PERSON_ADDED:
            return await self._run_calls(
                "Impossible d'ajouter la personne",
                [("insert person", lambda: repo.insert_person(event.person))],
            )
        if kind in (MutationKind.PERSON_UPDATED, MutationKind.PERSON_MOVED):
            title = (
                "Impossible de modifier la personne"
                if kind == MutationKind.PERSON_UPDATED
                else "Impossible d'enregistrer la position"
            )
            return await self._run_calls(
                title,
                [("update person", lambda: repo.update_person(event.entity_id, owner, event.changes))],
            )
        if kind == MutationKind.PERSON_DELETED:
            # Both deletes are attempted even if one fails; the local
            # cascade stays applied and a later reload repairs orphans.
            return await self._run_calls(
                "Impossible de supprimer la personne",
                [
                    ("delete person", lambda: repo.delete_person(event.entity_id, owner)),
                    (
                        "delete person relations",
                        lambda: repo.delete_relations_for_person(event.entity_id, owner),
                    ),
                ],
                concurrent=True,
            )
        if kind == MutationKind.RELATION_ADDED:
            return await self._run_calls(
                "Impossible d'ajouter le lien",
                [("insert relation", lambda: repo.insert_relation(event.relation))],
            )
        if kind == MutationKind.RELATION_UPDATED:
            return await self._run_calls(
                "Impossible de modifier le lien",
                [("update relation", lambda: repo.update_relation(event.entity_id, owner, event.changes))],
            )
        if kind == MutationKind.RELATION_DELETED:
            return await self._run_calls(
                "Impossible de supprimer le lien",
                [("delete relation", lambda: repo.delete_relation(event.entity_id, owner))],
            )
        if kind == MutationKind.GRAPH_CLEARED:
            return await self._run_calls(
                "Impossible de réinitialiser les données",
                self._bulk_delete_calls(event.removed_relation_ids, event.removed_person_ids, owner),
            )
        if kind == MutationKind.GRAPH_REPLACED:
            return await self._replace(event)

        logger.warning("Ignoring unknown mutation kind %s", kind)
        return []

    async def _replace(self, event: MutationEvent) -> list[str]:
        owner = event.owner_id
        repo = self._repository
        # New ids are deleted too so that re-inserting them cannot collide
        # with stale rows already in the table.
        relation_ids = set(event.removed_relation_ids) | {r.id for r in event.relations}
        person_ids = set(event.removed_person_ids) | {p.id for p in event.persons}
        calls = self._bulk_delete_calls(sorted(relation_ids), sorted(person_ids), owner)
        calls += [
            (f"insert person {p.id}", lambda p=p: repo.insert_person(p))
            for p in event.persons
        ]
        calls += [
            (f"insert relation {r.id}", lambda r=r: repo.insert_relation(r))
            for r in event.relations
        ]
        return await self._run_calls("Synchronisation de l'import incomplète", calls)

    def _bulk_delete_calls(
        self, relation_ids: list[str], person_ids: list[str], owner: str
    ) -> list[tuple[str, Callable[[], Any]]]:
        calls: list[tuple[str, Callable[[], Any]]] = []
        if relation_ids:
            calls.append(("delete relations", lambda: self._repository.delete_relations(relation_ids, owner)))
        if person_ids:
            calls.append(("delete persons", lambda: self._repository.delete_persons(person_ids, owner)))
        return calls

    async def _run_calls(
        self,
        title: str,
        calls: list[tuple[str, Callable[[], Any]]],
        concurrent: bool = False,
    ) -> list[str]:
        """Run remote calls, collecting failures instead of raising."""
        if concurrent:
            outcomes = await asyncio.gather(
                *(self._call(name, fn) for name, fn in calls), return_exceptions=True
            )
        else:
            outcomes = []
            for name, fn in calls:
                try:
                    outcomes.append(await self._call(name, fn))
                except RemoteSyncError as exc:
                    outcomes.append(exc)

        failures = [str(o.detail or o.message) for o in outcomes if isinstance(o, RemoteSyncError)]
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, RemoteSyncError):
                raise outcome
        if failures and self._notifier is not None:
            description = title if len(failures) == 1 else f"{title} ({len(failures)} erreurs)"
            self._notifier.error("Erreur", description)
        return failures

    async def _call(self, name: str, fn: Callable[[], Any]) -> Any:
        """One remote call with the configured retry policy."""
        attempts = 1 + max(self._config.max_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                return await resolve(fn())
            except Exception as exc:
                if attempt < attempts:
                    logger.warning(
                        "Remote call %r failed (attempt %d/%d): %s", name, attempt, attempts, exc
                    )
                    await self._sleep(self._config.retry_backoff_seconds * attempt)
                    continue
                logger.error("Remote call %r failed after %d attempt(s): %s", name, attempts, exc)
                raise RemoteSyncError(
                    "Erreur de synchronisation", detail=f"{name}: {exc}"
                ) from exc

    # -- Bulk load --

    async def load(self, owner_id: str) -> LoadResult:
        """Fetch all rows owned by ``owner_id``; each table independently."""
        persons, relations = await asyncio.gather(
            self._call("select persons", lambda: self._repository.list_persons(owner_id)),
            self._call("select relations", lambda: self._repository.list_relations(owner_id)),
            return_exceptions=True,
        )
        result = LoadResult()
        if isinstance(persons, BaseException):
            self._report_load_failure(persons, "Impossible de charger les personnes")
        else:
            result.persons = persons
        if isinstance(relations, BaseException):
            self._report_load_failure(relations, "Impossible de charger les relations")
        else:
            result.relations = relations
        return result

    def _report_load_failure(self, exc: BaseException, description: str) -> None:
        if not isinstance(exc, RemoteSyncError):
            raise exc
        if self._notifier is not None:
            self._notifier.error("Erreur", description)

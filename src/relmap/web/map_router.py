"""FastAPI router for the knowledge map operations."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel

from relmap.auth.middleware import require_user
from relmap.core.types import PROXIMITY_ALL, PersonCategory, Proximity
from relmap.graph.models import PersonData
from relmap.web.sessions import MapSession

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class PositionRequest(BaseModel):
    x: float
    y: float


class RelationCreateRequest(BaseModel):
    source_id: str
    target_id: str
    proximity: Proximity = Proximity.MOYEN


class ProximityRequest(BaseModel):
    proximity: Proximity


class ConnectRequest(BaseModel):
    source_id: str | None = None
    target_id: str | None = None


async def current_session(request: Request, user_id: str = Depends(require_user)) -> MapSession:
    return await request.app.state.map_sessions.get(user_id)


def _schedule_sync(background_tasks: BackgroundTasks, session: MapSession) -> None:
    background_tasks.add_task(session.service.sync)


# --- Map view ---


@router.get("/api/map")
async def get_map(
    search: str = "",
    proximity: str = PROXIMITY_ALL,
    category: list[PersonCategory] | None = Query(default=None),
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    """Visible nodes and edges for the given filters."""
    if proximity != PROXIMITY_ALL and proximity not in set(Proximity):
        raise HTTPException(status_code=400, detail=f"Unknown proximity {proximity!r}")
    payload = session.service.render(
        search_term=search, proximity_filter=proximity, category_filter=category or []
    )
    pending = session.controller.pending
    payload["state"] = session.controller.state.value
    payload["pending_connection"] = pending.model_dump() if pending else None
    return payload


@router.post("/api/map/reload")
async def reload_map(session: MapSession = Depends(current_session)) -> dict[str, Any]:
    await session.service.load()
    return {"persons": len(session.service.persons), "relations": len(session.service.relations)}


# --- Persons ---


@router.get("/api/persons")
async def list_persons(session: MapSession = Depends(current_session)) -> list[dict[str, Any]]:
    return [p.model_dump(mode="json") for p in session.service.persons]


@router.post("/api/persons", status_code=201)
async def add_person(
    body: PersonData,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    person = session.service.add_person(body)
    _schedule_sync(background_tasks, session)
    return person.model_dump(mode="json")


@router.put("/api/persons/{person_id}")
async def update_person(
    person_id: str,
    body: PersonData,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    person = session.controller.save_person(person_id, body)
    _schedule_sync(background_tasks, session)
    return person.model_dump(mode="json")


@router.delete("/api/persons/{person_id}")
async def delete_person(
    person_id: str,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    removed = session.controller.remove_person(person_id)
    _schedule_sync(background_tasks, session)
    return {"deleted": person_id, "removed_relations": [r.id for r in removed]}


@router.put("/api/persons/{person_id}/position")
async def move_person(
    person_id: str,
    body: PositionRequest,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    person = session.controller.drag_end(person_id, body.x, body.y)
    _schedule_sync(background_tasks, session)
    return person.model_dump(mode="json")


# --- Relations ---


@router.get("/api/relations")
async def list_relations(session: MapSession = Depends(current_session)) -> list[dict[str, Any]]:
    return [r.model_dump(mode="json") for r in session.service.relations]


@router.post("/api/relations", status_code=201)
async def add_relation(
    body: RelationCreateRequest,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    relation = session.service.add_relation(body.source_id, body.target_id, body.proximity)
    _schedule_sync(background_tasks, session)
    return relation.model_dump(mode="json")


@router.patch("/api/relations/{relation_id}")
async def update_relation(
    relation_id: str,
    body: ProximityRequest,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    relation = session.controller.change_relation_proximity(relation_id, body.proximity)
    _schedule_sync(background_tasks, session)
    return relation.model_dump(mode="json")


@router.delete("/api/relations/{relation_id}")
async def delete_relation(
    relation_id: str,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    session.controller.remove_relation(relation_id)
    _schedule_sync(background_tasks, session)
    return {"deleted": relation_id}


# --- Canvas gestures ---


@router.post("/api/interaction/connect")
async def connect(
    body: ConnectRequest, session: MapSession = Depends(current_session)
) -> dict[str, Any]:
    pending = session.controller.connect(body.source_id, body.target_id)
    return {
        "state": session.controller.state.value,
        "pending_connection": pending.model_dump() if pending else None,
    }


@router.post("/api/interaction/proximity")
async def choose_proximity(
    body: ProximityRequest,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    relation = session.controller.choose_proximity(body.proximity)
    if relation is None:
        raise HTTPException(status_code=409, detail="Aucune connexion en attente")
    _schedule_sync(background_tasks, session)
    return relation.model_dump(mode="json")


@router.post("/api/interaction/cancel")
async def cancel_connection(session: MapSession = Depends(current_session)) -> dict[str, Any]:
    session.controller.cancel()
    return {"state": session.controller.state.value}


@router.get("/api/interaction/nodes/{person_id}")
async def click_node(person_id: str, session: MapSession = Depends(current_session)) -> dict[str, Any]:
    view = session.controller.click_node(person_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"Person {person_id!r} not found")
    return view.model_dump(mode="json")


@router.get("/api/interaction/edges/{relation_id}")
async def click_edge(relation_id: str, session: MapSession = Depends(current_session)) -> dict[str, Any]:
    view = session.controller.click_edge(relation_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"Relation {relation_id!r} not found")
    return view.model_dump(mode="json")


# --- Exchange ---


@router.get("/api/export")
async def export_document(session: MapSession = Depends(current_session)) -> Response:
    content = session.service.export_document()
    filename = session.service.codec.filename
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/api/import")
async def import_document(
    request: Request,
    background_tasks: BackgroundTasks,
    session: MapSession = Depends(current_session),
) -> dict[str, Any]:
    """Replace the map with an uploaded workbook (raw request body)."""
    imported = session.service.import_document(await request.body())
    _schedule_sync(background_tasks, session)
    return {
        "persons": len(imported.persons),
        "relations": len(imported.relations),
        "skipped_persons": imported.skipped_persons,
        "skipped_relations": imported.skipped_relations,
    }


@router.post("/api/reset")
async def reset_all(
    background_tasks: BackgroundTasks, session: MapSession = Depends(current_session)
) -> dict[str, Any]:
    session.service.reset_all()
    _schedule_sync(background_tasks, session)
    return {"reset": True}


@router.get("/api/notifications")
async def drain_notifications(session: MapSession = Depends(current_session)) -> list[dict[str, Any]]:
    return [n.model_dump(mode="json") for n in session.service.notifier.drain()]

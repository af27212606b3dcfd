"""FastAPI application for the relationship map.

Exposes the map operations over REST for the canvas front-end. Each
signed-in user gets an in-memory map session backed by the configured
table service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from relmap import __version__
from relmap.auth.middleware import AuthMiddleware
from relmap.auth.provider import AuthProvider, MockAuthProvider
from relmap.core.config import Settings
from relmap.core.errors import (
    AuthRequiredError,
    DocumentFormatError,
    EntityNotFoundError,
    KnowledgeMapError,
    ReferentialError,
    ValidationError,
)
from relmap.db.engine import DatabaseManager
from relmap.repositories.memory import InMemoryKnowledgeRepository
from relmap.repositories.postgres.knowledge import PostgresKnowledgeRepository
from relmap.repositories.protocols import KnowledgeRepository
from relmap.web.auth_router import router as auth_router
from relmap.web.map_router import router as map_router
from relmap.web.sessions import MapSessionRegistry

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[KnowledgeMapError], int] = {
    ValidationError: 400,
    AuthRequiredError: 401,
    EntityNotFoundError: 404,
    ReferentialError: 409,
    DocumentFormatError: 422,
}


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str = __version__
    backend: str


def _status_for(exc: KnowledgeMapError) -> int:
    for error_type, status in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(
    settings: Settings | None = None,
    repository: KnowledgeRepository | None = None,
    auth_provider: AuthProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. Defaults to Settings().
        repository: Optional pre-built table service. When omitted, a
            Postgres repository is used if ``settings.db.database_url``
            is set, else the in-memory one.
        auth_provider: Optional pre-built identity provider.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("relmap").setLevel(settings.log_level.upper())

    db_manager: DatabaseManager | None = None
    if repository is None:
        if settings.db.database_url:
            db_manager = DatabaseManager.from_config(settings.db)
            repository = PostgresKnowledgeRepository(db_manager)
        else:
            repository = InMemoryKnowledgeRepository()

    if auth_provider is None:
        auth_provider = MockAuthProvider(
            fixtures_path=settings.auth.fixtures_path,
            token_expiry_minutes=settings.auth.token_expiry_minutes,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if db_manager is not None:
            await db_manager.create_schema()
        yield
        if db_manager is not None:
            await db_manager.close()

    app = FastAPI(
        title="Relmap",
        description="Relationship mapping: persons, relations and proximity levels",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.repository = repository
    app.state.auth_provider = auth_provider
    app.state.map_sessions = MapSessionRegistry(repository, settings)
    if db_manager is not None:
        app.state.db_manager = db_manager

    app.add_middleware(AuthMiddleware)

    app.include_router(auth_router)
    app.include_router(map_router)

    @app.exception_handler(KnowledgeMapError)
    async def handle_map_error(request: Request, exc: KnowledgeMapError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error("Unhandled map error on %s: %s", request.url.path, exc.detail or exc.message)
        return JSONResponse(
            status_code=status,
            content={"title": exc.title, "detail": exc.message},
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        backend = "postgres" if isinstance(repository, PostgresKnowledgeRepository) else "memory"
        return HealthResponse(status="healthy", service="relmap", backend=backend)

    return app

"""Error taxonomy for relmap.

Every error carries a short, user-presentable ``message``. Technical
detail goes to the log, never to the user.
"""

from __future__ import annotations


class KnowledgeMapError(Exception):
    """Base class for all relmap errors."""

    title: str = "Erreur"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(KnowledgeMapError):
    """A required person field is missing. The store is left unchanged."""

    title = "Champs requis"


class ReferentialError(KnowledgeMapError):
    """A relation names a person id that is not in the store."""


class EntityNotFoundError(KnowledgeMapError):
    """An update or delete names an id that is not in the store."""


class RemoteSyncError(KnowledgeMapError):
    """A backing-store call failed after the local mutation was applied."""


class AuthRequiredError(KnowledgeMapError):
    """No authenticated principal is available."""

    def __init__(self, message: str = "Utilisateur non connecté", **kwargs: str | None) -> None:
        super().__init__(message, **kwargs)


class DocumentFormatError(KnowledgeMapError):
    """An import document is unreadable or lacks an expected table."""

    title = "Fichier invalide"

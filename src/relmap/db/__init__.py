"""Database layer for relmap: SQLAlchemy 2.0 async engine and ORM models."""

from __future__ import annotations

from relmap.db.base import Base
from relmap.db.engine import DatabaseManager

__all__ = ["Base", "DatabaseManager"]

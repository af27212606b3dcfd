"""Identifier generation for new persons and relations."""

from __future__ import annotations

import uuid

PERSON_PREFIX = "p"
RELATION_PREFIX = "rel"


def generate_id(prefix: str = "id") -> str:
    """Return a process-unique id such as ``p-3f2a9c0d1e4b``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"

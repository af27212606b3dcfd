"""Shared test fixtures and helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from relmap.core.types import PersonCategory, Proximity
from relmap.graph.models import PersonData

OWNER = "owner-1"
USER_TOKEN = "test-user-token-for-tests"


def person_data(
    first_name: str = "Marie",
    last_name: str = "Dupont",
    proximity: Proximity = Proximity.MOYEN,
    categories: list[PersonCategory] | None = None,
    **extra,
) -> PersonData:
    return PersonData(
        first_name=first_name,
        last_name=last_name,
        proximity=proximity,
        categories=categories or [],
        **extra,
    )


def install_user_token(app, user_id: str = OWNER) -> str:
    """Register an auth token on the app's auth provider.

    Returns the token string for use in Authorization headers.
    """
    provider = app.state.auth_provider
    provider._tokens[USER_TOKEN] = {
        "user_id": user_id,
        "display_name": "Test User",
        "expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return USER_TOKEN


@pytest.fixture
def no_sleep():
    async def _sleep(_: float) -> None:
        return None

    return _sleep

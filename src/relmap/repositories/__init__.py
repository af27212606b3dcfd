"""Repository pattern layer for relmap.

Provides the table-service protocol and a resolve() helper that
transparently handles both sync (in-memory) and async (Postgres)
repository returns.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, TypeVar

T = TypeVar("T")


async def resolve(value: T | Awaitable[T]) -> T:
    """Await a value if it is awaitable, otherwise return it directly.

    Lets the sync adapter call any repository uniformly:
        rows = await resolve(repository.list_persons(owner_id))
    """
    if inspect.isawaitable(value):
        return await value  # type: ignore[return-value]
    return value  # type: ignore[return-value]

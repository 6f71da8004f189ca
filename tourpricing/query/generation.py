"""Per-operator cache generations.

Writes never delete cached pages. They advance the operator's generation,
which is part of every page key, so older pages stop being addressed and
expire through their TTL.
"""

from __future__ import annotations

from uuid import UUID

from tourpricing.utils.redis_cache import KeyValueCache

BASELINE_GENERATION = "0"


def generation_key(tour_operator_id: UUID) -> str:
    return f"fact-gen:{tour_operator_id}"


def page_key(generation: str, tour_operator_id: UUID, page: int, page_size: int) -> str:
    return f"fact:{generation}:{tour_operator_id}:{page}:{page_size}"


async def read_generation(cache: KeyValueCache, tour_operator_id: UUID) -> str:
    value = await cache.get(generation_key(tour_operator_id))
    return value if value else BASELINE_GENERATION


async def bump_generation(cache: KeyValueCache, tour_operator_id: UUID) -> int:
    """Advance the generation; the key has no TTL."""
    return await cache.incr(generation_key(tour_operator_id))

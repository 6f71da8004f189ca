"""Paginated pricing reads behind a generation-versioned cache."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from tourpricing.db.pricing_queries import count_pricings, fetch_pricing_page
from tourpricing.models import PagedResult, PricingRow
from tourpricing.query.generation import page_key, read_generation
from tourpricing.utils.redis_cache import KeyValueCache

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
DEFAULT_TTL_SECONDS = 60


def clamp_paging(
    page: int | None,
    page_size: int | None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> tuple[int, int]:
    """Page below 1 becomes 1; a page size outside [1, max] becomes the default."""
    page = page if page is not None and page >= 1 else 1
    if page_size is None or page_size < 1 or page_size > max_page_size:
        page_size = default_page_size
    return page, page_size


class PricingQueryService:
    """Serve pricing pages, caching each (generation, operator, page, size)."""

    def __init__(
        self,
        cache: KeyValueCache,
        session_factory: sessionmaker | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        if session_factory is None:
            from tourpricing.db.connection import get_session_factory

            session_factory = get_session_factory()
        self.cache = cache
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def query(
        self, tour_operator_id: UUID, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> PagedResult[PricingRow]:
        page, page_size = clamp_paging(
            page, page_size, self.default_page_size, self.max_page_size
        )

        # Read once; the whole call uses this generation's key
        generation = await self._read_generation(tour_operator_id)
        key = None
        if generation is not None:
            key = page_key(generation, tour_operator_id, page, page_size)
            cached = await self._cache_get(key)
            if cached is not None:
                logger.debug(f"Cache hit {key}")
                return PagedResult[PricingRow].model_validate_json(cached)

        async with self.session_factory() as session:
            total = await count_pricings(session, tour_operator_id)
            items = await fetch_pricing_page(
                session, tour_operator_id, offset=(page - 1) * page_size, limit=page_size
            )

        result = PagedResult[PricingRow](items=items, total=total, page=page, page_size=page_size)
        if key is not None:
            await self._cache_set(key, result.model_dump_json())
        return result

    async def _read_generation(self, tour_operator_id: UUID) -> str | None:
        try:
            return await read_generation(self.cache, tour_operator_id)
        except Exception as e:
            # No generation, no cache
            logger.warning(f"Cache generation read failed for {tour_operator_id}: {e}")
            return None

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value, ttl_seconds=self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")

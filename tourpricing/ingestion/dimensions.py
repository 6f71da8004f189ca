"""Get-or-create resolution of route and season codes.

Concurrent uploads for the same operator may race to create the same code.
The store's unique constraint decides the winner; the loser re-reads the
winning row instead of failing.
"""

from __future__ import annotations

import logging
from uuid import UUID

from tourpricing.db.repository import PricingRepository
from tourpricing.errors import DimensionResolutionError, DuplicateKeyError
from tourpricing.ingestion.types import Dimension

logger = logging.getLogger(__name__)


class DimensionResolver:
    """Resolve codes to ids for one upload.

    Lookups are memoized per instance; create a new resolver per run so the
    memo never outlives the upload it was built for.
    """

    def __init__(self, repository: PricingRepository):
        self.repository = repository
        self._memo: dict[tuple[UUID, Dimension, str], UUID] = {}

    async def resolve(self, tenant_id: UUID, dimension: Dimension, code: str) -> UUID:
        memo_key = (tenant_id, dimension, code)
        cached = self._memo.get(memo_key)
        if cached is not None:
            return cached

        resolved = await self.repository.find_dimension_id(dimension, tenant_id, code)
        if resolved is None:
            try:
                resolved = await self.repository.insert_dimension(dimension, tenant_id, code)
            except DuplicateKeyError:
                logger.debug(f"Lost create race for {dimension.value} '{code}', re-reading")
                resolved = await self.repository.find_dimension_id(dimension, tenant_id, code)
                if resolved is None:
                    raise DimensionResolutionError(
                        f"{dimension.value} '{code}' rejected as duplicate but not found"
                    ) from None

        self._memo[memo_key] = resolved
        return resolved

    async def resolve_route(self, tenant_id: UUID, code: str) -> UUID:
        return await self.resolve(tenant_id, Dimension.ROUTE, code)

    async def resolve_season(self, tenant_id: UUID, code: str) -> UUID:
        return await self.resolve(tenant_id, Dimension.SEASON, code)

"""Per-row duplicate handling for the upload fallback path.

Used only after the single batch insert was rejected for a duplicate key.
Each candidate is written on its own, and the selected ConflictMode decides
what a collision means:

- skip: leave the stored row alone, count the candidate as skipped
- overwrite: replace the stored row's prices and seats, count as inserted;
  an insert that loses a race re-reads the key once and updates that row
- error: let the DuplicateKeyError through; the pipeline aborts the rest
"""

from __future__ import annotations

import logging
from enum import Enum

from tourpricing.db.repository import PricingRepository
from tourpricing.errors import DuplicateKeyError
from tourpricing.ingestion.types import ConflictMode, FactCandidate

logger = logging.getLogger(__name__)


class RowOutcome(str, Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"


class ConflictResolver:
    """Apply one ConflictMode to candidates, one row at a time."""

    def __init__(self, repository: PricingRepository, mode: ConflictMode | str | None):
        self.repository = repository
        self.mode = ConflictMode.parse(mode)

    async def apply(self, candidate: FactCandidate) -> RowOutcome:
        """Write one candidate under the configured mode.

        Raises:
            DuplicateKeyError: In error mode when the key already exists, or in
                overwrite mode when a colliding row cannot be re-read
        """
        if self.mode is ConflictMode.OVERWRITE:
            return await self._overwrite(candidate)
        if self.mode is ConflictMode.ERROR:
            await self.repository.insert_one(candidate)
            return RowOutcome.INSERTED
        return await self._skip(candidate)

    async def _skip(self, candidate: FactCandidate) -> RowOutcome:
        try:
            await self.repository.insert_one(candidate)
        except DuplicateKeyError:
            logger.debug(f"Row {candidate.row_number}: duplicate key, skipped")
            return RowOutcome.SKIPPED
        return RowOutcome.INSERTED

    async def _overwrite(self, candidate: FactCandidate) -> RowOutcome:
        existing_id = await self.repository.find_by_key(*candidate.key)
        if existing_id is None:
            try:
                await self.repository.insert_one(candidate)
                return RowOutcome.INSERTED
            except DuplicateKeyError:
                logger.debug(f"Row {candidate.row_number}: lost insert race, re-reading")
                existing_id = await self.repository.find_by_key(*candidate.key)
                if existing_id is None:
                    raise

        await self.repository.update_one(existing_id, candidate)
        logger.debug(f"Row {candidate.row_number}: overwrote pricing {existing_id}")
        return RowOutcome.INSERTED

"""Pricing CSV upload pipeline.

One upload moves through four states:

    VALIDATING -> BATCH_ATTEMPT -> DONE
    VALIDATING -> BATCH_ATTEMPT -> PER_ROW_FALLBACK -> DONE

VALIDATING reads the CSV in order, validates each record and resolves its
route/season codes. BATCH_ATTEMPT writes every candidate in one
transaction. Only a duplicate-key rejection of that batch leads to
PER_ROW_FALLBACK, where each candidate is replayed through the
ConflictResolver under the caller's mode. Any other store failure
propagates. The operator's cache generation is bumped once after rows were
written, so cached query pages for that operator stop being served.

Cancellation is cooperative: the optional cancel event is checked between
rows and around each store call, and asyncio task cancellation propagates
untouched. Writes committed before cancellation stay committed, and the
generation is still bumped for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import BinaryIO
from uuid import UUID

import structlog

from tourpricing.db.repository import PricingRepository
from tourpricing.errors import DuplicateKeyError, DuplicateRowError, RowValidationError
from tourpricing.ingestion.conflicts import ConflictResolver, RowOutcome
from tourpricing.ingestion.dimensions import DimensionResolver
from tourpricing.ingestion.reader import count_data_rows, read_records
from tourpricing.ingestion.types import ConflictMode, FactCandidate, IngestionState
from tourpricing.ingestion.validator import validate_row
from tourpricing.models import UploadSummary
from tourpricing.notifications.progress import ProgressReporter, ProgressStage, percent_of
from tourpricing.query.generation import bump_generation
from tourpricing.utils.redis_cache import KeyValueCache

logger = logging.getLogger(__name__)

# Percent bands: validation fills 0-50, inserting fills 50-100
VALIDATION_BAND = (0, 50)
INSERT_BAND = (50, 100)


class _RunCounters:
    """Mutable tallies for one run; frozen into an UploadSummary at the end."""

    def __init__(self) -> None:
        self.inserted = 0
        self.skipped = 0
        self.errors: list[str] = []

    def summary(self) -> UploadSummary:
        return UploadSummary(inserted=self.inserted, skipped=self.skipped, errors=list(self.errors))


class PricingUploadPipeline:
    """Run one pricing upload for one tour operator.

    Build a new pipeline per upload: it carries that upload's state.
    """

    def __init__(
        self,
        repository: PricingRepository,
        cache: KeyValueCache,
        reporter: ProgressReporter | None = None,
        progress_interval: int = 500,
        chunk_size: int = 1000,
    ):
        self.repository = repository
        self.cache = cache
        self.reporter = reporter or ProgressReporter()
        self.progress_interval = max(1, progress_interval)
        self.chunk_size = max(1, chunk_size)
        self.state = IngestionState.VALIDATING

    async def run(
        self,
        tour_operator_id: UUID,
        stream: BinaryIO,
        connection_id: str | None = None,
        skip_bad_rows: bool = True,
        mode: ConflictMode | str | None = ConflictMode.SKIP,
        cancel_event: asyncio.Event | None = None,
    ) -> UploadSummary:
        """Ingest one CSV stream.

        Args:
            tour_operator_id: Tenant that owns every row in the stream
            stream: Binary CSV stream with a header line
            connection_id: Progress observer, or None for no progress events
            skip_bad_rows: False stops at the first invalid row, writing nothing
            mode: Duplicate policy for the per-row fallback (unknown -> skip)
            cancel_event: Optional cooperative cancellation signal

        Returns:
            UploadSummary with inserted/skipped counts and row errors

        Raises:
            DuplicateRowError: mode=error and a row already exists
            DuplicateKeyError: mode=overwrite lost an insert race it could not
                recover from
            asyncio.CancelledError: The upload was cancelled
            SQLAlchemyError: Any store failure other than a duplicate key
        """
        conflict_mode = ConflictMode.parse(mode)
        with structlog.contextvars.bound_contextvars(tour_operator_id=str(tour_operator_id)):
            logger.info(
                f"Upload started for {tour_operator_id} "
                f"(mode={conflict_mode.value}, skip_bad_rows={skip_bad_rows})"
            )
            summary = await self._run(
                tour_operator_id, stream, connection_id, skip_bad_rows, conflict_mode, cancel_event
            )
            logger.info(
                f"Upload finished: {summary.inserted} inserted, {summary.skipped} skipped, "
                f"{len(summary.errors)} errors"
            )
            return summary

    async def _run(
        self,
        tour_operator_id: UUID,
        stream: BinaryIO,
        connection_id: str | None,
        skip_bad_rows: bool,
        mode: ConflictMode,
        cancel_event: asyncio.Event | None,
    ) -> UploadSummary:
        counters = _RunCounters()

        async def report(stage: ProgressStage, percent: int | None, message: str) -> None:
            await self.reporter.report(connection_id, stage, percent, message)

        self._transition(IngestionState.VALIDATING)
        total_rows = count_data_rows(stream)
        await report(ProgressStage.VALIDATION_STARTED, 0, "Validating rows")

        candidates, completed = await self._validate(
            tour_operator_id, stream, skip_bad_rows, counters, report, total_rows, cancel_event
        )

        if not completed:
            self._transition(IngestionState.DONE)
            await report(ProgressStage.DONE, 100, f"Stopped at first invalid row: {counters.errors[-1]}")
            return counters.summary()

        if not candidates:
            self._transition(IngestionState.DONE)
            await report(ProgressStage.DONE, 100, "No rows to insert")
            return counters.summary()

        self._transition(IngestionState.BATCH_ATTEMPT)
        await report(ProgressStage.BULK_INSERT_STARTED, INSERT_BAND[0], f"Inserting {len(candidates)} rows")
        _raise_if_cancelled(cancel_event)
        try:
            counters.inserted = await self.repository.insert_batch(candidates)
        except DuplicateKeyError:
            logger.info("Batch insert hit an existing key, replaying rows one by one")
        else:
            await bump_generation(self.cache, tour_operator_id)
            self._transition(IngestionState.DONE)
            await report(ProgressStage.BULK_INSERT_COMPLETED, 100, f"Inserted {counters.inserted} rows")
            return counters.summary()

        self._transition(IngestionState.PER_ROW_FALLBACK)
        await self._replay_rows(tour_operator_id, candidates, mode, counters, report, cancel_event)

        self._transition(IngestionState.DONE)
        await report(
            ProgressStage.BULK_INSERT_COMPLETED,
            100,
            f"Inserted {counters.inserted} rows, skipped {counters.skipped}",
        )
        return counters.summary()

    async def _validate(
        self,
        tour_operator_id: UUID,
        stream: BinaryIO,
        skip_bad_rows: bool,
        counters: _RunCounters,
        report,
        total_rows: int | None,
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[FactCandidate], bool]:
        """Validate and resolve every record.

        Returns the candidates and False when fail-fast stopped the read.
        """
        resolver = DimensionResolver(self.repository)
        candidates: list[FactCandidate] = []
        rows_read = 0

        for raw in read_records(stream, self.chunk_size):
            _raise_if_cancelled(cancel_event)
            rows_read += 1

            try:
                row = validate_row(raw, tour_operator_id)
            except RowValidationError as e:
                counters.skipped += 1
                counters.errors.append(e.to_summary_line())
                if not skip_bad_rows:
                    logger.info(f"Fail-fast upload stopped at row {e.row_number}")
                    return candidates, False
            else:
                route_id = await resolver.resolve_route(tour_operator_id, row.route_code)
                _raise_if_cancelled(cancel_event)
                season_id = await resolver.resolve_season(tour_operator_id, row.season_code)
                _raise_if_cancelled(cancel_event)
                candidates.append(
                    FactCandidate(
                        row_number=raw.row_number,
                        tenant_id=tour_operator_id,
                        route_id=route_id,
                        season_id=season_id,
                        date=row.date,
                        economy_price=row.economy_price,
                        business_price=row.business_price,
                        economy_seats=row.economy_seats,
                        business_seats=row.business_seats,
                    )
                )

            if rows_read % self.progress_interval == 0:
                await report(
                    ProgressStage.PROCESSING,
                    percent_of(rows_read, total_rows, *VALIDATION_BAND),
                    f"Processed {rows_read} rows",
                )

        logger.info(f"Validated {rows_read} rows: {len(candidates)} ready, {counters.skipped} skipped")
        return candidates, True

    async def _replay_rows(
        self,
        tour_operator_id: UUID,
        candidates: list[FactCandidate],
        mode: ConflictMode,
        counters: _RunCounters,
        report,
        cancel_event: asyncio.Event | None,
    ) -> None:
        # The failed batch was rolled back as a whole; count from zero
        counters.inserted = 0
        resolver = ConflictResolver(self.repository, mode)
        total = len(candidates)

        try:
            for done, candidate in enumerate(candidates, start=1):
                _raise_if_cancelled(cancel_event)
                try:
                    outcome = await resolver.apply(candidate)
                except DuplicateKeyError:
                    if mode is not ConflictMode.ERROR:
                        raise
                    counters.errors.append(
                        f"Row {candidate.row_number}: duplicate pricing row for route/season/date."
                    )
                    # TODO: decide whether mode=error should fail only the colliding row
                    raise DuplicateRowError(candidate.row_number, counters.summary()) from None

                if outcome is RowOutcome.INSERTED:
                    counters.inserted += 1
                else:
                    counters.skipped += 1

                if done % self.progress_interval == 0 or done == total:
                    await report(
                        ProgressStage.BULK_INSERT_PROGRESS,
                        percent_of(done, total, *INSERT_BAND),
                        f"Processed {done}/{total} rows",
                    )
        finally:
            # Also on a duplicate abort or cancellation
            if counters.inserted:
                await bump_generation(self.cache, tour_operator_id)

    def _transition(self, state: IngestionState) -> None:
        if state is not self.state:
            logger.debug(f"Upload state {self.state.value} -> {state.value}")
        self.state = state


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError("Upload cancelled")

"""Integration tests for the pricing upload pipeline.

Runs real CSV uploads against an in-memory SQLite store and an in-memory
cache, covering the batch path, the per-row fallback under every conflict
mode, fail-fast validation, cancellation and progress reporting.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from tourpricing.db.models import DailyPricingModel, RouteModel
from tourpricing.errors import DuplicateKeyError, DuplicateRowError
from tourpricing.ingestion.pipeline import PricingUploadPipeline
from tourpricing.ingestion.types import ConflictMode, IngestionState
from tourpricing.notifications.progress import ProgressReporter
from tourpricing.query.generation import read_generation

ROW_A = "R1,S1,2024-01-01,100.00,250.00,10,5"
ROW_B = "R1,S1,2024-01-02,110.00,260.00,11,6"
ROW_C = "R2,S1,2024-01-01,90.00,200.00,20,4"


@pytest.fixture
def make_pipeline(repository, cache, channel):
    def _make(progress_interval: int = 500) -> PricingUploadPipeline:
        return PricingUploadPipeline(
            repository,
            cache,
            reporter=ProgressReporter(channel),
            progress_interval=progress_interval,
        )

    return _make


async def _stored_prices(session_factory) -> list[Decimal]:
    async with session_factory() as session:
        result = await session.execute(
            select(DailyPricingModel.economy_price).order_by(
                DailyPricingModel.date, DailyPricingModel.id
            )
        )
        return list(result.scalars())


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestBatchPath:
    @pytest.mark.asyncio
    async def test_distinct_rows_are_inserted(
        self, make_pipeline, csv_stream, session_factory, cache, tour_operator_id
    ):
        pipeline = make_pipeline()

        summary = await pipeline.run(tour_operator_id, csv_stream(ROW_A, ROW_B, ROW_C))

        assert (summary.inserted, summary.skipped, summary.errors) == (3, 0, [])
        assert pipeline.state is IngestionState.DONE
        assert await _count(session_factory, DailyPricingModel) == 3
        assert await read_generation(cache, tour_operator_id) == "1"

    @pytest.mark.asyncio
    async def test_codes_are_created_once(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A, ROW_B, ROW_C))

        # R1 and R2
        assert await _count(session_factory, RouteModel) == 2

    @pytest.mark.asyncio
    async def test_invalid_rows_are_skipped_with_errors(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        summary = await make_pipeline().run(
            tour_operator_id,
            csv_stream(ROW_A, "R1,,2024-01-03,1,1,1,1", "R1,S1,03/01/2024,1,1,1,1", ROW_B),
        )

        assert summary.inserted == 2
        assert summary.skipped == 2
        assert summary.errors == [
            "Row 3: SeasonCode is required.",
            "Row 4: Invalid Date '03/01/2024'. Expected yyyy-MM-dd.",
        ]
        assert await _count(session_factory, DailyPricingModel) == 2

    @pytest.mark.asyncio
    async def test_fields_past_the_header_are_ignored(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        summary = await make_pipeline().run(tour_operator_id, csv_stream(ROW_A, ROW_B + ",extra"))

        assert (summary.inserted, summary.skipped, summary.errors) == (2, 0, [])
        assert summary.inserted + summary.skipped == 2
        assert await _stored_prices(session_factory) == [Decimal("100.00"), Decimal("110.00")]

    @pytest.mark.asyncio
    async def test_trailing_delimiter_export(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        summary = await make_pipeline().run(tour_operator_id, csv_stream(ROW_A + ",", ROW_B + ","))

        assert (summary.inserted, summary.skipped, summary.errors) == (2, 0, [])
        assert await _count(session_factory, RouteModel) == 1

    @pytest.mark.asyncio
    async def test_out_of_range_seats_are_a_row_error(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        summary = await make_pipeline().run(
            tour_operator_id, csv_stream(ROW_A, "R1,S1,2024-01-02,1,1,99999999999999999999,1")
        )

        assert (summary.inserted, summary.skipped) == (1, 1)
        assert summary.errors == ["Row 3: EconomySeats invalid '99999999999999999999'."]
        assert await _stored_prices(session_factory) == [Decimal("100.00")]


class TestFallbackPath:
    @pytest.mark.asyncio
    async def test_skip_mode_keeps_first_row(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        duplicate = "R1,S1,2024-01-01,999.00,999.00,1,1"
        pipeline = make_pipeline()

        summary = await pipeline.run(
            tour_operator_id, csv_stream(ROW_A, duplicate), mode=ConflictMode.SKIP
        )

        assert (summary.inserted, summary.skipped, summary.errors) == (1, 1, [])
        assert await _stored_prices(session_factory) == [Decimal("100.00")]

    @pytest.mark.asyncio
    async def test_skip_mode_against_existing_rows(
        self, make_pipeline, csv_stream, cache, tour_operator_id
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))

        summary = await make_pipeline().run(tour_operator_id, csv_stream(ROW_A, ROW_B))

        assert (summary.inserted, summary.skipped) == (1, 1)
        assert await read_generation(cache, tour_operator_id) == "2"

    @pytest.mark.asyncio
    async def test_overwrite_mode_last_row_wins(
        self, make_pipeline, csv_stream, session_factory, tour_operator_id
    ):
        duplicate = "R1,S1,2024-01-01,105.00,255.00,9,4"

        summary = await make_pipeline().run(
            tour_operator_id, csv_stream(ROW_A, duplicate), mode="overwrite"
        )

        assert (summary.inserted, summary.skipped) == (2, 0)
        assert await _stored_prices(session_factory) == [Decimal("105.00")]

    @pytest.mark.asyncio
    async def test_error_mode_aborts_with_partial_summary(
        self, make_pipeline, csv_stream, session_factory, cache, tour_operator_id
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))

        with pytest.raises(DuplicateRowError) as exc_info:
            await make_pipeline().run(
                tour_operator_id, csv_stream(ROW_B, ROW_A, ROW_C), mode=ConflictMode.ERROR
            )

        error = exc_info.value
        assert error.row_number == 3
        assert error.summary.inserted == 1
        assert error.summary.errors == ["Row 3: duplicate pricing row for route/season/date."]
        # ROW_C is never attempted
        assert await _count(session_factory, DailyPricingModel) == 2
        assert await read_generation(cache, tour_operator_id) == "2"

    @pytest.mark.asyncio
    async def test_unknown_mode_falls_back_to_skip(
        self, make_pipeline, csv_stream, tour_operator_id
    ):
        summary = await make_pipeline().run(
            tour_operator_id, csv_stream(ROW_A, ROW_A), mode="replace"
        )

        assert (summary.inserted, summary.skipped) == (1, 1)

    @pytest.mark.asyncio
    async def test_overwrite_race_is_not_reported_as_error_mode(
        self, make_pipeline, csv_stream, repository, session_factory, cache, monkeypatch,
        tour_operator_id,
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))
        # The stored ROW_A stays invisible to lookups, so its insert keeps colliding
        monkeypatch.setattr(repository, "find_by_key", AsyncMock(return_value=None))

        with pytest.raises(DuplicateKeyError):
            await make_pipeline().run(
                tour_operator_id, csv_stream(ROW_B, ROW_A), mode=ConflictMode.OVERWRITE
            )

        assert await _count(session_factory, DailyPricingModel) == 2
        assert await read_generation(cache, tour_operator_id) == "2"

    @pytest.mark.asyncio
    async def test_all_duplicates_leave_generation_alone(
        self, make_pipeline, csv_stream, cache, tour_operator_id
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))

        summary = await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))

        assert (summary.inserted, summary.skipped) == (0, 1)
        assert await read_generation(cache, tour_operator_id) == "1"


class TestFailFastAndEmpty:
    @pytest.mark.asyncio
    async def test_fail_fast_writes_nothing(
        self, make_pipeline, csv_stream, session_factory, cache, channel, tour_operator_id
    ):
        summary = await make_pipeline().run(
            tour_operator_id,
            csv_stream(ROW_A, "R1,S1,2024-01-02,abc,1,1,1", ROW_B),
            connection_id="conn-1",
            skip_bad_rows=False,
        )

        assert (summary.inserted, summary.skipped) == (0, 1)
        assert summary.errors == ["Row 3: EconomyPrice invalid 'abc'."]
        assert await _count(session_factory, DailyPricingModel) == 0
        assert await read_generation(cache, tour_operator_id) == "0"
        assert channel.stages == ["validation_started", "done"]
        assert channel.events[-1][1].message.startswith("Stopped at first invalid row")

    @pytest.mark.asyncio
    async def test_header_only_upload(self, make_pipeline, csv_stream, channel, tour_operator_id):
        summary = await make_pipeline().run(tour_operator_id, csv_stream(), connection_id="c")

        assert (summary.inserted, summary.skipped, summary.errors) == (0, 0, [])
        assert channel.stages == ["validation_started", "done"]
        assert channel.events[-1][1].message == "No rows to insert"

    @pytest.mark.asyncio
    async def test_all_rows_invalid(self, make_pipeline, csv_stream, cache, tour_operator_id):
        summary = await make_pipeline().run(tour_operator_id, csv_stream(",S1,2024-01-01,1,1,1,1"))

        assert (summary.inserted, summary.skipped) == (0, 1)
        assert await read_generation(cache, tour_operator_id) == "0"


class TestProgressAndCancellation:
    @pytest.mark.asyncio
    async def test_progress_stages_in_order(
        self, make_pipeline, csv_stream, channel, tour_operator_id
    ):
        lines = [f"R1,S1,2024-02-{day:02d},100,200,10,5" for day in range(1, 5)]

        await make_pipeline(progress_interval=2).run(
            tour_operator_id, csv_stream(*lines), connection_id="conn-1"
        )

        assert channel.stages == [
            "validation_started",
            "processing",
            "processing",
            "bulk_insert_started",
            "bulk_insert_completed",
        ]
        assert [event.pct for _, event in channel.events] == [0, 25, 50, 50, 100]
        assert {connection_id for connection_id, _ in channel.events} == {"conn-1"}

    @pytest.mark.asyncio
    async def test_fallback_reports_insert_progress(
        self, make_pipeline, csv_stream, channel, tour_operator_id
    ):
        await make_pipeline().run(
            tour_operator_id, csv_stream(ROW_A, ROW_A), connection_id="conn-1"
        )

        assert channel.stages[-3:] == [
            "bulk_insert_started",
            "bulk_insert_progress",
            "bulk_insert_completed",
        ]
        assert channel.events[-1][1].message == "Inserted 1 rows, skipped 1"

    @pytest.mark.asyncio
    async def test_no_connection_id_sends_nothing(
        self, make_pipeline, csv_stream, channel, tour_operator_id
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))

        assert channel.events == []

    @pytest.mark.asyncio
    async def test_cancelled_upload_writes_nothing(
        self, make_pipeline, csv_stream, session_factory, cache, tour_operator_id
    ):
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(asyncio.CancelledError):
            await make_pipeline().run(
                tour_operator_id, csv_stream(ROW_A, ROW_B), cancel_event=cancel
            )

        assert await _count(session_factory, DailyPricingModel) == 0
        assert await read_generation(cache, tour_operator_id) == "0"

    @pytest.mark.asyncio
    async def test_cancel_during_fallback_still_bumps_generation(
        self, make_pipeline, csv_stream, repository, session_factory, cache, monkeypatch,
        tour_operator_id,
    ):
        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))
        cancel = asyncio.Event()
        insert_one = repository.insert_one

        async def insert_then_cancel(candidate):
            await insert_one(candidate)
            cancel.set()

        monkeypatch.setattr(repository, "insert_one", insert_then_cancel)

        with pytest.raises(asyncio.CancelledError):
            await make_pipeline().run(
                tour_operator_id, csv_stream(ROW_B, ROW_A, ROW_C), cancel_event=cancel
            )

        # ROW_B committed before the cancel was seen
        assert await _count(session_factory, DailyPricingModel) == 2
        assert await read_generation(cache, tour_operator_id) == "2"

    @pytest.mark.asyncio
    async def test_uploads_are_tenant_isolated(
        self, make_pipeline, csv_stream, session_factory, cache, tour_operator_id
    ):
        other = uuid4()

        await make_pipeline().run(tour_operator_id, csv_stream(ROW_A))
        summary = await make_pipeline().run(other, csv_stream(ROW_A))

        assert summary.inserted == 1
        assert await _count(session_factory, DailyPricingModel) == 2
        assert await _count(session_factory, RouteModel) == 2
        assert await read_generation(cache, other) == "1"

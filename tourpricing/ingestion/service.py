"""Entry point wiring the upload pipeline to configured collaborators."""

from __future__ import annotations

import asyncio
from typing import BinaryIO
from uuid import UUID

from tourpricing.config import get_config
from tourpricing.db.repository import PricingRepository
from tourpricing.ingestion.pipeline import PricingUploadPipeline
from tourpricing.ingestion.types import ConflictMode
from tourpricing.models import UploadSummary
from tourpricing.notifications.progress import ProgressChannel, ProgressReporter
from tourpricing.utils.redis_cache import KeyValueCache, get_cache


async def upload_pricing(
    tour_operator_id: UUID,
    stream: BinaryIO,
    connection_id: str | None = None,
    skip_bad_rows: bool | None = None,
    mode: ConflictMode | str | None = None,
    cancel_event: asyncio.Event | None = None,
    channel: ProgressChannel | None = None,
    repository: PricingRepository | None = None,
    cache: KeyValueCache | None = None,
) -> UploadSummary:
    """Ingest a pricing CSV using application config for anything not given.

    Raises:
        DuplicateRowError: mode=error and a row already exists
        asyncio.CancelledError: The upload was cancelled
    """
    ingestion_config = get_config().ingestion

    pipeline = PricingUploadPipeline(
        repository=repository or PricingRepository(),
        cache=cache or get_cache(),
        reporter=ProgressReporter(channel),
        progress_interval=ingestion_config.progress_interval,
        chunk_size=ingestion_config.chunk_size,
    )
    return await pipeline.run(
        tour_operator_id,
        stream,
        connection_id=connection_id,
        skip_bad_rows=ingestion_config.skip_bad_rows if skip_bad_rows is None else skip_bad_rows,
        mode=mode if mode is not None else ingestion_config.default_mode,
        cancel_event=cancel_event,
    )

"""Best-effort upload progress reporting.

The pipeline never depends on an observer being present: without a
connection id nothing is sent, and a failed delivery is logged and dropped.
Only cancellation escapes a report() call.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from tourpricing.models import ProgressEvent

logger = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    """Lifecycle stages emitted during one upload, in order."""

    VALIDATION_STARTED = "validation_started"
    PROCESSING = "processing"
    BULK_INSERT_STARTED = "bulk_insert_started"
    BULK_INSERT_PROGRESS = "bulk_insert_progress"
    BULK_INSERT_COMPLETED = "bulk_insert_completed"
    DONE = "done"


class ProgressChannel(Protocol):
    """Push transport addressed by an opaque connection id."""

    async def notify(self, connection_id: str, event: ProgressEvent) -> None:
        ...


class ProgressReporter:
    """Fire-and-forget wrapper around a ProgressChannel."""

    def __init__(self, channel: ProgressChannel | None = None):
        self.channel = channel

    async def report(
        self,
        connection_id: str | None,
        stage: ProgressStage | str,
        percent: int | None,
        message: str,
    ) -> None:
        if self.channel is None or not connection_id or not connection_id.strip():
            return

        stage_name = stage.value if isinstance(stage, ProgressStage) else stage
        event = ProgressEvent(stage=stage_name, pct=percent, message=message)
        try:
            await self.channel.notify(connection_id, event)
        except Exception as e:
            # asyncio.CancelledError is a BaseException and still propagates
            logger.warning(f"Progress delivery to {connection_id} failed ({stage_name}): {e}")


def percent_of(done: int, total: int | None, start: int = 0, end: int = 100) -> int | None:
    """Map done/total onto the [start, end] band; None when total is unknown."""
    if total is None:
        return None
    if total <= 0:
        return end
    fraction = min(done, total) / total
    return start + int(fraction * (end - start))

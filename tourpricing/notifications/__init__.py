"""Upload progress notifications."""

from tourpricing.notifications.progress import ProgressChannel, ProgressReporter, ProgressStage
from tourpricing.notifications.websocket import WebSocketProgressHub, get_progress_hub

__all__ = [
    "ProgressChannel",
    "ProgressReporter",
    "ProgressStage",
    "WebSocketProgressHub",
    "get_progress_hub",
]

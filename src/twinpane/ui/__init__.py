"""UI package holding the event bus, reducer models and the sync controller."""

from .domain.sync_controller import SyncController
from .events import EventBus

__all__ = [
    "EventBus",
    "SyncController",
]

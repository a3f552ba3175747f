"""Domain layer for the twin-surface editor.

The sync controller owns the canonical document and is the only writer to
the raw and rendered surface adapters. It has no dependency on Qt and
reports state changes through the event bus.
"""

from __future__ import annotations

from .sync_controller import SyncController, reduce

__all__: list[str] = [
    "SyncController",
    "reduce",
]

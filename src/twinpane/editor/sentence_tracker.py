"""Caret-to-sentence mapping for one surface."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from .document_model import SelectionRange
from .layout import SurfaceLayout

LOGGER = logging.getLogger(__name__)

NO_SENTENCE = -1

ActiveSentenceListener = Callable[[int], None]


class TrackerState(Enum):
    IDLE = "idle"
    TRACKING = "tracking"


class SentenceIndexTracker:
    """Reports the sentence under the caret while enabled.

    Only one surface tracks at a time: a tracker is enabled while the
    *other* surface is not focused. While idle it does not walk the layout
    and reports nothing, so the surface being typed into is not moved
    around by its own edits.
    """

    def __init__(self, name: str, *, enabled: bool = True) -> None:
        self.name = name
        self._state = TrackerState.TRACKING if enabled else TrackerState.IDLE
        self._listeners: list[ActiveSentenceListener] = []
        self._last_emitted: int | None = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is TrackerState.TRACKING

    def set_enabled(self, enabled: bool) -> None:
        target = TrackerState.TRACKING if enabled else TrackerState.IDLE
        if target is self._state:
            return
        LOGGER.debug("Sentence tracker %s: %s -> %s", self.name, self._state.value, target.value)
        self._state = target
        self._last_emitted = None

    def add_listener(self, listener: ActiveSentenceListener) -> None:
        self._listeners.append(listener)

    @property
    def last_emitted(self) -> int | None:
        return self._last_emitted

    def on_selection(self, selection: SelectionRange, layout: SurfaceLayout) -> int | None:
        """Handle a selection-change event.

        Returns the emitted sentence index (``-1`` when the caret sits
        outside every sentence node), or ``None`` when nothing is reported
        because the tracker is idle or the selection is a range.
        """

        if self._state is TrackerState.IDLE:
            return None
        if not selection.is_collapsed:
            return None
        index = layout.sentence_at(selection.caret)
        self._last_emitted = index
        for listener in list(self._listeners):
            listener(index)
        return index


__all__ = ["NO_SENTENCE", "SentenceIndexTracker", "TrackerState"]

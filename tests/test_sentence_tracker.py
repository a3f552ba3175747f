"""Tests for caret-to-sentence tracking."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from twinpane.editor.document_model import SelectionRange
from twinpane.editor.layout import layout_raw_text
from twinpane.editor.sentence_tracker import NO_SENTENCE, SentenceIndexTracker, TrackerState


@pytest.fixture
def layout():
    return layout_raw_text("One.  Two.")


@pytest.fixture
def listener() -> MagicMock:
    return MagicMock()


@pytest.fixture
def tracker(listener: MagicMock) -> SentenceIndexTracker:
    tracker = SentenceIndexTracker("raw")
    tracker.add_listener(listener)
    return tracker


class TestTracking:
    """Tests for an enabled tracker."""

    def test_caret_inside_sentence(self, tracker, listener, layout) -> None:
        """A caret inside the second node reports index 2."""
        assert tracker.on_selection(SelectionRange(7, 7), layout) == 2
        listener.assert_called_once_with(2)

    def test_caret_at_sentence_end_belongs_to_it(self, tracker, layout) -> None:
        """The end offset of a node is still inside it."""
        assert tracker.on_selection(SelectionRange(4, 4), layout) == 1

    def test_caret_between_nodes_reports_none(self, tracker, listener, layout) -> None:
        """Whitespace between nodes yields -1."""
        assert tracker.on_selection(SelectionRange(5, 5), layout) == NO_SENTENCE
        listener.assert_called_once_with(-1)

    def test_range_selection_reports_nothing(self, tracker, listener, layout) -> None:
        """A non-collapsed selection is not a caret placement."""
        assert tracker.on_selection(SelectionRange(0, 8), layout) is None
        listener.assert_not_called()
        assert tracker.last_emitted is None


class TestEnabledGate:
    """Tests for the enabled flag."""

    def test_disabled_tracker_does_not_walk(self, listener) -> None:
        """An idle tracker never reads the layout."""
        tracker = SentenceIndexTracker("rendered", enabled=False)
        tracker.add_listener(listener)
        layout = MagicMock()

        assert tracker.on_selection(SelectionRange(1, 1), layout) is None

        layout.sentence_at.assert_not_called()
        listener.assert_not_called()
        assert tracker.state is TrackerState.IDLE

    def test_reenabling_resets_last_emitted(self, tracker, layout) -> None:
        """Transitions forget the previously reported index."""
        tracker.on_selection(SelectionRange(1, 1), layout)
        assert tracker.last_emitted == 1

        tracker.set_enabled(False)
        assert not tracker.enabled
        tracker.set_enabled(True)

        assert tracker.state is TrackerState.TRACKING
        assert tracker.last_emitted is None

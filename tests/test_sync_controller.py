"""Tests for the sync reducer and its driver."""

from __future__ import annotations

from typing import Any

import pytest

from helpers import EventRecorder, annotated_word, annotation_payload
from twinpane.editor.decorations import DecorationKind
from twinpane.editor.freeze import FreezeSetManager
from twinpane.editor.surface import FocusState, Surface
from twinpane.services.settings import Settings
from twinpane.services.terms import ProtectedTerms
from twinpane.ui import events
from twinpane.ui.domain.sync_controller import SyncController, reduce
from twinpane.ui.models.sync_models import ClearRequested, RawTextEdited, SurfaceWrite, SyncState


def _annotate(controller: SyncController, *sentences: str, **extra: Any) -> bool:
    request = controller.issue_annotation_request()
    return controller.receive_annotation(request.generation, annotation_payload(*sentences, **extra))


# =============================================================================
# Reducer
# =============================================================================


class TestReduce:
    """Tests for the pure reducer."""

    def test_reduce_does_not_mutate_its_input(self) -> None:
        """The same state and action always give the same transition."""
        state = SyncState()

        first = reduce(state, RawTextEdited("One. Two"))
        second = reduce(state, RawTextEdited("One. Two"))

        assert first == second
        assert state.raw_text == ""
        assert state.document.sentence_count == 0
        assert first.state.raw_text == "One. Two"

    def test_raw_edit_pushes_rendered_only(self) -> None:
        """Typed raw text is never echoed back into the raw surface."""
        transition = reduce(SyncState(focus=FocusState.RAW_FOCUSED), RawTextEdited("One. Two"))

        assert [write.surface for write in transition.writes] == [Surface.RENDERED]
        assert transition.state.suppressed(Surface.RENDERED) == 1
        assert transition.state.document.sentence_count == 2

    def test_unknown_action_raises(self) -> None:
        """Only registered action types are accepted."""
        with pytest.raises(TypeError):
            reduce(SyncState(), object())  # type: ignore[arg-type]


# =============================================================================
# Raw editing
# =============================================================================


class TestRawEditing:
    """Tests for typing into the raw surface."""

    def test_typing_mirrors_provisional_sentences(self, controller: SyncController) -> None:
        """New raw sentences show up on the rendered surface right away."""
        controller.raw.focus()
        controller.raw.type_text("One. Two")

        assert controller.rendered.text == "One. Two"
        assert controller.rendered.write_count == 1
        assert controller.raw.write_count == 0
        assert controller.sentence_count == 2
        assert all(sentence.provisional for sentence in controller.document)
        assert controller.state.suppressed(Surface.RENDERED) == 0

    def test_provisional_tail_is_resynthesized(self, controller: SyncController) -> None:
        """Further typing replaces the provisional tail instead of stacking it."""
        controller.raw.focus()
        controller.raw.type_text("One. Tw")
        controller.raw.type_text("o. Three")

        assert controller.raw_text == "One. Two. Three"
        assert [sentence.text() for sentence in controller.document] == ["One.", "Two.", "Three"]

    def test_caret_sets_active_sentence_without_writes(self, controller: SyncController) -> None:
        """Moving the caret changes the active sentence and its decoration only."""
        controller.raw.focus()
        controller.raw.type_text("One. Two")
        writes = controller.rendered.write_count

        controller.raw.set_selection(1)

        assert controller.active_sentence == 1
        assert controller.rendered.write_count == writes
        assert controller.raw.write_count == 0
        assert controller.decorations(Surface.RENDERED).spans(DecorationKind.ACTIVE) == ((0, 4),)

    def test_caret_between_sentences_clears_active(self, controller: SyncController) -> None:
        """A caret outside every node reports no active sentence."""
        controller.raw.type_text("One.  Two")
        controller.raw.set_selection(5)
        assert controller.active_sentence is None

    def test_whitespace_is_preserved_in_raw(self, controller: SyncController) -> None:
        """Annotation never rewrites the raw text the user typed."""
        controller.raw.type_text("Hello   world")

        assert _annotate(controller, "Hello world")

        assert controller.raw.text == "Hello   world"
        assert controller.raw.write_count == 0
        assert controller.rendered.text == "Hello world"


# =============================================================================
# Focus gating
# =============================================================================


class TestFocusGating:
    """Tests for the rule that a focused surface is never overwritten."""

    def test_focused_rendered_surface_is_not_written(
        self, controller: SyncController, event_bus: events.EventBus
    ) -> None:
        """Annotations wait for the rendered surface to lose focus."""
        recorder = EventRecorder(event_bus, events.SurfaceDeferred, events.SurfacePushed)
        controller.raw.type_text("One. Two.")
        writes = controller.rendered.write_count
        controller.rendered.focus()

        assert _annotate(controller, "One.", "Two.")
        assert _annotate(controller, "One.", "Two.", type="VP")

        assert controller.rendered.write_count == writes
        deferred = recorder.of_type(events.SurfaceDeferred)
        assert [(event.surface, event.reason) for event in deferred] == [(Surface.RENDERED, "focused")]

        controller.rendered.blur()
        controller.rendered.blur()

        assert controller.rendered.write_count == writes + 1
        assert [word.color_class for word in controller.rendered.tree.sentences[0].words] == ["tag-vp"]

    def test_trackers_follow_focus(self, controller: SyncController) -> None:
        """Only the surface not opposite the focused one tracks the caret."""
        controller.raw.focus()
        assert controller.tracker(Surface.RAW).enabled
        assert not controller.tracker(Surface.RENDERED).enabled

        controller.raw.blur()
        controller.rendered.focus()
        assert controller.tracker(Surface.RENDERED).enabled
        assert not controller.tracker(Surface.RAW).enabled

        controller.rendered.blur()
        assert controller.tracker(Surface.RAW).enabled
        assert controller.tracker(Surface.RENDERED).enabled

    def test_caret_in_idle_surface_is_ignored(self, controller: SyncController) -> None:
        """The rendered caret does not move the active sentence while raw is focused."""
        controller.raw.type_text("One. Two")
        controller.raw.set_selection(1)
        controller.raw.focus()

        controller.rendered.set_selection(7)

        assert controller.active_sentence == 1


# =============================================================================
# Annotation round-trips
# =============================================================================


class TestAnnotation:
    """Tests for applying, deferring and discarding annotation results."""

    def test_applied_annotation_replaces_provisional_sentences(
        self, controller: SyncController, event_bus: events.EventBus
    ) -> None:
        """A matching payload becomes the authoritative document."""
        recorder = EventRecorder(event_bus, events.AnnotationRequested, events.AnnotationApplied)
        controller.raw.type_text("One. Two.")

        assert _annotate(controller, "One.", "Two.")

        assert controller.document.authoritative_count == 2
        assert controller.document.sentences[0].words[0].type == "NP"
        requested, applied = recorder.events
        assert requested.sentences == ("One", "Two.")
        assert (applied.generation, applied.sentence_count) == (1, 2)

    def test_partial_result_keeps_provisional_tail(self, controller: SyncController) -> None:
        """Sentences typed after the request stay provisional."""
        controller.raw.type_text("One. Two")

        assert _annotate(controller, "One.")

        assert controller.document.authoritative_count == 1
        assert controller.sentence_count == 2
        assert controller.document.sentences[1].provisional
        assert controller.raw.write_count == 0

    def test_stale_result_is_discarded(self, controller: SyncController, event_bus: events.EventBus) -> None:
        """Only the last issued generation may be applied."""
        recorder = EventRecorder(event_bus, events.AnnotationDiscarded)
        controller.raw.type_text("One.")
        old = controller.issue_annotation_request()
        controller.issue_annotation_request()

        assert not controller.receive_annotation(old.generation, annotation_payload("Old."))

        assert controller.document.authoritative_count == 0
        assert [(event.generation, event.reason) for event in recorder.events] == [(1, "stale")]

    def test_malformed_result_degrades_until_next_valid_one(
        self, controller: SyncController, event_bus: events.EventBus
    ) -> None:
        """Bad payloads leave the document alone and editing keeps working."""
        recorder = EventRecorder(event_bus, events.AnnotationDiscarded)
        controller.raw.type_text("One.")
        request = controller.issue_annotation_request()

        assert not controller.receive_annotation(request.generation, {"sentences": [[{"type": "NP"}]]})

        assert controller.degraded
        assert recorder.events[0].reason == "malformed"
        assert recorder.events[0].detail

        controller.raw.type_text(" Two")
        assert controller.rendered.text == "One. Two"

        assert _annotate(controller, "One.", "Two")
        assert not controller.degraded

    def test_start_gap_is_malformed(self, controller: SyncController) -> None:
        """A ``start`` past the annotated sentences is rejected."""
        controller.raw.type_text("One.")
        assert not _annotate(controller, "One.", start=3)
        assert controller.degraded

    def test_start_splices_into_authoritative_sentences(self, controller: SyncController) -> None:
        """A partial result replaces only the covered sentences."""
        controller.raw.type_text("One. Two.")
        _annotate(controller, "One.", "Two.")

        assert _annotate(controller, "Two.", start=2, type="VP")

        assert [s.words[0].type for s in controller.document] == ["NP", "VP"]

    def test_rendered_edits_reach_raw_once_counts_match(
        self, controller: SyncController, event_bus: events.EventBus
    ) -> None:
        """Raw is updated from the rendered surface only when sentence counts agree."""
        recorder = EventRecorder(event_bus, events.SurfaceDeferred)
        controller.raw.type_text("One. Two.")
        _annotate(controller, "One.", "Two.")
        controller.rendered.focus()

        controller.rendered.user_edit("One. Two. Three")

        assert controller.raw_text == "One. Two. Three"
        assert controller.raw.text == "One. Two."
        assert controller.document.authoritative_count == 2
        assert (Surface.RAW, "sentence-count") in [(e.surface, e.reason) for e in recorder.events]

        assert _annotate(controller, "One.", "Two.", "Three")

        assert controller.raw.text == "One. Two. Three"
        assert controller.raw.write_count == 1
        assert controller.state.suppressed(Surface.RAW) == 0

    def test_rendered_edit_drops_annotation_from_edited_sentence(self, controller: SyncController) -> None:
        """Sentences before the edit keep their annotation."""
        controller.raw.type_text("One. Two. Three.")
        _annotate(controller, "One.", "Two.", "Three.")
        controller.rendered.focus()

        controller.rendered.user_edit("One. Too. Three.")

        assert controller.document.authoritative_count == 1
        assert [s.provisional for s in controller.document] == [False, True, True]


# =============================================================================
# Clear
# =============================================================================


def test_clear_resets_both_surfaces_even_when_focused(controller: SyncController, event_bus: events.EventBus) -> None:
    recorder = EventRecorder(event_bus, events.DocumentCleared, events.DocumentRendered)
    controller.raw.focus()
    controller.raw.type_text("One. Two")
    request = controller.issue_annotation_request()

    controller.clear()

    assert controller.raw.text == ""
    assert controller.rendered.text == ""
    assert controller.raw_text == ""
    assert controller.sentence_count == 0
    assert controller.generation == request.generation + 1
    assert controller.state.suppressed(Surface.RAW) == 0
    assert controller.state.suppressed(Surface.RENDERED) == 0
    assert recorder.of_type(events.DocumentCleared)[0].generation == controller.generation
    assert recorder.events[-1] == events.DocumentRendered(sentence_count=0, provisional_count=0, word_count=0)

    assert not controller.receive_annotation(request.generation, annotation_payload("One.", "Two"))
    assert controller.sentence_count == 0

    controller.raw.type_text("Fresh.")
    assert controller.rendered.text == "Fresh."


# =============================================================================
# Words, synonyms and navigation
# =============================================================================


@pytest.fixture
def annotated(controller: SyncController) -> SyncController:
    controller.raw.type_text("The quick fox.")
    request = controller.issue_annotation_request()
    payload = {
        "sentences": [
            [
                annotated_word("The", "NP"),
                annotated_word("quick", "AdjP", ["fast", "swift"]),
                annotated_word("fox.", "NP"),
            ]
        ]
    }
    assert controller.receive_annotation(request.generation, payload)
    return controller


class TestWords:
    """Tests for word clicks and synonym replacement."""

    def test_word_click_publishes_synonyms(self, annotated: SyncController, event_bus: events.EventBus) -> None:
        """Clicks resolve against the document at click time."""
        recorder = EventRecorder(event_bus, events.SynonymsRequested)

        event = annotated.word_clicked(1, 2)

        assert event is not None
        assert event.synonyms == ("fast", "swift")
        assert event.sentence_text == "The quick fox."
        assert recorder.events == [event]

    def test_click_offset_maps_to_word(self, annotated: SyncController) -> None:
        """Offsets on the rendered surface resolve through its layout."""
        event = annotated.word_clicked_at(5)
        assert event is not None
        assert (event.sentence_index, event.word_index) == (1, 2)

    @pytest.mark.parametrize(("sentence", "word"), [(2, 1), (1, 9), (0, 0)])
    def test_unknown_word_is_ignored(self, annotated: SyncController, sentence: int, word: int) -> None:
        """Out-of-range indices publish nothing."""
        assert annotated.word_clicked(sentence, word) is None

    def test_apply_synonym_updates_both_surfaces(self, annotated: SyncController) -> None:
        """The chosen synonym replaces the word in the document and in raw text."""
        annotated.apply_synonym(1, 2, "fast")

        assert annotated.raw_text == "The fast fox."
        assert annotated.raw.text == "The fast fox."
        assert annotated.rendered.text == "The fast fox."
        word = annotated.document.word_at(1, 2)
        assert (word.text, word.type) == ("fast", "AdjP")

    def test_synonym_for_missing_word_is_ignored(self, annotated: SyncController) -> None:
        """Indices with no word leave everything untouched."""
        annotated.apply_synonym(4, 1, "nothing")
        assert annotated.raw_text == "The quick fox."


def test_step_active_sentence_clamps(controller: SyncController) -> None:
    assert controller.step_active_sentence(1) is None

    controller.raw.type_text("One. Two.")
    assert controller.active_sentence == 2
    assert controller.step_active_sentence(-1) == 1
    assert controller.step_active_sentence(5) == 2
    assert controller.step_active_sentence(-10) == 1


# =============================================================================
# Decorations and freezing
# =============================================================================


def test_toggle_freeze_decorates_both_surfaces(controller: SyncController, event_bus: events.EventBus) -> None:
    recorder = EventRecorder(event_bus, events.FrozenSetChanged)
    controller.raw.type_text("We need due process.")

    result = controller.toggle_freeze("Due Process")

    assert result.frozen
    assert controller.decorations(Surface.RAW).spans(DecorationKind.FROZEN) == ((8, 19),)
    assert controller.decorations(Surface.RENDERED).spans(DecorationKind.FROZEN) == ((8, 19),)
    assert recorder.events[0].term == "due process"
    assert recorder.events[0].frozen_set.has("due process")

    controller.toggle_freeze("due process")
    assert controller.decorations(Surface.RAW).spans(DecorationKind.FROZEN) == ()


def test_freeze_without_capability_is_denied(
    controller: SyncController, freeze_manager: FreezeSetManager, event_bus: events.EventBus
) -> None:
    recorder = EventRecorder(event_bus, events.FreezeDenied, events.FrozenSetChanged)
    freeze_manager.set_capability(False)
    controller.raw.type_text("We need due process.")

    result = controller.toggle_freeze("due process")

    assert result.denied
    assert [type(event) for event in recorder.events] == [events.FreezeDenied]
    assert controller.decorations(Surface.RAW).spans(DecorationKind.FROZEN) == ()


def test_failing_capability_provider_is_treated_as_denied(event_bus: events.EventBus) -> None:
    def unavailable() -> bool:
        raise RuntimeError("plan service down")

    controller = SyncController(event_bus=event_bus, freeze_manager=FreezeSetManager(can_freeze=unavailable))
    recorder = EventRecorder(event_bus, events.FreezeDenied, events.FrozenSetChanged)
    controller.raw.type_text("We need due process.")

    result = controller.toggle_freeze("due process")

    assert result.denied
    assert not controller.freeze_manager.has("due process")
    assert [type(event) for event in recorder.events] == [events.FreezeDenied]
    assert recorder.events[0].term == "due process"
    assert "plan service down" in str(result.error.details["cause"])


def test_blank_term_toggle_changes_nothing(controller: SyncController, event_bus: events.EventBus) -> None:
    recorder = EventRecorder(event_bus, events.FreezeDenied, events.FrozenSetChanged)
    before = controller.freeze_manager.frozen_set

    result = controller.toggle_freeze("   ")

    assert not result.denied
    assert not result.frozen
    assert controller.freeze_manager.frozen_set is before
    assert recorder.events == []


def test_word_limit_marks_overflow(event_bus: events.EventBus) -> None:
    controller = SyncController(event_bus=event_bus, word_limit=2)
    controller.raw.focus()
    controller.raw.type_text("one two three")

    assert controller.decorations(Surface.RAW).spans(DecorationKind.OVERFLOW) == ((8, 13),)
    assert controller.decorations(Surface.RENDERED).spans(DecorationKind.OVERFLOW) == ((8, 13),)


def test_from_settings_seeds_frozen_terms(event_bus: events.EventBus) -> None:
    settings = Settings(word_limit=1, language="Bangla", can_freeze=False)
    terms = ProtectedTerms(words=("bail",), phrases=("due process",))

    controller = SyncController.from_settings(settings, terms=terms, event_bus=event_bus)

    assert controller.language == "Bangla"
    assert controller.state.delimiter == "। "
    assert controller.state.word_limit == 1
    assert controller.freeze_manager.has("due process")
    assert not controller.freeze_manager.can_freeze


# =============================================================================
# Failure containment
# =============================================================================


class TestFailureContainment:
    """Tests for errors raised inside the driver."""

    def test_failed_write_releases_suppression(self, controller: SyncController) -> None:
        """The next real edit of the surface is not swallowed."""
        calls: list[Any] = []

        def broken(tree: Any) -> None:
            calls.append(tree)
            if len(calls) == 1:
                raise RuntimeError("widget gone")

        controller.rendered.add_content_listener(broken)

        controller.raw.type_text("One.")

        assert controller.state.suppressed(Surface.RENDERED) == 0
        controller.rendered.user_edit("One. More")
        assert controller.raw_text == "One. More"

    def test_failing_bus_handler_does_not_escape(
        self, controller: SyncController, event_bus: events.EventBus
    ) -> None:
        """Subscribers cannot break a dispatch."""

        def explode(event: events.Event) -> None:
            raise ValueError("boom")

        event_bus.subscribe(events.DocumentRendered, explode)

        controller.raw.type_text("One.")

        assert controller.rendered.text == "One."

    def test_reducer_failure_returns_none(self, controller: SyncController) -> None:
        """A rejected action leaves the state untouched."""
        before = controller.state
        assert controller.dispatch(object()) is None  # type: ignore[arg-type]
        assert controller.state is before


def test_clear_writes_are_marked_internal() -> None:
    transition = reduce(SyncState(raw_text="x", focus=FocusState.RAW_FOCUSED), ClearRequested())
    assert all(isinstance(write, SurfaceWrite) and write.internal for write in transition.writes)
    assert {write.surface for write in transition.writes} == {Surface.RAW, Surface.RENDERED}
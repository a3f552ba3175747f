"""Sync controller: keeps the raw and rendered surfaces consistent.

The controller is split in two:

* :func:`reduce` is a pure ``(state, action) -> Transition`` function. It
  owns every decision (provisional growth, which surface may be written,
  echo suppression, stale and malformed annotation handling).
* :class:`SyncController` is the driver. It turns adapter notifications
  into actions, executes the resulting writes against the two
  :class:`~twinpane.editor.surface.SurfaceAdapter` instances, publishes
  events on the bus, and reapplies decorations after every transition.

The driver is the only writer to both adapters.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from functools import partial
from typing import Any, Callable, Iterable

from ...editor.decorations import DecorationEngine, DecorationOptions, DecorationSet
from ...editor.document_model import Document, SelectionRange
from ...editor.freeze import FreezeSetManager, ToggleResult, normalize_term
from ...editor.layout import layout_raw_text
from ...editor.render import RenderTree, render_document, render_raw
from ...editor.segmenter import ENGLISH, delimiter_for, segment, segment_spans
from ...editor.sentence_tracker import SentenceIndexTracker
from ...editor.surface import FocusState, Surface, SurfaceAdapter
from ...errors import MalformedAnnotationError, StaleResultError, UnauthorizedFreezeError
from ...services.annotation import AnnotationRequest, parse_annotation
from ...services.settings import Settings
from ...services.terms import ProtectedTerms
from .. import events
from ..models.sync_models import (
    Action,
    ActiveSentenceChanged,
    ActiveSentenceStepped,
    AnnotationArrived,
    AnnotationRequested,
    ClearRequested,
    Effect,
    FocusChanged,
    FrozenSetReplaced,
    RawTextEdited,
    RenderedTextEdited,
    Signature,
    SurfaceWrite,
    SynonymApplied,
    SyncState,
    Transition,
)

LOGGER = logging.getLogger(__name__)

DEFERRED_FOCUSED = "focused"
DEFERRED_COUNT = "sentence-count"


# =============================================================================
# Reducer
# =============================================================================


def reduce(state: SyncState, action: Action) -> Transition:
    """Apply ``action`` to ``state`` and return the new state plus effects."""

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unsupported sync action: {type(action).__name__}")
    return handler(state, action)


def raw_tree(state: SyncState) -> RenderTree:
    return render_raw(state.raw_text, delimiter=state.delimiter, active_sentence=state.active_sentence)


def rendered_tree(state: SyncState) -> RenderTree:
    return render_document(state.document, active_sentence=state.active_sentence, dark=state.dark)


def _typed_signature(text: str, delimiter: str) -> Signature:
    """Signature of a surface showing ``text`` exactly as the user typed it."""

    count = len(segment_spans(text, delimiter))
    return (text, tuple((index, ()) for index in range(1, count + 1)))


def _swallow(state: SyncState, surface: Surface) -> Transition:
    LOGGER.debug("Swallowed echo of programmatic write to %s surface", surface.value)
    return Transition(state.with_suppress(surface, -1))


def _on_raw_edit(state: SyncState, action: RawTextEdited) -> Transition:
    if state.suppressed(Surface.RAW):
        return _swallow(state, Surface.RAW)
    state = replace(state, raw_text=action.text)
    state = state.with_shown(Surface.RAW, _typed_signature(action.text, state.delimiter))
    return _reconcile(state)


def _on_rendered_edit(state: SyncState, action: RenderedTextEdited) -> Transition:
    """Adopt text typed into the rendered surface as the new raw text.

    Leading annotated sentences whose displayed text is unchanged keep their
    annotation; everything from the first edited sentence on becomes
    provisional until the next annotation round-trip.
    """

    if state.suppressed(Surface.RENDERED):
        return _swallow(state, Surface.RENDERED)
    displayed = rendered_tree(replace(state, active_sentence=None)).layout
    old_texts = [span.slice(displayed.text) for span in displayed.sentence_spans]
    new_texts = [action.text[start:end] for start, end in segment_spans(action.text, state.delimiter)]
    limit = min(state.document.authoritative_count, len(new_texts))
    keep = 0
    while keep < limit and old_texts[keep] == new_texts[keep]:
        keep += 1
    document = Document(sentences=state.document.sentences[:keep])
    state = replace(state, raw_text=action.text, document=document)
    state = state.with_shown(Surface.RENDERED, _typed_signature(action.text, state.delimiter))
    return _reconcile(state)


def _on_annotation_requested(state: SyncState, action: AnnotationRequested) -> Transition:
    generation = state.generation + 1
    state = replace(state, generation=generation)
    sentences = segment(state.raw_text, state.delimiter)
    return Transition(state, (events.AnnotationRequested(generation=generation, sentences=sentences),))


def _on_annotation_arrived(state: SyncState, action: AnnotationArrived) -> Transition:
    if action.generation != state.generation:
        LOGGER.debug("%s", StaleResultError(received=action.generation, current=state.generation))
        return Transition(state, (events.AnnotationDiscarded(generation=action.generation, reason="stale"),))
    try:
        result = parse_annotation(action.payload)
        document = state.document.replace_sentences(result.sentences, start=result.start)
    except (MalformedAnnotationError, IndexError) as exc:
        LOGGER.warning("Discarding malformed annotation for generation %s: %s", action.generation, exc)
        discarded = events.AnnotationDiscarded(generation=action.generation, reason="malformed", detail=str(exc))
        return Transition(replace(state, degraded=True), (discarded,))
    LOGGER.debug(
        "Applying annotation generation=%s sentences=%d start=%s",
        action.generation,
        result.sentence_count,
        result.start,
    )
    transition = _reconcile(replace(state, document=document, degraded=False))
    applied = events.AnnotationApplied(generation=action.generation, sentence_count=result.sentence_count)
    return Transition(transition.state, (applied,) + transition.effects)


def _on_focus(state: SyncState, action: FocusChanged) -> Transition:
    if action.focused:
        focus = FocusState.for_surface(action.surface)
    elif state.focus.holds(action.surface):
        focus = FocusState.NEITHER
    else:
        focus = state.focus
    return _reconcile(replace(state, focus=focus))


def _set_active(state: SyncState, index: int | None, source: Surface | None) -> Transition:
    if index == state.active_sentence:
        return Transition(state)
    state = replace(state, active_sentence=index)
    transition = _reconcile(state)
    changed = events.ActiveSentenceChanged(index=index, source=source)
    return Transition(transition.state, (changed,) + transition.effects)


def _on_active_changed(state: SyncState, action: ActiveSentenceChanged) -> Transition:
    index = action.index if action.index > 0 else None
    return _set_active(state, index, action.source)


def _on_active_stepped(state: SyncState, action: ActiveSentenceStepped) -> Transition:
    count = state.document.sentence_count
    if count == 0:
        return _set_active(state, None, None)
    current = state.active_sentence or 0
    return _set_active(state, max(1, min(current + action.delta, count)), None)


def _on_frozen_replaced(state: SyncState, action: FrozenSetReplaced) -> Transition:
    return Transition(replace(state, frozen=action.frozen))


def _on_clear(state: SyncState, action: ClearRequested) -> Transition:
    generation = state.generation + 1
    state = replace(
        state,
        raw_text="",
        document=Document.empty(),
        active_sentence=None,
        generation=generation,
        pending=frozenset(),
        degraded=False,
    )
    effects: list[Effect] = []
    for surface, tree in ((Surface.RAW, raw_tree(state)), (Surface.RENDERED, rendered_tree(state))):
        state = state.with_suppress(surface, 1).with_shown(surface, tree.signature())
        effects.append(SurfaceWrite(surface=surface, tree=tree, internal=True))
    effects.append(events.DocumentCleared(generation=generation))
    effects.append(events.DocumentRendered(sentence_count=0, provisional_count=0, word_count=0))
    return Transition(state, tuple(effects))


def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)")


def _splice_raw_word(state: SyncState, sentence_index: int, word_index: int, old: str, new: str) -> str:
    """Swap the matching occurrence of ``old`` inside raw sentence ``sentence_index``."""

    span = layout_raw_text(state.raw_text, state.delimiter).sentence_span(sentence_index)
    sentence = state.document.sentence(sentence_index)
    if span is None or sentence is None or not old:
        return state.raw_text
    occurrence = sum(1 for word in sentence.words[: word_index - 1] if word.text == old)
    matches = list(_word_pattern(old).finditer(state.raw_text, span.start, span.end))
    if occurrence >= len(matches):
        return state.raw_text
    match = matches[occurrence]
    return state.raw_text[: match.start()] + new + state.raw_text[match.end() :]


def _on_synonym(state: SyncState, action: SynonymApplied) -> Transition:
    sentence = state.document.sentence(action.sentence_index)
    word = state.document.word_at(action.sentence_index, action.word_index)
    if sentence is None or word is None:
        LOGGER.debug("No word at %s:%s; synonym ignored", action.sentence_index, action.word_index)
        return Transition(state)
    raw_text = _splice_raw_word(state, action.sentence_index, action.word_index, word.text, action.text)
    updated = sentence.replace_word(action.word_index, word.with_text(action.text))
    document = state.document.replace_sentence(action.sentence_index, updated)
    return _reconcile(replace(state, raw_text=raw_text, document=document))


def _reconcile(state: SyncState) -> Transition:
    """Bring the document in line with the raw text and push what may be pushed."""

    effects: list[Effect] = []
    spans = segment_spans(state.raw_text, state.delimiter)
    raw_count = len(spans)
    annotated_count = state.document.authoritative_count

    if raw_count > annotated_count:
        tail = [state.raw_text[start:end] for start, end in spans[annotated_count:]]
        document = state.document.with_provisional(tail)
    else:
        document = state.document.authoritative()
    if document != state.document:
        effects.append(
            events.DocumentRendered(
                sentence_count=document.sentence_count,
                provisional_count=document.sentence_count - document.authoritative_count,
                word_count=document.word_count,
            )
        )
    active = state.active_sentence
    if active is not None and active > max(raw_count, document.sentence_count):
        active = None
    state = replace(state, document=document, active_sentence=active)

    pending = set(state.pending)
    targets = (
        (Surface.RAW, raw_tree(state), raw_count == annotated_count),
        (Surface.RENDERED, rendered_tree(state), document.sentence_count == raw_count),
    )
    for surface, tree, counts_match in targets:
        signature = tree.signature()
        if signature == state.shown.get(surface):
            pending.discard(surface)
            continue
        if state.is_focused(surface) or not counts_match:
            if surface not in pending:
                reason = DEFERRED_FOCUSED if state.is_focused(surface) else DEFERRED_COUNT
                effects.append(events.SurfaceDeferred(surface=surface, reason=reason))
                pending.add(surface)
            continue
        pending.discard(surface)
        state = state.with_suppress(surface, 1).with_shown(surface, signature)
        effects.append(SurfaceWrite(surface=surface, tree=tree))
        effects.append(events.SurfacePushed(surface=surface, sentence_count=len(tree.sentences)))

    return Transition(replace(state, pending=frozenset(pending)), tuple(effects))


_HANDLERS: dict[type[Action], Callable[[SyncState, Any], Transition]] = {
    RawTextEdited: _on_raw_edit,
    RenderedTextEdited: _on_rendered_edit,
    AnnotationRequested: _on_annotation_requested,
    AnnotationArrived: _on_annotation_arrived,
    FocusChanged: _on_focus,
    ActiveSentenceChanged: _on_active_changed,
    ActiveSentenceStepped: _on_active_stepped,
    FrozenSetReplaced: _on_frozen_replaced,
    ClearRequested: _on_clear,
    SynonymApplied: _on_synonym,
}


# =============================================================================
# Driver
# =============================================================================


class SyncController:
    """Drives :func:`reduce` against two surface adapters.

    Nothing raised by the reducer, an adapter or a bus handler escapes to
    the caller; failures are logged and the raw surface stays editable.
    """

    def __init__(
        self,
        raw: SurfaceAdapter | None = None,
        rendered: SurfaceAdapter | None = None,
        *,
        event_bus: events.EventBus | None = None,
        freeze_manager: FreezeSetManager | None = None,
        word_limit: int | None = None,
        language: str = ENGLISH,
        dark: bool = False,
    ) -> None:
        self.language = language
        delimiter = delimiter_for(language)
        builder = partial(layout_raw_text, delimiter=delimiter)
        self._adapters: dict[Surface, SurfaceAdapter] = {
            Surface.RAW: raw or SurfaceAdapter(Surface.RAW, layout_builder=builder),
            Surface.RENDERED: rendered or SurfaceAdapter(Surface.RENDERED, layout_builder=builder),
        }
        self._trackers: dict[Surface, SentenceIndexTracker] = {
            surface: SentenceIndexTracker(surface.value) for surface in Surface
        }
        self._engines: dict[Surface, DecorationEngine] = {surface: DecorationEngine() for surface in Surface}
        self._bus = event_bus or events.EventBus()
        self._freeze = freeze_manager or FreezeSetManager()
        self._state = SyncState(
            frozen=self._freeze.frozen_set,
            word_limit=word_limit,
            delimiter=delimiter,
            dark=dark,
        )

        for surface, adapter in self._adapters.items():
            adapter.add_text_listener(self._on_text)
            adapter.add_selection_listener(self._on_selection)
            adapter.add_focus_listener(self._on_focus)
            self._trackers[surface].add_listener(partial(self._on_tracked_sentence, surface))
        self._sync_trackers()
        self._refresh_decorations()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        terms: ProtectedTerms | None = None,
        can_freeze: Callable[[], bool] | bool | None = None,
        event_bus: events.EventBus | None = None,
        raw: SurfaceAdapter | None = None,
        rendered: SurfaceAdapter | None = None,
    ) -> SyncController:
        """Build a controller configured from ``settings`` and protected ``terms``."""

        freeze = FreezeSetManager(can_freeze=settings.can_freeze if can_freeze is None else can_freeze)
        if terms is not None:
            freeze.seed(terms.words, terms.phrases)
        return cls(
            raw,
            rendered,
            event_bus=event_bus,
            freeze_manager=freeze,
            word_limit=settings.word_limit,
            language=settings.language,
            dark=settings.dark_mode,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def document(self) -> Document:
        return self._state.document

    @property
    def raw_text(self) -> str:
        return self._state.raw_text

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def degraded(self) -> bool:
        return self._state.degraded

    @property
    def active_sentence(self) -> int | None:
        return self._state.active_sentence

    @property
    def sentence_count(self) -> int:
        return self._state.document.sentence_count

    @property
    def word_count(self) -> int:
        return self._state.document.word_count

    @property
    def raw(self) -> SurfaceAdapter:
        return self._adapters[Surface.RAW]

    @property
    def rendered(self) -> SurfaceAdapter:
        return self._adapters[Surface.RENDERED]

    @property
    def event_bus(self) -> events.EventBus:
        return self._bus

    @property
    def freeze_manager(self) -> FreezeSetManager:
        return self._freeze

    def adapter(self, surface: Surface) -> SurfaceAdapter:
        return self._adapters[surface]

    def tracker(self, surface: Surface) -> SentenceIndexTracker:
        return self._trackers[surface]

    def decorations(self, surface: Surface) -> DecorationSet:
        return self._adapters[surface].decorations

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, action: Action) -> Transition | None:
        """Run ``action`` through the reducer and execute its effects."""

        try:
            transition = reduce(self._state, action)
        except Exception:
            LOGGER.exception("Sync reducer failed for %s", type(action).__name__)
            return None
        self._state = transition.state
        self._run_effects(transition.effects)
        self._sync_trackers()
        self._refresh_decorations()
        return transition

    def _run_effects(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, SurfaceWrite):
                self._write(effect)
            else:
                self._bus.publish(effect)

    def _write(self, effect: SurfaceWrite) -> None:
        surface = effect.surface
        owed = self._state.suppressed(surface)
        try:
            self._adapters[surface].set_content(effect.tree)
        except Exception:
            LOGGER.exception("Failed to write %s surface", surface.value)
            # no echo arrived for this write
            if self._state.suppressed(surface) == owed:
                self._state = self._state.with_suppress(surface, -1)

    def _sync_trackers(self) -> None:
        focus = self._state.focus
        for surface, tracker in self._trackers.items():
            tracker.set_enabled(not focus.holds(surface.other))

    def _refresh_decorations(self) -> None:
        options = DecorationOptions(
            limit=self._state.word_limit,
            frozen=self._state.frozen,
            active_sentence=self._state.active_sentence,
        )
        for surface, adapter in self._adapters.items():
            try:
                adapter.apply_decorations(self._engines[surface].compute(adapter.layout, options))
            except Exception:
                LOGGER.exception("Failed to decorate %s surface", surface.value)

    # ------------------------------------------------------------------
    # Adapter notifications
    # ------------------------------------------------------------------
    def _on_text(self, surface: Surface, text: str) -> None:
        if surface is Surface.RAW:
            self.dispatch(RawTextEdited(text))
        else:
            self.dispatch(RenderedTextEdited(text))

    def _on_selection(self, surface: Surface, selection: SelectionRange) -> None:
        try:
            self._trackers[surface].on_selection(selection, self._adapters[surface].layout)
        except Exception:
            LOGGER.exception("Sentence tracking failed on %s surface", surface.value)

    def _on_tracked_sentence(self, surface: Surface, index: int) -> None:
        self.dispatch(ActiveSentenceChanged(index=index, source=surface))

    def _on_focus(self, surface: Surface, focused: bool) -> None:
        self.dispatch(FocusChanged(surface=surface, focused=focused))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def issue_annotation_request(self) -> AnnotationRequest:
        """Bump the generation and describe the raw text to annotate."""

        self.dispatch(AnnotationRequested())
        return AnnotationRequest(
            generation=self._state.generation,
            text=self._state.raw_text,
            sentences=segment(self._state.raw_text, self._state.delimiter),
            language=self.language,
        )

    def receive_annotation(self, generation: int, payload: Any) -> bool:
        """Hand an annotation payload to the reducer; ``True`` when applied."""

        transition = self.dispatch(AnnotationArrived(generation=generation, payload=payload))
        if transition is None:
            return False
        return any(isinstance(effect, events.AnnotationApplied) for effect in transition.effects)

    def clear(self) -> None:
        self.dispatch(ClearRequested())

    def word_clicked(self, sentence_index: int, word_index: int) -> events.SynonymsRequested | None:
        """Publish the synonyms of a rendered word, looked up at click time."""

        word = self._state.document.word_at(sentence_index, word_index)
        if word is None:
            LOGGER.debug("Click on %s:%s resolved to no word", sentence_index, word_index)
            return None
        sentence = self._state.document.sentence(sentence_index)
        event = events.SynonymsRequested(
            synonyms=word.synonyms,
            sentence_index=sentence_index,
            word_index=word_index,
            sentence_text=sentence.text() if sentence is not None else "",
        )
        self._bus.publish(event)
        return event

    def word_clicked_at(self, offset: int) -> events.SynonymsRequested | None:
        position = self.rendered.word_at(offset)
        if position is None:
            return None
        return self.word_clicked(*position)

    def apply_synonym(self, sentence_index: int, word_index: int, text: str) -> None:
        self.dispatch(SynonymApplied(sentence_index=sentence_index, word_index=word_index, text=text))

    def step_active_sentence(self, delta: int) -> int | None:
        self.dispatch(ActiveSentenceStepped(delta=delta))
        return self._state.active_sentence

    def toggle_freeze(self, term: str) -> ToggleResult:
        """Toggle ``term`` in the frozen set, honoring the freeze capability."""

        key = normalize_term(term)
        if not key:
            return ToggleResult(frozen_set=self._freeze.frozen_set)
        try:
            result = self._freeze.toggle(key)
        except Exception as exc:
            LOGGER.exception("Freeze capability check failed for %r", key)
            result = ToggleResult(
                frozen_set=self._freeze.frozen_set,
                denied=True,
                frozen=self._freeze.has(key),
                error=UnauthorizedFreezeError(
                    message="Freeze capability is unavailable", details={"term": key, "cause": str(exc)}
                ),
            )
        if result.denied:
            reason = str(result.error) if result.error is not None else "denied"
            self._bus.publish(events.FreezeDenied(term=key, reason=reason))
            return result
        self.dispatch(FrozenSetReplaced(frozen=result.frozen_set))
        self._bus.publish(events.FrozenSetChanged(frozen_set=result.frozen_set, term=key, frozen=result.frozen))
        return result


__all__ = ["SyncController", "raw_tree", "reduce", "rendered_tree"]

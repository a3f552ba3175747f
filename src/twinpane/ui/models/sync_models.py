"""State, actions and effects of the sync reducer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Union

from ...editor.document_model import Document
from ...editor.freeze import FrozenSet
from ...editor.render import RenderTree
from ...editor.segmenter import DEFAULT_DELIMITER
from ...editor.surface import FocusState, Surface
from ..events import Event

Signature = tuple[Any, ...]

_NO_COUNTS: Mapping[Surface, int] = {Surface.RAW: 0, Surface.RENDERED: 0}

# What an empty surface displays; matches the signature of an empty render tree
EMPTY_SIGNATURE: Signature = ("", ())


@dataclass(slots=True, frozen=True)
class SyncState:
    """Everything the reducer needs to decide what each surface should show.

    Attributes:
        raw_text: Current content of the raw surface.
        document: Canonical document, provisional tail included.
        focus: Which surface holds keyboard focus.
        active_sentence: 1-based active sentence, ``None`` when there is none.
        generation: Last issued annotation request generation.
        frozen: Frozen terms used for decorations.
        word_limit: Overflow threshold, ``None`` disables the rule.
        delimiter: Sentence delimiter of the current language.
        dark: Whether the rendered surface uses dark tag colors.
        pending: Surfaces with a push held back this cycle.
        suppress: Programmatic writes whose change notification is still due.
        shown: Signature of what each surface currently displays.
        degraded: Set after a malformed payload, cleared by the next valid one.
    """

    raw_text: str = ""
    document: Document = field(default_factory=Document)
    focus: FocusState = FocusState.NEITHER
    active_sentence: int | None = None
    generation: int = 0
    frozen: FrozenSet = field(default_factory=FrozenSet)
    word_limit: int | None = None
    delimiter: str = DEFAULT_DELIMITER
    dark: bool = False
    pending: frozenset[Surface] = frozenset()
    suppress: Mapping[Surface, int] = field(default_factory=lambda: dict(_NO_COUNTS))
    shown: Mapping[Surface, Signature | None] = field(
        default_factory=lambda: {Surface.RAW: EMPTY_SIGNATURE, Surface.RENDERED: EMPTY_SIGNATURE}
    )
    degraded: bool = False

    def suppressed(self, surface: Surface) -> int:
        return self.suppress.get(surface, 0)

    def with_suppress(self, surface: Surface, delta: int) -> SyncState:
        counts = dict(self.suppress)
        counts[surface] = max(0, counts.get(surface, 0) + delta)
        return replace(self, suppress=counts)

    def with_shown(self, surface: Surface, signature: Signature | None) -> SyncState:
        shown = dict(self.shown)
        shown[surface] = signature
        return replace(self, shown=shown)

    def is_focused(self, surface: Surface) -> bool:
        return self.focus.holds(surface)


# =============================================================================
# Actions
# =============================================================================


@dataclass(slots=True, frozen=True)
class Action:
    """Base class for reducer inputs."""


@dataclass(slots=True, frozen=True)
class RawTextEdited(Action):
    text: str


@dataclass(slots=True, frozen=True)
class RenderedTextEdited(Action):
    text: str


@dataclass(slots=True, frozen=True)
class AnnotationRequested(Action):
    """A new annotation request is being issued; bumps the generation."""


@dataclass(slots=True, frozen=True)
class AnnotationArrived(Action):
    generation: int
    payload: Any


@dataclass(slots=True, frozen=True)
class FocusChanged(Action):
    surface: Surface
    focused: bool


@dataclass(slots=True, frozen=True)
class ActiveSentenceChanged(Action):
    """Reported by a sentence tracker; ``-1`` means no active sentence."""

    index: int
    source: Surface | None = None


@dataclass(slots=True, frozen=True)
class FrozenSetReplaced(Action):
    frozen: FrozenSet


@dataclass(slots=True, frozen=True)
class ClearRequested(Action):
    pass


@dataclass(slots=True, frozen=True)
class SynonymApplied(Action):
    """Swap word ``word_index`` of sentence ``sentence_index`` for ``text`` (1-based)."""

    sentence_index: int
    word_index: int
    text: str


@dataclass(slots=True, frozen=True)
class ActiveSentenceStepped(Action):
    delta: int


# =============================================================================
# Effects
# =============================================================================


@dataclass(slots=True, frozen=True)
class SurfaceWrite:
    """Write ``tree`` into ``surface``; ``internal`` marks clear writes."""

    surface: Surface
    tree: RenderTree
    internal: bool = False


Effect = Union[SurfaceWrite, Event]


@dataclass(slots=True, frozen=True)
class Transition:
    state: SyncState
    effects: tuple[Effect, ...] = ()

    @property
    def writes(self) -> tuple[SurfaceWrite, ...]:
        return tuple(effect for effect in self.effects if isinstance(effect, SurfaceWrite))

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(effect for effect in self.effects if isinstance(effect, Event))


__all__ = [
    "Action",
    "ActiveSentenceChanged",
    "ActiveSentenceStepped",
    "AnnotationArrived",
    "AnnotationRequested",
    "ClearRequested",
    "EMPTY_SIGNATURE",
    "Effect",
    "FocusChanged",
    "FrozenSetReplaced",
    "RawTextEdited",
    "RenderedTextEdited",
    "Signature",
    "SurfaceWrite",
    "SynonymApplied",
    "SyncState",
    "Transition",
]

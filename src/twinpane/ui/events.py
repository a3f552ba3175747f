"""Event bus and the events the sync core publishes to its collaborators.

Collaborators outside the core (synonym picker, persistence, status chrome,
annotation transport) subscribe here instead of holding references to the
controller. Delivery is synchronous, on the caller's thread, in subscription
order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Generic, List, TypeVar
from weakref import WeakMethod

from ..editor.freeze import FrozenSet
from ..editor.surface import Surface

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the bus."""

    # Quiet events are delivered without the per-publish debug line
    quiet: ClassVar[bool] = False


# =============================================================================
# Document & surface events
# =============================================================================


@dataclass(slots=True)
class DocumentRendered(Event):
    """The canonical document changed shape.

    Attributes:
        sentence_count: Sentences in the document, provisional ones included.
        provisional_count: Trailing sentences still awaiting annotation.
        word_count: Words across all sentences.
    """

    sentence_count: int
    provisional_count: int
    word_count: int


@dataclass(slots=True)
class SurfacePushed(Event):
    """The controller wrote fresh content into a surface."""

    surface: Surface
    sentence_count: int


@dataclass(slots=True)
class SurfaceDeferred(Event):
    """A push was held back because the target surface is being edited
    or its sentence count does not match the raw text yet."""

    surface: Surface
    reason: str


@dataclass(slots=True)
class DocumentCleared(Event):
    """Both surfaces and the document were reset by a clear request."""

    generation: int


@dataclass(slots=True)
class ActiveSentenceChanged(Event):
    """The active sentence moved (``None`` when no sentence is active)."""

    quiet: ClassVar[bool] = True

    index: int | None
    source: Surface | None = None


# =============================================================================
# Annotation events
# =============================================================================


@dataclass(slots=True)
class AnnotationRequested(Event):
    """A new annotation request was issued for the current raw text.

    Attributes:
        generation: Generation tag the result must carry back.
        sentences: Raw sentences sent to the annotator.
    """

    generation: int
    sentences: tuple[str, ...]


@dataclass(slots=True)
class AnnotationApplied(Event):
    generation: int
    sentence_count: int


@dataclass(slots=True)
class AnnotationDiscarded(Event):
    """An annotation payload was dropped.

    Attributes:
        generation: Generation carried by the payload.
        reason: ``"stale"`` or ``"malformed"``.
        detail: Validation message for malformed payloads.
    """

    generation: int
    reason: str
    detail: str = ""


# =============================================================================
# Word & freeze events
# =============================================================================


@dataclass(slots=True)
class SynonymsRequested(Event):
    """A word was clicked on the rendered surface.

    Indices are 1-based and were resolved against the canonical document
    at click time.
    """

    synonyms: tuple[str, ...]
    sentence_index: int
    word_index: int
    sentence_text: str = ""


@dataclass(slots=True)
class FrozenSetChanged(Event):
    """The frozen terms changed; consumed by the persistence collaborator."""

    frozen_set: FrozenSet
    term: str
    frozen: bool


@dataclass(slots=True)
class FreezeDenied(Event):
    """A freeze toggle was rejected for lack of capability."""

    term: str
    reason: str


# =============================================================================
# Bus
# =============================================================================


class _Slot:
    """One registration. Bound methods are held weakly, other callables strongly."""

    __slots__ = ("_target", "_weak")

    def __init__(self, handler: Handler) -> None:
        self._weak = False
        self._target: Any = handler
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                self._target = WeakMethod(handler)  # type: ignore[arg-type]
                self._weak = True
            except TypeError:
                # owner has no __weakref__ slot
                pass

    @property
    def handler(self) -> Handler | None:
        return self._target() if self._weak else self._target

    @property
    def alive(self) -> bool:
        return self.handler is not None

    def wraps(self, handler: Handler) -> bool:
        current = self.handler
        return current is not None and current == handler


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`; ``cancel()`` unregisters it."""

    __slots__ = ("_bus", "_event_type", "_slot")

    def __init__(self, bus: EventBus[Any], event_type: type[Event], slot: _Slot) -> None:
        self._bus = bus
        self._event_type = event_type
        self._slot = slot

    @property
    def active(self) -> bool:
        return self._bus._contains(self._event_type, self._slot)

    def cancel(self) -> None:
        self._bus._remove(self._event_type, self._slot)


class EventBus(Generic[E]):
    """Typed publish/subscribe bus.

    Subscribers whose owner has been garbage collected are pruned on the
    next publish, so windows and pickers never need to unsubscribe on
    teardown. A handler that raises is logged and the remaining handlers
    still run. Not thread-safe.
    """

    __slots__ = ("_slots",)

    def __init__(self) -> None:
        self._slots: Dict[type[Event], List[_Slot]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> Subscription:
        """Register ``handler``; subscribing twice means two deliveries."""

        slot = _Slot(handler)
        self._slots.setdefault(event_type, []).append(slot)
        logger.debug("%s subscribed to %s", _describe(handler), event_type.__name__)
        return Subscription(self, event_type, slot)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the oldest registration of ``handler``; unknown handlers are ignored."""

        for slot in self._slots.get(event_type, ()):
            if slot.wraps(handler):
                self._remove(event_type, slot)
                logger.debug("%s unsubscribed from %s", _describe(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        slots = self._slots.get(event_type)
        if not slots:
            return
        if not event.quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(slots))

        for slot in tuple(slots):
            handler = slot.handler
            if handler is None:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %s failed on %s", _describe(handler), event_type.__name__)

        live = [slot for slot in self._slots.get(event_type, ()) if slot.alive]
        if live:
            self._slots[event_type] = live
        else:
            self._slots.pop(event_type, None)

    def clear(self) -> None:
        self._slots.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._slots.get(event_type, ()))
        return sum(len(slots) for slots in self._slots.values())

    def _contains(self, event_type: type[Event], slot: _Slot) -> bool:
        return any(existing is slot for existing in self._slots.get(event_type, ()))

    def _remove(self, event_type: type[Event], slot: _Slot) -> None:
        slots = self._slots.get(event_type)
        if not slots:
            return
        remaining = [existing for existing in slots if existing is not slot]
        if remaining:
            self._slots[event_type] = remaining
        else:
            del self._slots[event_type]


def _describe(handler: Any) -> str:
    owner = getattr(handler, "__self__", None)
    func = getattr(handler, "__func__", None)
    if owner is not None and func is not None:
        return f"{type(owner).__name__}.{func.__name__}"
    return getattr(handler, "__qualname__", None) or repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "Subscription",
    # Document & surface events
    "DocumentRendered",
    "SurfacePushed",
    "SurfaceDeferred",
    "DocumentCleared",
    "ActiveSentenceChanged",
    # Annotation events
    "AnnotationRequested",
    "AnnotationApplied",
    "AnnotationDiscarded",
    # Word & freeze events
    "SynonymsRequested",
    "FrozenSetChanged",
    "FreezeDenied",
]

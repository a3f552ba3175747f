"""Highlight ranges derived from a surface layout.

Decorations are never stored. :func:`compute_decorations` recomputes the
whole set from the layout and :class:`DecorationOptions` in one pass:

1. word-limit overflow,
2. frozen phrases (longest first, alphabetical on equal length),
3. frozen words not already covered by a phrase,
4. duplicate sentences,
5. the active sentence.

Each rule produces disjoint ranges. Ranges from different rules may
overlap and are all reported. The output is sorted, so equal inputs give
equal outputs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from ..core.ranges import TextRange
from .freeze import FrozenSet
from .layout import SurfaceLayout

LOGGER = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\w+(?:['’/-]\w+)*")
SENTENCE_PATTERN = re.compile(r"[^.!?।]+[.!?।]+")


class DecorationKind(Enum):
    """Highlight classification; declaration order is the sort order."""

    OVERFLOW = "overflow"
    FROZEN = "frozen"
    DUPLICATE = "duplicate"
    ACTIVE = "active"


_KIND_ORDER = {kind: position for position, kind in enumerate(DecorationKind)}


@dataclass(slots=True, frozen=True)
class Decoration:
    """Half-open ``[start, end)`` highlight of one kind."""

    start: int
    end: int
    kind: DecorationKind

    @property
    def span(self) -> TextRange:
        return TextRange(self.start, self.end)

    def sort_key(self) -> tuple[int, int, int]:
        return (self.start, self.end, _KIND_ORDER[self.kind])


@dataclass(slots=True, frozen=True)
class DecorationOptions:
    """Configuration for one decoration pass."""

    limit: int | None = None
    frozen: FrozenSet = field(default_factory=FrozenSet)
    active_sentence: int | None = None

    @property
    def frozen_words(self) -> frozenset[str]:
        return self.frozen.words

    @property
    def frozen_phrases(self) -> frozenset[str]:
        return self.frozen.phrases


@dataclass(slots=True, frozen=True)
class DecorationSet:
    """Sorted, immutable collection of decorations."""

    items: tuple[Decoration, ...] = ()

    def __iter__(self) -> Iterator[Decoration]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def of_kind(self, kind: DecorationKind) -> tuple[Decoration, ...]:
        return tuple(item for item in self.items if item.kind is kind)

    def spans(self, kind: DecorationKind) -> tuple[tuple[int, int], ...]:
        return tuple((item.start, item.end) for item in self.items if item.kind is kind)


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(part) for part in phrase.split())
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def _ordered_phrases(phrases: frozenset[str]) -> list[str]:
    return sorted(phrases, key=lambda phrase: (-len(phrase), phrase))


def _overflow(text: str, limit: int | None) -> list[Decoration]:
    if limit is None:
        return []
    found: list[Decoration] = []
    for count, match in enumerate(WORD_PATTERN.finditer(text), start=1):
        if count > limit:
            found.append(Decoration(match.start(), match.end(), DecorationKind.OVERFLOW))
    return found


def _frozen(text: str, frozen: FrozenSet) -> list[Decoration]:
    if not text or not len(frozen):
        return []
    covered = bytearray(len(text))
    found: list[Decoration] = []
    for phrase in _ordered_phrases(frozen.phrases):
        for match in _phrase_pattern(phrase).finditer(text):
            start, end = match.span()
            if any(covered[start:end]):
                continue
            covered[start:end] = b"\x01" * (end - start)
            found.append(Decoration(start, end, DecorationKind.FROZEN))
    if frozen.words:
        for match in WORD_PATTERN.finditer(text):
            if match.group().lower() not in frozen.words:
                continue
            start, end = match.span()
            if any(covered[start:end]):
                continue
            covered[start:end] = b"\x01" * (end - start)
            found.append(Decoration(start, end, DecorationKind.FROZEN))
    return found


def _duplicates(text: str) -> list[Decoration]:
    groups: dict[str, list[tuple[int, int]]] = {}
    for match in SENTENCE_PATTERN.finditer(text):
        raw = match.group()
        normalized = raw.strip().lower()
        if not normalized:
            continue
        start = match.start() + (len(raw) - len(raw.lstrip()))
        end = match.end() - (len(raw) - len(raw.rstrip()))
        groups.setdefault(normalized, []).append((start, end))
    found: list[Decoration] = []
    for spans in groups.values():
        if len(spans) < 2:
            continue
        found.extend(Decoration(start, end, DecorationKind.DUPLICATE) for start, end in spans)
    return found


def _active(layout: SurfaceLayout, active_sentence: int | None) -> list[Decoration]:
    if active_sentence is None:
        return []
    span = layout.sentence_span(active_sentence)
    if span is None or span.is_caret:
        return []
    return [Decoration(span.start, span.end, DecorationKind.ACTIVE)]


def compute_decorations(layout: SurfaceLayout, options: DecorationOptions) -> DecorationSet:
    """Compute every decoration for ``layout``; pure and deterministic."""

    text = layout.text
    found = (
        _overflow(text, options.limit)
        + _frozen(text, options.frozen)
        + _duplicates(text)
        + _active(layout, options.active_sentence)
    )
    found.sort(key=Decoration.sort_key)
    return DecorationSet(items=tuple(found))


class DecorationEngine:
    """Memoizing front-end for :func:`compute_decorations`.

    Only the most recent ``(layout, options)`` pair is cached; both are
    immutable, so a hit is always valid.
    """

    def __init__(self) -> None:
        self._last_key: tuple[SurfaceLayout, DecorationOptions] | None = None
        self._last_result: DecorationSet | None = None
        self.hits = 0
        self.misses = 0

    def compute(self, layout: SurfaceLayout, options: DecorationOptions) -> DecorationSet:
        key = (layout, options)
        if self._last_key == key and self._last_result is not None:
            self.hits += 1
            return self._last_result
        self.misses += 1
        result = compute_decorations(layout, options)
        self._last_key = key
        self._last_result = result
        LOGGER.debug("Computed %d decorations for %d chars", len(result), len(layout.text))
        return result

    def reset(self) -> None:
        self._last_key = None
        self._last_result = None


__all__ = [
    "Decoration",
    "DecorationEngine",
    "DecorationKind",
    "DecorationOptions",
    "DecorationSet",
    "SENTENCE_PATTERN",
    "WORD_PATTERN",
    "compute_decorations",
]

"""Offset layouts describing the sentence and word nodes of a surface."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..core.ranges import TextRange
from .document_model import Document
from .segmenter import DEFAULT_DELIMITER, segment_spans

_ATTACHED_PUNCTUATION = re.compile(r"^[.,;?!]$")
_TOKEN = re.compile(r"\S+")


@dataclass(slots=True, frozen=True)
class SurfaceLayout:
    """Surface text plus the spans of its sentence and word nodes.

    ``sentence_spans[i]`` belongs to sentence ``i + 1``; ``word_spans[i][j]``
    to word ``j + 1`` of that sentence. Spans never include the separating
    whitespace between nodes.
    """

    text: str = ""
    sentence_spans: tuple[TextRange, ...] = ()
    word_spans: tuple[tuple[TextRange, ...], ...] = ()

    @property
    def sentence_count(self) -> int:
        return len(self.sentence_spans)

    def sentence_span(self, sentence_index: int) -> TextRange | None:
        if 1 <= sentence_index <= len(self.sentence_spans):
            return self.sentence_spans[sentence_index - 1]
        return None

    def sentence_at(self, offset: int) -> int:
        """Return the 1-based sentence containing ``offset`` or ``-1``.

        The end of a span counts as inside it, so a caret placed right after
        a sentence's final character still belongs to that sentence.
        """

        for index, span in enumerate(self.sentence_spans, start=1):
            if span.contains(offset, inclusive_end=True):
                return index
        return -1

    def word_at(self, offset: int) -> tuple[int, int] | None:
        """Return ``(sentence_index, word_index)`` of the word under ``offset``."""

        for s_index, spans in enumerate(self.word_spans, start=1):
            for w_index, span in enumerate(spans, start=1):
                if span.contains(offset):
                    return (s_index, w_index)
        return None


def _needs_leading_space(text: str, *, first: bool) -> bool:
    return not first and not _ATTACHED_PUNCTUATION.match(text)


def layout_document(document: Document) -> SurfaceLayout:
    """Lay out ``document`` the way the rendered surface displays it.

    Words are joined by single spaces; a standalone punctuation word attaches
    to the previous word without a space.
    """

    parts: list[str] = []
    cursor = 0
    sentence_spans: list[TextRange] = []
    word_spans: list[tuple[TextRange, ...]] = []
    first = True
    for sentence in document:
        spans: list[TextRange] = []
        sentence_start: int | None = None
        for word in sentence:
            if _needs_leading_space(word.text, first=first):
                parts.append(" ")
                cursor += 1
            first = False
            start = cursor
            parts.append(word.text)
            cursor += len(word.text)
            spans.append(TextRange(start, cursor))
            if sentence_start is None:
                sentence_start = start
        if sentence_start is None:
            sentence_start = cursor
        sentence_spans.append(TextRange(sentence_start, cursor))
        word_spans.append(tuple(spans))
    return SurfaceLayout(
        text="".join(parts),
        sentence_spans=tuple(sentence_spans),
        word_spans=tuple(word_spans),
    )


def layout_raw_text(text: str, delimiter: str = DEFAULT_DELIMITER) -> SurfaceLayout:
    """Lay out raw text using delimiter segmentation for the sentence nodes."""

    sentence_spans: list[TextRange] = []
    word_spans: list[tuple[TextRange, ...]] = []
    for start, end in segment_spans(text, delimiter):
        sentence_spans.append(TextRange(start, end))
        word_spans.append(
            tuple(TextRange(start + match.start(), start + match.end()) for match in _TOKEN.finditer(text[start:end]))
        )
    return SurfaceLayout(
        text=text,
        sentence_spans=tuple(sentence_spans),
        word_spans=tuple(word_spans),
    )


__all__ = ["SurfaceLayout", "layout_document", "layout_raw_text"]

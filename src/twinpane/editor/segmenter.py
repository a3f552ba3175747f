"""Sentence and word segmentation of raw text."""

from __future__ import annotations

from typing import Mapping

ENGLISH = "English"
BANGLA = "Bangla"

SENTENCE_DELIMITERS: Mapping[str, str] = {
    ENGLISH: ". ",
    BANGLA: "। ",
}
DEFAULT_DELIMITER = SENTENCE_DELIMITERS[ENGLISH]


def delimiter_for(language: str | None) -> str:
    """Return the sentence delimiter for ``language`` (English when unknown)."""

    if not language:
        return DEFAULT_DELIMITER
    for name, delimiter in SENTENCE_DELIMITERS.items():
        if name.lower() == language.strip().lower():
            return delimiter
    return DEFAULT_DELIMITER


def segment(raw_text: str, delimiter: str = DEFAULT_DELIMITER) -> tuple[str, ...]:
    """Split ``raw_text`` on ``delimiter`` and drop empty segments."""

    if not raw_text:
        return ()
    return tuple(part for part in raw_text.split(delimiter) if part.strip())


def segment_spans(raw_text: str, delimiter: str = DEFAULT_DELIMITER) -> tuple[tuple[int, int], ...]:
    """Return trimmed ``(start, end)`` offsets of every segment in ``raw_text``.

    The spans line up one-to-one with :func:`segment`. A segment keeps the
    terminating punctuation of the delimiter when the delimiter starts with
    one, so ``"One. Two."`` yields spans over ``"One."`` and ``"Two."``.
    """

    if not raw_text or not delimiter:
        return ()
    keep = len(delimiter.rstrip())
    spans: list[tuple[int, int]] = []
    cursor = 0
    length = len(raw_text)
    while cursor <= length:
        found = raw_text.find(delimiter, cursor)
        stop = length if found == -1 else found
        end = stop if found == -1 else found + keep
        start = cursor
        while start < end and raw_text[start].isspace():
            start += 1
        while end > start and raw_text[end - 1].isspace():
            end -= 1
        if raw_text[cursor:stop].strip():
            spans.append((start, end))
        if found == -1:
            break
        cursor = found + len(delimiter)
    return tuple(spans)


def sentence_count(raw_text: str, delimiter: str = DEFAULT_DELIMITER) -> int:
    return len(segment(raw_text, delimiter))


def tokenize(sentence: str) -> tuple[str, ...]:
    """Whitespace tokenization used for provisional words."""

    return tuple(sentence.split())


__all__ = [
    "BANGLA",
    "DEFAULT_DELIMITER",
    "ENGLISH",
    "SENTENCE_DELIMITERS",
    "delimiter_for",
    "segment",
    "segment_spans",
    "sentence_count",
    "tokenize",
]

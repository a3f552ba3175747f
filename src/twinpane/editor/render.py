"""Render trees handed to the rendering collaborator.

The tree is a pure set of rendering instructions: sentence nodes carrying
their index and active flag, and word nodes carrying positions, tag and
color class. Nothing in it is owned state; click handlers resolve words
against the canonical :class:`~twinpane.editor.document_model.Document`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..theme.palette import palette_for
from .document_model import Document
from .layout import SurfaceLayout, layout_document, layout_raw_text
from .segmenter import DEFAULT_DELIMITER

_TAG_CLASSES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"NP"), "tag-np"),
    (re.compile(r"VP"), "tag-vp"),
    (re.compile(r"PP|CP|AdvP|AdjP"), "tag-phrase"),
    (re.compile(r"freeze"), "tag-freeze"),
)
NO_TAG_CLASS = "tag-none"


def color_class(tag: str | None) -> str:
    """Map a grammatical tag to its color class (first matching rule wins)."""

    if not tag:
        return NO_TAG_CLASS
    for pattern, name in _TAG_CLASSES:
        if pattern.search(tag):
            return name
    return NO_TAG_CLASS


@dataclass(slots=True, frozen=True)
class WordNode:
    sentence_index: int
    word_index: int
    type: str
    color_class: str
    color: str
    text: str
    leading_space: bool
    cursor: str = "pointer"


@dataclass(slots=True, frozen=True)
class SentenceNode:
    index: int
    active: bool
    words: tuple[WordNode, ...] = ()
    text: str = ""


@dataclass(slots=True, frozen=True)
class RenderTree:
    """Root of a rendered surface."""

    sentences: tuple[SentenceNode, ...]
    layout: SurfaceLayout

    @property
    def text(self) -> str:
        return self.layout.text

    def signature(self) -> tuple[str, tuple[tuple[int, tuple[str, ...]], ...]]:
        """Value identifying what the surface would display, word colors included.

        The active flag is not part of it; the active highlight is delivered
        as a decoration.
        """

        return (
            self.layout.text,
            tuple((node.index, tuple(word.color_class for word in node.words)) for node in self.sentences),
        )


def render_document(document: Document, *, active_sentence: int | None = None, dark: bool = False) -> RenderTree:
    """Render the annotated document for the rendered surface."""

    layout = layout_document(document)
    palette = palette_for(dark)
    nodes: list[SentenceNode] = []
    for s_index, (sentence, spans) in enumerate(zip(document.sentences, layout.word_spans), start=1):
        words: list[WordNode] = []
        for w_index, (word, span) in enumerate(zip(sentence.words, spans), start=1):
            css_class = color_class(word.type)
            words.append(
                WordNode(
                    sentence_index=s_index,
                    word_index=w_index,
                    type=word.type,
                    color_class=css_class,
                    color=palette.tag_color(css_class),
                    text=word.text,
                    leading_space=span.start > 0 and layout.text[span.start - 1] == " ",
                )
            )
        nodes.append(SentenceNode(index=s_index, active=active_sentence == s_index, words=tuple(words)))
    return RenderTree(sentences=tuple(nodes), layout=layout)


def render_raw(raw_text: str, *, delimiter: str = DEFAULT_DELIMITER, active_sentence: int | None = None) -> RenderTree:
    """Wrap raw text into sentence nodes without word annotation."""

    layout = layout_raw_text(raw_text, delimiter)
    nodes = tuple(
        SentenceNode(index=index, active=active_sentence == index, text=span.slice(raw_text))
        for index, span in enumerate(layout.sentence_spans, start=1)
    )
    return RenderTree(sentences=nodes, layout=layout)


__all__ = [
    "NO_TAG_CLASS",
    "RenderTree",
    "SentenceNode",
    "WordNode",
    "color_class",
    "render_document",
    "render_raw",
]

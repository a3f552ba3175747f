"""Headless view adapters for the raw and rendered surfaces.

An adapter keeps the logical state of one editor surface (text, node
layout, selection, focus, applied decorations) and forwards notifications
to listeners. Widgets bind to it (see :mod:`twinpane.editor.qt_surface`);
tests drive it directly.

Contract: every content change, programmatic or typed, emits exactly one
text notification. The sync controller relies on this to swallow the echo
of its own writes.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Protocol

from .decorations import DecorationSet
from .document_model import SelectionRange
from .layout import SurfaceLayout, layout_raw_text
from .render import RenderTree

LOGGER = logging.getLogger(__name__)


class Surface(Enum):
    RAW = "raw"
    RENDERED = "rendered"

    @property
    def other(self) -> Surface:
        return Surface.RENDERED if self is Surface.RAW else Surface.RAW


class FocusState(Enum):
    """Which surface, if any, currently holds keyboard focus."""

    RAW_FOCUSED = "raw"
    RENDERED_FOCUSED = "rendered"
    NEITHER = "neither"

    @classmethod
    def for_surface(cls, surface: Surface) -> FocusState:
        return cls.RAW_FOCUSED if surface is Surface.RAW else cls.RENDERED_FOCUSED

    def holds(self, surface: Surface) -> bool:
        return self is FocusState.for_surface(surface)


class TextListener(Protocol):
    def __call__(self, surface: Surface, text: str) -> None:
        ...


class SelectionListener(Protocol):
    def __call__(self, surface: Surface, selection: SelectionRange) -> None:
        ...


class FocusListener(Protocol):
    def __call__(self, surface: Surface, focused: bool) -> None:
        ...


class SurfaceAdapter:
    """Thin, headless model of one editable surface."""

    def __init__(
        self,
        surface: Surface,
        *,
        layout_builder: Callable[[str], SurfaceLayout] = layout_raw_text,
    ) -> None:
        self.surface = surface
        self._layout_builder = layout_builder
        self._text = ""
        self._layout = SurfaceLayout()
        self._tree: RenderTree | None = None
        self._selection = SelectionRange()
        self._focused = False
        self._decorations = DecorationSet()
        self._last_change_source = "init"
        self._write_count = 0
        self._text_listeners: list[TextListener] = []
        self._selection_listeners: list[SelectionListener] = []
        self._focus_listeners: list[FocusListener] = []
        self._content_listeners: list[Callable[[RenderTree], None]] = []
        self._decoration_listeners: list[Callable[[DecorationSet], None]] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def text(self) -> str:
        return self._text

    @property
    def layout(self) -> SurfaceLayout:
        return self._layout

    @property
    def tree(self) -> RenderTree | None:
        """Last render tree written by the controller, ``None`` after typing."""

        return self._tree

    @property
    def selection(self) -> SelectionRange:
        return self._selection

    @property
    def focused(self) -> bool:
        return self._focused

    @property
    def decorations(self) -> DecorationSet:
        return self._decorations

    @property
    def last_change_source(self) -> str:
        return self._last_change_source

    @property
    def write_count(self) -> int:
        """Number of programmatic content writes received."""

        return self._write_count

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------
    def add_text_listener(self, listener: TextListener) -> None:
        self._text_listeners.append(listener)

    def add_selection_listener(self, listener: SelectionListener) -> None:
        self._selection_listeners.append(listener)

    def add_focus_listener(self, listener: FocusListener) -> None:
        self._focus_listeners.append(listener)

    def add_content_listener(self, listener: Callable[[RenderTree], None]) -> None:
        """Register a widget callback for programmatic writes."""

        self._content_listeners.append(listener)

    def add_decoration_listener(self, listener: Callable[[DecorationSet], None]) -> None:
        self._decoration_listeners.append(listener)

    # ------------------------------------------------------------------
    # Programmatic writes (sync controller only)
    # ------------------------------------------------------------------
    def set_content(self, tree: RenderTree) -> None:
        """Replace the surface content with ``tree``."""

        self._tree = tree
        self._layout = tree.layout
        self._text = tree.text
        self._write_count += 1
        self._last_change_source = "programmatic"
        caret = min(self._selection.caret, len(self._text))
        self._selection = SelectionRange(caret, caret)
        for listener in list(self._content_listeners):
            listener(tree)
        self._emit_text_changed()

    def apply_decorations(self, decorations: DecorationSet) -> None:
        """Apply a derived decoration overlay; content and caret are untouched."""

        if decorations == self._decorations:
            return
        self._decorations = decorations
        for listener in list(self._decoration_listeners):
            listener(decorations)

    # ------------------------------------------------------------------
    # Organic input (keystrokes, caret moves, focus)
    # ------------------------------------------------------------------
    def user_edit(self, text: str, *, caret: int | None = None) -> None:
        """Record text typed by the user."""

        self._text = text
        self._tree = None
        self._layout = self._layout_builder(text)
        self._last_change_source = "user"
        self._emit_text_changed()
        position = len(text) if caret is None else max(0, min(int(caret), len(text)))
        self.set_selection(position, position)

    def type_text(self, addition: str) -> None:
        """Append ``addition`` at the end of the surface, as if typed."""

        self.user_edit(self._text + addition)

    def set_selection(self, start: int, end: int | None = None) -> None:
        length = len(self._text)
        begin = max(0, min(int(start), length))
        finish = begin if end is None else max(0, min(int(end), length))
        if finish < begin:
            begin, finish = finish, begin
        self._selection = SelectionRange(begin, finish)
        for listener in list(self._selection_listeners):
            listener(self.surface, self._selection)

    def focus(self) -> None:
        if self._focused:
            return
        self._focused = True
        for listener in list(self._focus_listeners):
            listener(self.surface, True)

    def blur(self) -> None:
        if not self._focused:
            return
        self._focused = False
        for listener in list(self._focus_listeners):
            listener(self.surface, False)

    def word_at(self, offset: int) -> tuple[int, int] | None:
        return self._layout.word_at(offset)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _emit_text_changed(self) -> None:
        for listener in list(self._text_listeners):
            listener(self.surface, self._text)


__all__ = ["FocusState", "Surface", "SurfaceAdapter"]

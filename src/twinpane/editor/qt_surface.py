"""Bind a :class:`SurfaceAdapter` to a PySide6 ``QPlainTextEdit``.

The binding is the only place that touches Qt. Programmatic writes are
applied with the widget's signals blocked, so the adapter's own text
notification is the single echo the sync controller sees. Tag colors and
decorations are painted as extra selections; the document text itself is
never reformatted.
"""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import QEvent, QObject
from PySide6.QtGui import QColor, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QPlainTextEdit, QTextEdit

from ..theme.palette import INHERIT, Palette, palette_for
from .decorations import DecorationSet
from .render import RenderTree
from .surface import SurfaceAdapter


class QtSurfaceBinding(QObject):
    """Two-way bridge between one adapter and one text widget."""

    def __init__(
        self,
        adapter: SurfaceAdapter,
        editor: QPlainTextEdit,
        *,
        palette: Palette | None = None,
    ) -> None:
        super().__init__(editor)
        self._adapter = adapter
        self._editor = editor
        self._palette = palette or palette_for(False)
        self._applying = False

        adapter.add_content_listener(self._apply_content)
        adapter.add_decoration_listener(self._apply_decorations)
        editor.textChanged.connect(self._handle_text_changed)
        editor.cursorPositionChanged.connect(self._handle_cursor_changed)
        editor.installEventFilter(self)

        if adapter.text and editor.toPlainText() != adapter.text:
            self._write_text(adapter.text)

    @property
    def adapter(self) -> SurfaceAdapter:
        return self._adapter

    @property
    def editor(self) -> QPlainTextEdit:
        return self._editor

    @property
    def palette(self) -> Palette:
        return self._palette

    def set_palette(self, palette: Palette) -> None:
        self._palette = palette
        self._refresh_selections()

    # ------------------------------------------------------------------
    # Adapter -> widget
    # ------------------------------------------------------------------
    def _apply_content(self, tree: RenderTree) -> None:
        self._write_text(tree.text)
        self._refresh_selections()

    def _apply_decorations(self, decorations: DecorationSet) -> None:
        self._refresh_selections()

    def _write_text(self, text: str) -> None:
        caret = min(self._adapter.selection.caret, len(text))
        self._applying = True
        self._editor.blockSignals(True)
        try:
            self._editor.setPlainText(text)
            cursor = self._editor.textCursor()
            cursor.setPosition(caret)
            self._editor.setTextCursor(cursor)
        finally:
            self._editor.blockSignals(False)
            self._applying = False

    def _refresh_selections(self) -> None:
        selections: list[Any] = []
        tree = self._adapter.tree
        if tree is not None:
            for sentence in tree.sentences:
                for node in sentence.words:
                    if node.color == INHERIT:
                        continue
                    span = tree.layout.word_spans[node.sentence_index - 1][node.word_index - 1]
                    text_format = QTextCharFormat()
                    text_format.setForeground(QColor(node.color))
                    selections.append(self._selection_for(span.start, span.end, text_format))
        for decoration in self._adapter.decorations:
            red, green, blue = self._palette.decoration_color(decoration.kind.value)
            background = QTextCharFormat()
            background.setBackground(QColor(red, green, blue))
            selections.append(self._selection_for(decoration.start, decoration.end, background))
        self._editor.setExtraSelections(selections)

    def _selection_for(self, start: int, end: int, text_format: QTextCharFormat) -> QTextEdit.ExtraSelection:
        length = len(self._editor.toPlainText())
        cursor = self._editor.textCursor()
        cursor.setPosition(min(start, length))
        cursor.setPosition(min(end, length), QTextCursor.MoveMode.KeepAnchor)
        selection = QTextEdit.ExtraSelection()
        selection.cursor = cursor
        selection.format = text_format
        return selection

    # ------------------------------------------------------------------
    # Widget -> adapter
    # ------------------------------------------------------------------
    def _handle_text_changed(self) -> None:
        if self._applying:
            return
        cursor = self._editor.textCursor()
        self._adapter.user_edit(self._editor.toPlainText(), caret=cursor.position())

    def _handle_cursor_changed(self) -> None:
        if self._applying:
            return
        cursor = self._editor.textCursor()
        self._adapter.set_selection(cursor.selectionStart(), cursor.selectionEnd())

    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802 - Qt override
        if watched is self._editor:
            kind = event.type()
            if kind == QEvent.Type.FocusIn:
                self._adapter.focus()
            elif kind == QEvent.Type.FocusOut:
                self._adapter.blur()
        return False


__all__ = ["QtSurfaceBinding"]

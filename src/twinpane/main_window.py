"""Main window placing the raw and rendered surfaces side by side."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from PySide6.QtCore import QEvent, QObject, Qt
from PySide6.QtGui import QAction, QFont
from PySide6.QtWidgets import QLabel, QMainWindow, QMenu, QPlainTextEdit, QSplitter

from .editor.qt_surface import QtSurfaceBinding
from .editor.surface import Surface
from .services.annotation import AnnotationService
from .services.settings import Settings, SettingsStore
from .theme.palette import Palette, palette_for
from .ui import events
from .ui.domain.sync_controller import SyncController

_LOGGER = logging.getLogger(__name__)

WINDOW_APP_NAME = "twinpane"
STATUS_TIMEOUT_MS = 4000


@dataclass(slots=True)
class WindowAction:
    """Represents a high-level action exposed through menus."""

    name: str
    text: str
    shortcut: Optional[str] = None
    status_tip: Optional[str] = None
    callback: Optional[Callable[[], Any]] = None

    def trigger(self) -> None:
        """Invoke the registered callback, if available."""

        if self.callback is not None:
            self.callback()


@dataclass(slots=True)
class MenuSpec:
    """Declarative menu definition."""

    name: str
    title: str
    actions: tuple[str, ...]


@dataclass(slots=True)
class WindowContext:
    """Shared context passed to the main window when constructing the UI."""

    controller: SyncController
    settings: Optional[Settings] = None
    annotation_service: Optional[AnnotationService] = None
    settings_store: Optional[SettingsStore] = None


def palette_from_settings(settings: Settings | None) -> Palette:
    if settings is None:
        return palette_for(False)
    base = palette_for(settings.dark_mode)
    try:
        return base.with_decoration_overrides(settings.decoration_colors)
    except (TypeError, ValueError) as exc:
        _LOGGER.warning("Ignoring invalid decoration colors: %s", exc)
        return base


class MainWindow(QMainWindow):
    """Raw editor on the left, annotated editor on the right."""

    def __init__(self, context: WindowContext) -> None:
        super().__init__()
        self._context = context
        self._controller = context.controller
        self._palette = palette_from_settings(context.settings)
        self._raw_editor = QPlainTextEdit(self)
        self._rendered_editor = QPlainTextEdit(self)
        self._raw_editor.setPlaceholderText("Type or paste text here")
        self._bindings = {
            Surface.RAW: QtSurfaceBinding(self._controller.raw, self._raw_editor, palette=self._palette),
            Surface.RENDERED: QtSurfaceBinding(
                self._controller.rendered, self._rendered_editor, palette=self._palette
            ),
        }
        self._stats_label = QLabel(self)
        self._synonym_menu: QMenu | None = None
        self._actions = self._create_actions()
        self._qt_actions: Dict[str, QAction] = {}

        self.setWindowTitle(WINDOW_APP_NAME)
        self.setCentralWidget(self._build_splitter())
        self.statusBar().addPermanentWidget(self._stats_label)
        self._apply_font(context.settings)
        self._install_qt_menus()
        self._wire_events()
        self._update_stats(self._controller.sentence_count, self._controller.word_count)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def controller(self) -> SyncController:
        return self._controller

    @property
    def raw_editor(self) -> QPlainTextEdit:
        return self._raw_editor

    @property
    def rendered_editor(self) -> QPlainTextEdit:
        return self._rendered_editor

    @property
    def actions(self) -> Dict[str, WindowAction]:
        return dict(self._actions)

    @property
    def stats_text(self) -> str:
        return self._stats_label.text()

    @property
    def synonym_menu(self) -> QMenu | None:
        return self._synonym_menu

    def binding(self, surface: Surface) -> QtSurfaceBinding:
        return self._bindings[surface]

    def menu_specs(self) -> tuple[MenuSpec, ...]:
        return tuple(self._create_menus().values())

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _build_splitter(self) -> QSplitter:
        splitter = QSplitter(Qt.Orientation.Horizontal, self)
        splitter.addWidget(self._raw_editor)
        splitter.addWidget(self._rendered_editor)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 1)
        return splitter

    def _apply_font(self, settings: Settings | None) -> None:
        if settings is None:
            return
        font = QFont(settings.font_family)
        font.setPointSize(max(6, int(settings.font_size)))
        self._raw_editor.setFont(font)
        self._rendered_editor.setFont(font)

    def _create_actions(self) -> Dict[str, WindowAction]:
        return {
            "annotate": WindowAction(
                name="annotate",
                text="Annotate",
                shortcut="Ctrl+Return",
                status_tip="Send the raw text to the annotator",
                callback=self._handle_annotate_requested,
            ),
            "clear": WindowAction(
                name="clear",
                text="Clear",
                shortcut="Ctrl+Shift+L",
                status_tip="Clear both surfaces",
                callback=self._controller.clear,
            ),
            "freeze": WindowAction(
                name="freeze",
                text="Freeze / Unfreeze Selection",
                shortcut="Ctrl+Shift+F",
                status_tip="Protect the selected term from paraphrasing",
                callback=self._handle_freeze_requested,
            ),
            "next_sentence": WindowAction(
                name="next_sentence",
                text="Next Sentence",
                shortcut="Alt+Down",
                callback=lambda: self._controller.step_active_sentence(1),
            ),
            "previous_sentence": WindowAction(
                name="previous_sentence",
                text="Previous Sentence",
                shortcut="Alt+Up",
                callback=lambda: self._controller.step_active_sentence(-1),
            ),
        }

    def _create_menus(self) -> Dict[str, MenuSpec]:
        return {
            "edit": MenuSpec(name="edit", title="&Edit", actions=("annotate", "freeze", "clear")),
            "navigate": MenuSpec(name="navigate", title="&Navigate", actions=("previous_sentence", "next_sentence")),
        }

    def _install_qt_menus(self) -> None:
        menubar = self.menuBar()
        menubar.clear()
        self._qt_actions.clear()
        for action in self._actions.values():
            qt_action = QAction(action.text, self)
            if action.shortcut:
                qt_action.setShortcut(action.shortcut)
            if action.status_tip:
                qt_action.setStatusTip(action.status_tip)
            qt_action.triggered.connect(action.trigger)
            self._qt_actions[action.name] = qt_action

        for menu_spec in self.menu_specs():
            menu = menubar.addMenu(menu_spec.title)
            for action_name in menu_spec.actions:
                menu.addAction(self._qt_actions[action_name])

        if self._context.annotation_service is None:
            self._qt_actions["annotate"].setEnabled(False)

    def _wire_events(self) -> None:
        bus = self._controller.event_bus
        bus.subscribe(events.DocumentRendered, self._handle_document_rendered)
        bus.subscribe(events.DocumentCleared, self._handle_document_cleared)
        bus.subscribe(events.SynonymsRequested, self._handle_synonyms_requested)
        bus.subscribe(events.FreezeDenied, self._handle_freeze_denied)
        bus.subscribe(events.AnnotationDiscarded, self._handle_annotation_discarded)
        self._rendered_editor.viewport().installEventFilter(self)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # noqa: N802 - Qt override
        if watched is self._rendered_editor.viewport() and event.type() == QEvent.Type.MouseButtonRelease:
            cursor = self._rendered_editor.cursorForPosition(event.position().toPoint())
            if not self._rendered_editor.textCursor().hasSelection():
                self._controller.word_clicked_at(cursor.position())
        return super().eventFilter(watched, event)

    def _handle_annotate_requested(self) -> None:
        service = self._context.annotation_service
        if service is None:
            self.statusBar().showMessage("No annotator configured", STATUS_TIMEOUT_MS)
            return
        service.schedule()

    def _handle_freeze_requested(self) -> None:
        editor = self._rendered_editor if self._rendered_editor.hasFocus() else self._raw_editor
        term = editor.textCursor().selectedText().strip()
        if not term:
            self.statusBar().showMessage("Select a word or phrase to freeze", STATUS_TIMEOUT_MS)
            return
        result = self._controller.toggle_freeze(term)
        if not result.denied:
            state = "Frozen" if result.frozen else "Unfrozen"
            self.statusBar().showMessage(f"{state}: {term}", STATUS_TIMEOUT_MS)

    def _handle_document_rendered(self, event: events.DocumentRendered) -> None:
        self._update_stats(event.sentence_count, event.word_count)

    def _handle_document_cleared(self, event: events.DocumentCleared) -> None:
        self._update_stats(0, 0)

    def _handle_synonyms_requested(self, event: events.SynonymsRequested) -> None:
        if not event.synonyms:
            return
        menu = QMenu(self)
        for synonym in event.synonyms:
            action = menu.addAction(synonym)
            action.triggered.connect(
                lambda _checked=False, text=synonym: self._controller.apply_synonym(
                    event.sentence_index, event.word_index, text
                )
            )
        self._synonym_menu = menu
        menu.popup(self._rendered_editor.mapToGlobal(self._rendered_editor.cursorRect().bottomLeft()))

    def _handle_freeze_denied(self, event: events.FreezeDenied) -> None:
        self.statusBar().showMessage(f"Cannot freeze '{event.term}': {event.reason}", STATUS_TIMEOUT_MS)

    def _handle_annotation_discarded(self, event: events.AnnotationDiscarded) -> None:
        if event.reason == "malformed":
            self.statusBar().showMessage("Annotation failed; showing unannotated text", STATUS_TIMEOUT_MS)

    def _update_stats(self, sentences: int, words: int) -> None:
        self._stats_label.setText(f"Sentences: {sentences}  Words: {words}")


__all__ = ["MainWindow", "MenuSpec", "WindowAction", "WindowContext", "palette_from_settings"]

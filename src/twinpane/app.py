"""Entry point for the twinpane desktop editor.

``twinpane`` builds the settings (file, ``--set`` overrides, environment),
the sync controller seeded with protected terms, an optional annotation
service, and the main window, then runs everything on a qasync loop.
``twinpane --dump-settings`` prints the effective configuration instead.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import importlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TextIO, cast

from .editor.segmenter import delimiter_for
from .services.annotation import AnnotationService, Annotator
from .services.settings import Settings, SettingsStore
from .services.terms import load_protected_terms
from .ui.domain.sync_controller import SyncController
from .ui.events import EventBus
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_NONE_VALUES = {"none", "null", ""}


@dataclass(slots=True)
class QtRuntime:
    """The QApplication and the qasync loop driving it."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging to %s (level=%s)", log_path, logging.getLevelName(level))
    _install_qt_message_handler()


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings; an unreadable settings file yields the defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_controller(settings: Settings, *, event_bus: EventBus | None = None) -> SyncController:
    """Create the sync controller with the protected terms already frozen."""

    terms = load_protected_terms(settings.terms_path)
    return SyncController.from_settings(settings, terms=terms, event_bus=event_bus)


def load_annotator(target: str) -> Annotator:
    """Import the annotator named by ``package.module:callable``.

    Raises:
        ValueError: the reference is malformed or does not name a callable.
        ImportError / AttributeError: the module or attribute does not exist.
    """

    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Annotator '{target}' must use module:attribute syntax.")
    resolved: Any = importlib.import_module(module_name)
    for part in attribute.split("."):
        resolved = getattr(resolved, part)
    if not callable(resolved):
        raise ValueError(f"Annotator '{target}' is not callable.")
    return cast(Annotator, resolved)


def create_qapp(settings: Settings) -> QtRuntime:
    """Create the QApplication and install a qasync event loop for it."""

    from PySide6.QtWidgets import QApplication
    from qasync import QEventLoop

    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("twinpane")
    app.setApplicationDisplayName("twinpane")
    if settings.dark_mode:
        app.setStyle("Fusion")

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    app.aboutToQuit.connect(loop.stop)
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> None:
    """Console entry point for ``twinpane``."""

    args, passthrough = _parse_cli_args(argv)
    _rewrite_sys_argv(passthrough)

    debug = os.environ.get("TWINPANE_DEBUG", "").strip().lower() in _TRUE_VALUES
    configure_logging(debug)

    try:
        cli_overrides = _coerce_cli_overrides(args.overrides)
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings_path = args.settings_path or os.environ.get("TWINPANE_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)
    settings = load_settings(store=store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides)
        return
    if settings.debug_logging and not debug:
        logging_utils.set_debug(True)

    annotator: Annotator | None = None
    if args.annotator:
        try:
            annotator = load_annotator(args.annotator)
        except (ImportError, AttributeError, ValueError) as exc:
            print(f"Invalid --annotator: {exc}", file=sys.stderr)
            raise SystemExit(2) from exc

    _run_window(settings, store, annotator)


def _run_window(settings: Settings, store: SettingsStore, annotator: Annotator | None) -> None:
    from .main_window import MainWindow, WindowContext

    runtime = create_qapp(settings)
    controller = build_controller(settings)
    service = AnnotationService(sink=controller, annotator=annotator) if annotator is not None else None
    if service is None:
        _LOGGER.info("No annotator configured; the rendered surface shows provisional words only.")
    window = MainWindow(
        WindowContext(controller=controller, settings=settings, annotation_service=service, settings_store=store)
    )
    window.show()

    loop = runtime.loop
    try:
        loop.run_forever()
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        _drain_event_loop(loop)
        loop.close()


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel annotation tasks still pending on ``loop`` and wait for them."""

    if loop.is_closed():
        return

    async def _cancel_pending() -> None:
        me = asyncio.current_task()
        pending = [task for task in asyncio.all_tasks() if task is not me and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            _LOGGER.debug("Cancelled %d pending task(s) at shutdown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        with contextlib.suppress(NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cancel_pending())
    except RuntimeError as exc:
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Route Qt's own diagnostics into the ``PySide6`` logger."""

    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    levels = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }
    qt_logger = logging.getLogger("PySide6")

    def _forward(mode, context, message):  # type: ignore[no-untyped-def]
        qt_logger.log(levels.get(mode, logging.INFO), message)

    qInstallMessageHandler(_forward)


def _parse_cli_args(argv: Sequence[str] | None) -> tuple[argparse.Namespace, list[str]]:
    """Parse twinpane's flags; anything unrecognized is left for Qt."""

    parser = argparse.ArgumentParser(
        prog="twinpane",
        description="Type on the left, read the annotated text on the right.",
    )
    parser.add_argument("--dump-settings", action="store_true", help="Print the effective settings as JSON and exit.")
    parser.add_argument("--settings-path", metavar="PATH", help="Settings file (default ~/.twinpane/settings.json).")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help=f"Override a setting for this run (repeatable). Keys: {', '.join(sorted(_OVERRIDE_PARSERS))}.",
    )
    parser.add_argument(
        "--annotator",
        metavar="MODULE:CALLABLE",
        help="Async callable that turns an AnnotationRequest into an annotation payload.",
    )
    return parser.parse_known_args(argv)


def _rewrite_sys_argv(passthrough: Sequence[str]) -> None:
    """Leave only Qt's arguments in ``sys.argv`` for QApplication."""

    program = sys.argv[0] if sys.argv else "twinpane"
    sys.argv = [program, *passthrough]


# ---------------------------------------------------------------------------
# --set parsing
# ---------------------------------------------------------------------------


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot read '{value}' as a boolean.")


def _parse_word_limit(value: str) -> int:
    """``none``/``off`` disable the limit; stored as 0, which settings read as no limit."""

    if value.strip().lower() in _NONE_VALUES | {"off"}:
        return 0
    return int(value, 10)


def _parse_optional_path(value: str) -> str | None:
    return None if value.strip().lower() in _NONE_VALUES else value.strip()


def _parse_colors(value: str) -> Dict[str, str]:
    try:
        payload = json.loads(value or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError("decoration_colors must be a JSON object") from exc
    if not isinstance(payload, dict) or not all(isinstance(color, str) for color in payload.values()):
        raise ValueError("decoration_colors must map decoration kinds to color strings")
    return payload


_OVERRIDE_PARSERS: Mapping[str, Callable[[str], Any]] = {
    "language": str.strip,
    "word_limit": _parse_word_limit,
    "dark_mode": _parse_bool,
    "can_freeze": _parse_bool,
    "terms_path": _parse_optional_path,
    "decoration_colors": _parse_colors,
    "font_family": str.strip,
    "font_size": lambda value: int(value, 10),
    "debug_logging": _parse_bool,
}


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, sep, raw_value = entry.partition("=")
        key = key.strip()
        if not sep:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        if not key:
            raise ValueError("Override is missing a field name.")
        parser = _OVERRIDE_PARSERS.get(key)
        if parser is None:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = parser(raw_value.strip())
    return overrides


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    terms = load_protected_terms(settings.terms_path)
    output = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides),
            "environment_variables": sorted(name for name in os.environ if name.startswith("TWINPANE_")),
            "delimiter": delimiter_for(settings.language),
            "protected_terms": {"words": len(terms.words), "phrases": len(terms.phrases)},
        },
    }
    destination = stream or sys.stdout
    json.dump(output, destination, indent=2, ensure_ascii=False)
    destination.write("\n")


__all__ = [
    "QtRuntime",
    "build_controller",
    "configure_logging",
    "create_qapp",
    "load_annotator",
    "load_settings",
    "main",
]

"""User settings: the :class:`Settings` dataclass and its JSON store.

Settings are read from ``~/.twinpane/settings.json``. Values given on the
command line are layered on top, and ``TWINPANE_*`` environment variables
win over both. Every loaded value is normalized before the rest of the app
sees it:

* unknown languages fall back to English, since they have no delimiter;
* a word limit of zero or less means "no limit" (``None``);
* decoration color overrides are kept only for known decoration kinds.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from ..editor.decorations import DecorationKind
from ..editor.segmenter import ENGLISH, SENTENCE_DELIMITERS

__all__ = ["DEFAULT_WORD_LIMIT", "Settings", "SettingsStore", "normalize_settings"]

LOGGER = logging.getLogger(__name__)

DEFAULT_WORD_LIMIT = 300
_DEFAULT_SETTINGS_PATH = Path.home() / ".twinpane" / "settings.json"
_SETTINGS_VERSION = 1
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_DECORATION_KINDS = frozenset(kind.value for kind in DecorationKind)


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    language: str = ENGLISH
    word_limit: int | None = DEFAULT_WORD_LIMIT
    dark_mode: bool = False
    can_freeze: bool = False
    terms_path: str | None = None
    decoration_colors: dict[str, str] = field(default_factory=dict)
    font_family: str = "JetBrains Mono"
    font_size: int = 13
    debug_logging: bool = False


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_limit(value: str) -> int:
    if value.strip().lower() in {"", "none", "off"}:
        return 0
    return int(value, 10)


# Environment variable -> (settings field, parser).
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "TWINPANE_LANGUAGE": ("language", str.strip),
    "TWINPANE_TERMS_PATH": ("terms_path", str.strip),
    "TWINPANE_DARK_MODE": ("dark_mode", _parse_flag),
    "TWINPANE_CAN_FREEZE": ("can_freeze", _parse_flag),
    "TWINPANE_DEBUG_LOGGING": ("debug_logging", _parse_flag),
    "TWINPANE_WORD_LIMIT": ("word_limit", _parse_limit),
}


def normalize_settings(settings: Settings) -> Settings:
    """Return ``settings`` with language, word limit and colors made usable."""

    changes: Dict[str, Any] = {}
    language = _canonical_language(settings.language)
    if language is None:
        LOGGER.warning("Unsupported language %r; using %s", settings.language, ENGLISH)
        changes["language"] = ENGLISH
    elif language != settings.language:
        changes["language"] = language

    if settings.word_limit is not None and settings.word_limit <= 0:
        changes["word_limit"] = None

    colors = {
        str(kind): str(color)
        for kind, color in (settings.decoration_colors or {}).items()
        if kind in _DECORATION_KINDS
    }
    if colors != settings.decoration_colors:
        dropped = sorted(set(settings.decoration_colors or {}) - set(colors))
        if dropped:
            LOGGER.debug("Ignoring colors for unknown decoration kinds: %s", dropped)
        changes["decoration_colors"] = colors

    return replace(settings, **changes) if changes else settings


def _canonical_language(language: str | None) -> str | None:
    if not language:
        return None
    wanted = language.strip().lower()
    for name in SENTENCE_DELIMITERS:
        if name.lower() == wanted:
            return name
    return None


class SettingsStore:
    """Reads and writes :class:`Settings` as a versioned JSON document."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, then apply CLI and environment overrides.

        ``None`` values in ``overrides`` are ignored. A file written by an
        older version is rewritten in the current format.
        """

        payload = self._read_payload()
        settings = self._from_payload(payload) if payload else Settings()
        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings file %s: %s", self._path, exc)

        if overrides:
            settings = _merge(settings, overrides, source="CLI")
        settings = _merge(settings, _environment_overrides(), source="environment")
        return normalize_settings(settings)

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` atomically (temp file, then rename)."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    @staticmethod
    def _from_payload(payload: Mapping[str, Any]) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        data = {key: value for key, value in payload.items() if key in allowed}
        colors = data.get("decoration_colors")
        if colors is not None and not isinstance(colors, Mapping):
            LOGGER.debug("Ignoring non-mapping decoration_colors of type %s", type(colors).__name__)
            data.pop("decoration_colors")
        try:
            return Settings(**data)
        except TypeError as exc:
            LOGGER.warning("Settings payload contained unexpected data: %s", exc)
            return Settings()


def _merge(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    allowed = {item.name for item in fields(Settings)}
    accepted = {key: value for key, value in overrides.items() if key in allowed and value is not None}
    colors = accepted.get("decoration_colors")
    if isinstance(colors, Mapping):
        accepted["decoration_colors"] = {**settings.decoration_colors, **colors}
    if not accepted:
        return settings
    LOGGER.debug("Applying %s settings overrides: %s", source, sorted(accepted))
    return replace(settings, **accepted)


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, (field_name, parse) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            value = parse(raw)
        except ValueError:
            LOGGER.warning("Ignoring environment override %s=%r", env_name, raw)
            continue
        overrides[field_name] = value
    return overrides

"""Light and dark palettes for word tag classes and decoration kinds.

Tag colors are CSS color strings handed to the renderer as-is. Decoration
colors are RGB tuples because the Qt binding paints them as backgrounds;
user overrides may be given as ``#rgb``, ``#rrggbb``, ``rgb(r, g, b)`` or a
three-item sequence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence, Tuple

ColorTuple = Tuple[int, int, int]
INHERIT = "inherit"

_HEX_COLOR = re.compile(r"#?(?P<digits>[0-9a-fA-F]{3}|[0-9a-fA-F]{6})")
_RGB_FUNCTION = re.compile(r"rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)", re.IGNORECASE)


def normalize_color(value: Any) -> ColorTuple:
    """Return ``value`` as an ``(r, g, b)`` tuple with channels in 0..255.

    Raises:
        ValueError: for strings or sequences that are not a color.
        TypeError: for any other type.
    """

    if isinstance(value, str):
        text = value.strip()
        hex_match = _HEX_COLOR.fullmatch(text)
        if hex_match is not None:
            digits = hex_match.group("digits")
            if len(digits) == 3:
                digits = "".join(digit * 2 for digit in digits)
            red, green, blue = (int(digits[offset : offset + 2], 16) for offset in (0, 2, 4))
            return (red, green, blue)
        rgb_match = _RGB_FUNCTION.fullmatch(text)
        if rgb_match is not None:
            red, green, blue = (min(255, int(channel)) for channel in rgb_match.groups())
            return (red, green, blue)
        raise ValueError(f"Unsupported color format: {value!r}")

    if isinstance(value, Sequence):
        if len(value) != 3:
            raise ValueError(f"RGB sequences need exactly 3 channels, got {value!r}")
        red, green, blue = (max(0, min(255, int(channel))) for channel in value)
        return (red, green, blue)

    raise TypeError(f"Cannot use {type(value).__name__} as an RGB color")


_LIGHT_TAGS: Dict[str, str] = {
    "tag-np": "#d95645",
    "tag-vp": "#530a78",
    "tag-phrase": "#051780",
    "tag-freeze": "#006acc",
}

_DARK_TAGS: Dict[str, str] = {
    "tag-np": "#ef5c47",
    "tag-vp": "#b6bdbd",
    "tag-phrase": "#b6bdbd",
    "tag-freeze": "#006acc",
}

_LIGHT_DECORATIONS: Dict[str, ColorTuple] = {
    "overflow": (248, 215, 218),
    "frozen": (204, 228, 255),
    "duplicate": (255, 244, 197),
    "active": (235, 240, 255),
}

_DARK_DECORATIONS: Dict[str, ColorTuple] = {
    "overflow": (90, 26, 26),
    "frozen": (20, 55, 100),
    "duplicate": (92, 80, 20),
    "active": (42, 45, 56),
}


@dataclass(slots=True, frozen=True)
class Palette:
    """Colors for one appearance (light or dark)."""

    name: str
    tags: Mapping[str, str] = field(default_factory=dict)
    decorations: Mapping[str, ColorTuple] = field(default_factory=dict)

    def tag_color(self, color_class: str) -> str:
        """Return the CSS color for ``color_class`` or ``inherit``."""

        return self.tags.get(color_class, INHERIT)

    def decoration_color(self, kind: str, fallback: ColorTuple = (255, 243, 196)) -> ColorTuple:
        return self.decorations.get(kind, fallback)

    def with_decoration_overrides(self, overrides: Mapping[str, Any] | None) -> Palette:
        """Return a copy whose decoration colors are replaced by ``overrides``."""

        if not overrides:
            return self
        merged = dict(self.decorations)
        for kind, value in overrides.items():
            merged[str(kind).strip().lower()] = normalize_color(value)
        return Palette(name=self.name, tags=self.tags, decorations=merged)


LIGHT = Palette(name="light", tags=_LIGHT_TAGS, decorations=_LIGHT_DECORATIONS)
DARK = Palette(name="dark", tags=_DARK_TAGS, decorations=_DARK_DECORATIONS)


def palette_for(dark: bool) -> Palette:
    return DARK if dark else LIGHT


__all__ = [
    "ColorTuple",
    "DARK",
    "INHERIT",
    "LIGHT",
    "Palette",
    "normalize_color",
    "palette_for",
]

"""Theme module holding tag and decoration palettes."""

from .palette import DARK, LIGHT, ColorTuple, Palette, normalize_color, palette_for

__all__ = [
    "ColorTuple",
    "DARK",
    "LIGHT",
    "Palette",
    "normalize_color",
    "palette_for",
]

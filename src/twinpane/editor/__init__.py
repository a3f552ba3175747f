"""Editor package: document model, segmentation, decorations and surface adapters.

The Qt binding lives in :mod:`twinpane.editor.qt_surface` and is imported
explicitly so the headless pieces load without a display.
"""

from . import decorations, document_model, freeze, layout, render, segmenter, sentence_tracker, surface

__all__ = [
    "decorations",
    "document_model",
    "freeze",
    "layout",
    "render",
    "segmenter",
    "sentence_tracker",
    "surface",
]

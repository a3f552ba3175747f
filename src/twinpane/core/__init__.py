"""Core value types shared across the editor and UI layers."""

from .ranges import TextRange

__all__ = ["TextRange"]

"""Half-open offset spans shared by layouts, decorations and selections."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True, order=True)
class TextRange:
    """``[start, end)`` span over the text of one surface.

    Layout code builds these from regex matches and segment offsets, so a
    negative or inverted span is a programming error and is rejected.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid text range [{self.start}, {self.end})")

    @property
    def is_caret(self) -> bool:
        return self.start == self.end

    def contains(self, offset: int, *, inclusive_end: bool = False) -> bool:
        """Return ``True`` when ``offset`` falls inside the span.

        ``inclusive_end`` lets a caret sitting right after the last character
        still count as inside, which is how carets are mapped to sentences.
        """

        if inclusive_end:
            return self.start <= offset <= self.end
        return self.start <= offset < self.end

    def slice(self, text: str) -> str:
        return text[self.start : self.end]

    def to_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)


__all__ = ["TextRange"]

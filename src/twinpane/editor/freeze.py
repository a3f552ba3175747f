"""Frozen (protected) terms and their copy-on-write toggle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..errors import UnauthorizedFreezeError

LOGGER = logging.getLogger(__name__)


def normalize_term(term: str) -> str:
    """Return the lookup key for ``term`` (trimmed, lower-cased)."""

    return (term or "").strip().lower()


def is_phrase(term: str) -> bool:
    """Return ``True`` when the normalized term contains whitespace."""

    return any(ch.isspace() for ch in normalize_term(term))


@dataclass(slots=True, frozen=True)
class FrozenSet:
    """Immutable pair of frozen single words and frozen phrases."""

    words: frozenset[str] = field(default_factory=frozenset)
    phrases: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_terms(cls, terms: Iterable[str]) -> FrozenSet:
        """Classify every term by the whitespace rule and build a set."""

        words: set[str] = set()
        phrases: set[str] = set()
        for term in terms:
            key = normalize_term(term)
            if not key:
                continue
            (phrases if is_phrase(key) else words).add(key)
        return cls(words=frozenset(words), phrases=frozenset(phrases))

    def has(self, term: str) -> bool:
        key = normalize_term(term)
        if not key:
            return False
        return key in (self.phrases if is_phrase(key) else self.words)

    def toggle(self, term: str) -> FrozenSet:
        """Return a new set with ``term`` added if absent, removed if present."""

        key = normalize_term(term)
        if not key:
            return self
        if is_phrase(key):
            return FrozenSet(words=self.words, phrases=self.phrases ^ {key})
        return FrozenSet(words=self.words ^ {key}, phrases=self.phrases)

    def __len__(self) -> int:
        return len(self.words) + len(self.phrases)


@dataclass(slots=True, frozen=True)
class ToggleResult:
    """Outcome of :meth:`FreezeSetManager.toggle`."""

    frozen_set: FrozenSet
    denied: bool = False
    frozen: bool = False
    error: UnauthorizedFreezeError | None = None


class FreezeSetManager:
    """Owns the current :class:`FrozenSet` and gates toggles on a capability flag.

    ``can_freeze`` is supplied by the host (plan gating lives elsewhere); it
    is read on every toggle so capability changes take effect immediately.
    """

    def __init__(
        self,
        frozen_set: FrozenSet | None = None,
        *,
        can_freeze: Callable[[], bool] | bool = False,
    ) -> None:
        self._frozen = frozen_set or FrozenSet()
        self._can_freeze = can_freeze

    @classmethod
    def from_terms(cls, terms: Iterable[str], *, can_freeze: Callable[[], bool] | bool = False) -> FreezeSetManager:
        return cls(FrozenSet.from_terms(terms), can_freeze=can_freeze)

    @property
    def frozen_set(self) -> FrozenSet:
        return self._frozen

    @property
    def can_freeze(self) -> bool:
        flag = self._can_freeze
        return bool(flag() if callable(flag) else flag)

    def set_capability(self, can_freeze: Callable[[], bool] | bool) -> None:
        self._can_freeze = can_freeze

    def has(self, term: str) -> bool:
        return self._frozen.has(term)

    def toggle(self, term: str) -> ToggleResult:
        if not self.can_freeze:
            LOGGER.debug("Freeze toggle denied for %r", normalize_term(term))
            return ToggleResult(
                frozen_set=self._frozen,
                denied=True,
                frozen=self._frozen.has(term),
                error=UnauthorizedFreezeError(details={"term": normalize_term(term)}),
            )
        updated = self._frozen.toggle(term)
        self._frozen = updated
        return ToggleResult(frozen_set=updated, frozen=updated.has(term))

    def replace(self, frozen_set: FrozenSet) -> None:
        self._frozen = frozen_set

    def seed(self, words: Iterable[str] = (), phrases: Iterable[str] = ()) -> FrozenSet:
        """Add configured protected terms, ignoring the capability flag.

        Each term is classified by the whitespace rule, whichever list it
        came from.
        """

        seeded = FrozenSet.from_terms([*self._frozen.words, *self._frozen.phrases, *words, *phrases])
        self._frozen = seeded
        return seeded


__all__ = ["FreezeSetManager", "FrozenSet", "ToggleResult", "is_phrase", "normalize_term"]

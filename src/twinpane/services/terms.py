"""Protected term lists loaded from YAML data at start-up."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Iterator

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..editor.freeze import FrozenSet, normalize_term

__all__ = ["ProtectedTerms", "load_protected_terms", "parse_protected_terms"]

LOGGER = logging.getLogger(__name__)

_DATA_PACKAGE = "twinpane.data"
_DATA_FILE = "protected_terms.yaml"


@dataclass(slots=True, frozen=True)
class ProtectedTerms:
    """Immutable word and phrase lists; order follows the source data."""

    words: tuple[str, ...] = ()
    phrases: tuple[str, ...] = ()

    def terms(self) -> Iterator[str]:
        yield from self.words
        yield from self.phrases

    def __len__(self) -> int:
        return len(self.words) + len(self.phrases)

    def to_frozen_set(self) -> FrozenSet:
        """Classify every term by the whitespace rule."""

        return FrozenSet.from_terms(self.terms())


def _create_yaml_parser() -> YAML:
    parser = YAML(typ="safe")
    parser.allow_duplicate_keys = False
    return parser


def _flatten(node: Any, *, label: str) -> list[str]:
    """Collect strings from a list or a mapping of named lists."""

    if node is None:
        return []
    if isinstance(node, str):
        return [node]
    if isinstance(node, dict):
        collected: list[str] = []
        for group, items in node.items():
            collected.extend(_flatten(items, label=f"{label}.{group}"))
        return collected
    if isinstance(node, list):
        collected = []
        for item in node:
            if isinstance(item, str):
                collected.append(item)
            else:
                LOGGER.warning("Ignoring non-string entry %r in %s", item, label)
        return collected
    raise ValueError(f"Protected terms section {label!r} must be a list or mapping")


def _dedupe(terms: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered: list[str] = []
    for term in terms:
        key = normalize_term(term)
        if not key or key in seen:
            continue
        seen.add(key)
        ordered.append(key)
    return tuple(ordered)


def parse_protected_terms(text: str) -> ProtectedTerms:
    """Parse the YAML document ``text`` into :class:`ProtectedTerms`.

    Raises:
        ValueError: when the document is not valid YAML or has the wrong shape.
    """

    try:
        data = _create_yaml_parser().load(text)
    except YAMLError as exc:
        raise ValueError(f"Invalid protected terms YAML: {exc}") from exc
    if data is None:
        return ProtectedTerms()
    if not isinstance(data, dict):
        raise ValueError("Protected terms document must be a mapping")
    return ProtectedTerms(
        words=_dedupe(_flatten(data.get("words"), label="words")),
        phrases=_dedupe(_flatten(data.get("phrases"), label="phrases")),
    )


def load_protected_terms(path: Path | str | None = None) -> ProtectedTerms:
    """Load protected terms from ``path`` or from the bundled data file.

    A missing or broken user file is logged and the bundled list is used
    instead.
    """

    if path is not None:
        target = Path(path).expanduser()
        try:
            terms = parse_protected_terms(target.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Unable to load protected terms from %s: %s", target, exc)
        else:
            LOGGER.debug("Loaded %d protected terms from %s", len(terms), target)
            return terms
    bundled = resources.files(_DATA_PACKAGE).joinpath(_DATA_FILE).read_text(encoding="utf-8")
    terms = parse_protected_terms(bundled)
    LOGGER.debug("Loaded %d bundled protected terms", len(terms))
    return terms

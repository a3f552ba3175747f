"""Shared test helpers.

Import from here instead of duplicating payload builders in individual test
files.
"""

from __future__ import annotations

from typing import Any, Iterable

from twinpane.ui.events import Event, EventBus


def annotated_word(text: str, type: str = "NP", synonyms: Iterable[str] = ()) -> dict[str, Any]:
    return {"word": text, "type": type, "synonyms": list(synonyms)}


def annotation_payload(*sentences: str, type: str = "NP", **extra: Any) -> dict[str, Any]:
    """Build a payload tagging every whitespace token of each sentence with ``type``."""

    payload: dict[str, Any] = {
        "sentences": [[annotated_word(token, type) for token in sentence.split()] for sentence in sentences]
    }
    payload.update(extra)
    return payload


class EventRecorder:
    """Collects every event of the subscribed types in publish order."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

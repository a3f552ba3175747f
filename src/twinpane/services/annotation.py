"""Annotation payload validation, request generations and the async driver.

The annotator itself (a paraphrase/tagging backend) is an external
collaborator. This module fixes the payload shape it must return, tags
every request with a generation, and feeds results back to the sync
controller, which discards superseded ones.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol

import jsonschema

from ..editor.document_model import Sentence, Word
from ..errors import MalformedAnnotationError

LOGGER = logging.getLogger(__name__)

MAX_SCHEMA_ERRORS = 10

ANNOTATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["sentences"],
    "properties": {
        "sentences": {
            "type": "array",
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["word"],
                    "properties": {
                        "word": {"type": "string"},
                        "type": {"type": ["string", "null"]},
                        "synonyms": {
                            "type": ["array", "null"],
                            "items": {"type": "string"},
                        },
                    },
                },
            },
        },
        "start": {"type": "integer", "minimum": 1},
        "input_sentences": {"type": "array", "items": {"type": "string"}},
    },
}

_VALIDATOR = jsonschema.Draft202012Validator(ANNOTATION_SCHEMA)


@dataclass(slots=True, frozen=True)
class AnnotationRequest:
    """What the annotator receives; ``generation`` must travel back with the result."""

    generation: int
    text: str
    sentences: tuple[str, ...]
    language: str = "English"


@dataclass(slots=True, frozen=True)
class AnnotationResult:
    """Validated annotation payload."""

    sentences: tuple[Sentence, ...]
    start: int | None = None
    input_sentences: tuple[str, ...] = ()

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)


def validate_annotation(payload: Any) -> list[str]:
    """Return human-readable shape errors for ``payload`` (empty when valid)."""

    messages: list[str] = []
    for issue in _VALIDATOR.iter_errors(payload):
        path = ".".join(str(part) for part in issue.absolute_path)
        messages.append(f"{path}: {issue.message}" if path else issue.message)
        if len(messages) >= MAX_SCHEMA_ERRORS:
            break
    return messages


def parse_annotation(payload: Any) -> AnnotationResult:
    """Validate ``payload`` and convert it into immutable sentences.

    Raises:
        MalformedAnnotationError: when the payload does not match
            :data:`ANNOTATION_SCHEMA`.
    """

    errors = validate_annotation(payload)
    if errors:
        raise MalformedAnnotationError(details={"errors": errors})
    sentences = tuple(
        Sentence(words=tuple(Word.from_payload(entry) for entry in words))
        for words in payload["sentences"]
    )
    return AnnotationResult(
        sentences=sentences,
        start=payload.get("start"),
        input_sentences=tuple(payload.get("input_sentences") or ()),
    )


class AnnotationSink(Protocol):
    """Side of the sync controller the service talks to."""

    def issue_annotation_request(self) -> AnnotationRequest:
        ...

    def receive_annotation(self, generation: int, payload: Any) -> bool:
        ...


Annotator = Callable[[AnnotationRequest], Awaitable[Mapping[str, Any]]]


@dataclass(slots=True)
class AnnotationService:
    """Runs annotation round-trips against an async ``annotator``.

    Each call to :meth:`request` issues a new generation before awaiting,
    so an older round-trip that finishes later is discarded on arrival.
    Annotator failures are logged and leave the document untouched.
    """

    sink: AnnotationSink
    annotator: Annotator
    _tasks: set[asyncio.Task[bool]] = field(default_factory=set, init=False, repr=False)

    async def request(self) -> bool:
        request = self.sink.issue_annotation_request()
        LOGGER.debug(
            "Annotation request generation=%s sentences=%d",
            request.generation,
            len(request.sentences),
        )
        try:
            payload = await self.annotator(request)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.warning("Annotator failed for generation %s", request.generation, exc_info=True)
            return False
        return self.sink.receive_annotation(request.generation, payload)

    def schedule(self) -> asyncio.Task[bool]:
        """Start :meth:`request` on the running loop and keep a reference to it."""

        task = asyncio.get_running_loop().create_task(self.request())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)


__all__ = [
    "ANNOTATION_SCHEMA",
    "AnnotationRequest",
    "AnnotationResult",
    "AnnotationService",
    "AnnotationSink",
    "Annotator",
    "parse_annotation",
    "validate_annotation",
]

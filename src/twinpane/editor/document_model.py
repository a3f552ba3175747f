"""Immutable dataclasses describing the annotated document.

A :class:`Document` is never edited in place. Every operation returns a new
instance and replaces whole sentences, so a decoration pass or a click
handler holding an older reference always sees a consistent snapshot.
Sentence and word indices are positional and 1-based.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .segmenter import tokenize

NO_TYPE = "none"


@dataclass(slots=True, frozen=True)
class Word:
    """Single token with its grammatical tag and candidate synonyms."""

    text: str
    type: str = NO_TYPE
    synonyms: tuple[str, ...] = ()

    @classmethod
    def provisional(cls, text: str) -> Word:
        """Return a locally synthesized placeholder word."""

        return cls(text=text)

    @classmethod
    def from_payload(cls, entry: Mapping[str, Any]) -> Word:
        """Build a word from one annotation entry (``word``/``type``/``synonyms``)."""

        raw_type = entry.get("type")
        synonyms = entry.get("synonyms") or ()
        return cls(
            text=str(entry["word"]),
            type=str(raw_type) if raw_type else NO_TYPE,
            synonyms=tuple(str(item) for item in synonyms),
        )

    def with_text(self, text: str) -> Word:
        return Word(text=text, type=self.type, synonyms=self.synonyms)


@dataclass(slots=True, frozen=True)
class Sentence:
    """Ordered run of words; ``provisional`` marks locally synthesized content."""

    words: tuple[Word, ...] = ()
    provisional: bool = False

    @classmethod
    def from_text(cls, text: str) -> Sentence:
        """Tokenize ``text`` into a provisional sentence."""

        return cls(words=tuple(Word.provisional(token) for token in tokenize(text)), provisional=True)

    def __len__(self) -> int:
        return len(self.words)

    def __iter__(self) -> Iterator[Word]:
        return iter(self.words)

    def word(self, word_index: int) -> Word | None:
        """Return the 1-based ``word_index`` entry or ``None``."""

        if 1 <= word_index <= len(self.words):
            return self.words[word_index - 1]
        return None

    def replace_word(self, word_index: int, word: Word) -> Sentence:
        """Return a new sentence with one word swapped."""

        if not 1 <= word_index <= len(self.words):
            raise IndexError(f"Word index {word_index} out of range")
        words = list(self.words)
        words[word_index - 1] = word
        return Sentence(words=tuple(words), provisional=self.provisional)

    def text(self) -> str:
        return " ".join(word.text for word in self.words)


@dataclass(slots=True, frozen=True)
class Document:
    """Canonical annotated document shared by both surfaces."""

    sentences: tuple[Sentence, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> Document:
        return cls()

    @classmethod
    def from_sentences(cls, sentences: Iterable[Iterable[Word]]) -> Document:
        return cls(sentences=tuple(Sentence(words=tuple(words)) for words in sentences))

    def __len__(self) -> int:
        return len(self.sentences)

    def __iter__(self) -> Iterator[Sentence]:
        return iter(self.sentences)

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)

    @property
    def authoritative_count(self) -> int:
        """Number of leading sentences that came from the external annotator."""

        count = 0
        for sentence in self.sentences:
            if sentence.provisional:
                break
            count += 1
        return count

    @property
    def word_count(self) -> int:
        return sum(len(sentence) for sentence in self.sentences)

    def sentence(self, sentence_index: int) -> Sentence | None:
        """Return the 1-based ``sentence_index`` entry or ``None``."""

        if 1 <= sentence_index <= len(self.sentences):
            return self.sentences[sentence_index - 1]
        return None

    def word_at(self, sentence_index: int, word_index: int) -> Word | None:
        sentence = self.sentence(sentence_index)
        if sentence is None:
            return None
        return sentence.word(word_index)

    def authoritative(self) -> Document:
        """Return the document without its provisional tail."""

        return Document(sentences=self.sentences[: self.authoritative_count])

    def with_provisional(self, tail: Sequence[str]) -> Document:
        """Drop the current provisional tail and append ``tail`` as provisional sentences."""

        base = self.sentences[: self.authoritative_count]
        extra = tuple(Sentence.from_text(text) for text in tail)
        return Document(sentences=base + extra)

    def replace_sentences(self, sentences: Sequence[Sentence], *, start: int | None = None) -> Document:
        """Replace sentences wholesale.

        Without ``start`` the authoritative part is replaced entirely. With a
        1-based ``start`` the covered range is spliced in and the remaining
        authoritative sentences are kept. Provisional sentences are dropped in
        both cases; the controller re-synthesizes them from raw text.
        """

        incoming = tuple(Sentence(words=s.words, provisional=False) for s in sentences)
        if start is None:
            return Document(sentences=incoming)
        base = self.sentences[: self.authoritative_count]
        if start < 1 or start > len(base) + 1:
            raise IndexError(f"Sentence start {start} leaves a gap after {len(base)} sentences")
        offset = start - 1
        merged = base[:offset] + incoming + base[offset + len(incoming) :]
        return Document(sentences=merged)

    def replace_sentence(self, sentence_index: int, sentence: Sentence) -> Document:
        if not 1 <= sentence_index <= len(self.sentences):
            raise IndexError(f"Sentence index {sentence_index} out of range")
        sentences = list(self.sentences)
        sentences[sentence_index - 1] = sentence
        return Document(sentences=tuple(sentences))


@dataclass(slots=True, frozen=True)
class SelectionRange:
    """Selection or caret reported by a surface."""

    start: int = 0
    end: int = 0

    @property
    def is_collapsed(self) -> bool:
        return self.start == self.end

    @property
    def caret(self) -> int:
        return self.end


__all__ = ["NO_TYPE", "Word", "Sentence", "Document", "SelectionRange"]

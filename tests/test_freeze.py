"""Tests for frozen terms and the freeze manager."""

from __future__ import annotations

import pytest

from twinpane.editor.freeze import FreezeSetManager, FrozenSet, is_phrase, normalize_term
from twinpane.errors import ErrorCode, UnauthorizedFreezeError


# =============================================================================
# Term normalization
# =============================================================================


class TestNormalization:
    """Tests for term keys and phrase classification."""

    def test_normalize_trims_and_lowercases(self) -> None:
        """Terms are keyed trimmed and lower-cased."""
        assert normalize_term("  Due Process ") == "due process"

    @pytest.mark.parametrize(
        ("term", "expected"),
        [
            ("bail", False),
            ("due process", True),
            ("  Bail  ", False),
            ("cross-examination", False),
            ("machine\tlearning", True),
        ],
    )
    def test_phrase_iff_whitespace(self, term: str, expected: bool) -> None:
        """A term is a phrase exactly when it contains whitespace after trimming."""
        assert is_phrase(term) is expected


# =============================================================================
# FrozenSet
# =============================================================================


class TestFrozenSet:
    """Tests for the copy-on-write frozen set."""

    def test_toggle_round_trip(self) -> None:
        """Toggling the same term twice restores the original set."""
        original = FrozenSet.from_terms(["evidence", "case law"])
        assert original.toggle("Bail").toggle("bail") == original

    def test_toggle_returns_new_instance(self) -> None:
        """Toggle never mutates the receiver."""
        original = FrozenSet()
        updated = original.toggle("bail")
        assert original.words == frozenset()
        assert updated.words == frozenset({"bail"})

    def test_toggle_routes_phrases(self) -> None:
        """Phrases and words land in separate sets."""
        frozen = FrozenSet().toggle("Due Process").toggle("bail")
        assert frozen.phrases == frozenset({"due process"})
        assert frozen.words == frozenset({"bail"})

    def test_empty_term_is_noop(self) -> None:
        """Blank terms leave the set untouched."""
        frozen = FrozenSet.from_terms(["bail"])
        assert frozen.toggle("   ") is frozen
        assert not frozen.has("")

    def test_from_terms_reclassifies_by_whitespace(self) -> None:
        """Hyphenated or slashed terms are single words."""
        frozen = FrozenSet.from_terms(["cross-examination", "ci/cd", "rest api", ""])
        assert frozen.words == frozenset({"cross-examination", "ci/cd"})
        assert frozen.phrases == frozenset({"rest api"})
        assert len(frozen) == 3

    def test_has_is_case_insensitive(self) -> None:
        """Membership uses the normalized key."""
        frozen = FrozenSet.from_terms(["Machine Learning"])
        assert frozen.has("machine learning")
        assert frozen.has("  MACHINE LEARNING ")
        assert not frozen.has("machine")


# =============================================================================
# FreezeSetManager
# =============================================================================


class TestFreezeSetManager:
    """Tests for the capability-gated manager."""

    def test_toggle_without_capability_is_denied(self) -> None:
        """A denied toggle keeps the set and reports the error."""
        manager = FreezeSetManager.from_terms(["bail"], can_freeze=False)
        before = manager.frozen_set

        result = manager.toggle("due process")

        assert result.denied
        assert result.frozen_set is before
        assert manager.frozen_set is before
        assert isinstance(result.error, UnauthorizedFreezeError)
        assert result.error.error_code == ErrorCode.UNAUTHORIZED_FREEZE

    def test_due_process_toggle_scenario(self) -> None:
        """Freezing then unfreezing a phrase flips membership each time."""
        manager = FreezeSetManager(can_freeze=True)

        first = manager.toggle("due process")
        assert not first.denied
        assert first.frozen
        assert manager.has("due process")

        second = manager.toggle("due process")
        assert not second.frozen
        assert not manager.has("due process")

    def test_capability_is_read_on_every_toggle(self) -> None:
        """A callable capability is consulted at toggle time."""
        allowed = {"value": False}
        manager = FreezeSetManager(can_freeze=lambda: allowed["value"])

        assert manager.toggle("bail").denied
        allowed["value"] = True
        assert not manager.toggle("bail").denied
        assert manager.has("bail")

    def test_set_capability_and_replace(self) -> None:
        """Capability and set can be swapped by the host."""
        manager = FreezeSetManager()
        assert not manager.can_freeze
        manager.set_capability(True)
        assert manager.can_freeze
        manager.replace(FrozenSet.from_terms(["tort"]))
        assert manager.has("tort")

    def test_seed_reclassifies_terms_by_whitespace(self) -> None:
        """Seeding ignores the source list and the capability flag."""
        manager = FreezeSetManager(FrozenSet.from_terms(["tort"]), can_freeze=False)

        seeded = manager.seed(words=["Due Process", " bail "], phrases=["habeas"])

        assert seeded is manager.frozen_set
        assert seeded.words == frozenset({"tort", "bail", "habeas"})
        assert seeded.phrases == frozenset({"due process"})

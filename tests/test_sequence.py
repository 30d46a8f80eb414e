"""Tests for sequence allocation."""
import pytest

from rtx_state.config_engine import (
    DuplicateSequence,
    IPFilter,
    SequenceAllocator,
    SequenceMode,
    SequenceOverflow,
    SequencePolicy,
    ValidationError,
)

MANUAL = SequencePolicy(mode=SequenceMode.MANUAL)


class TestAllocate:
    """Tests for automatic id computation."""

    def test_start_and_step(self):
        """Ids are start + i * step."""
        policy = SequencePolicy(start=100, step=10)
        assert SequenceAllocator().allocate(policy, 3) == [100, 110, 120]

    def test_defaults(self):
        """The default policy starts at 10 with step 10."""
        assert SequenceAllocator().allocate(SequencePolicy(), 2) == [10, 20]

    def test_overflow(self):
        """Ids above the maximum are refused."""
        with pytest.raises(SequenceOverflow) as exc:
            SequenceAllocator(maximum=65535).allocate(SequencePolicy(start=65530, step=10), 2)
        assert exc.value.value == 65540
        assert exc.value.maximum == 65535

    def test_manual_policy_does_not_allocate(self):
        """Only automatic policies compute ids."""
        with pytest.raises(ValidationError):
            SequenceAllocator().allocate(MANUAL, 1)

    def test_bad_step(self):
        """A non-positive step is rejected."""
        with pytest.raises(ValidationError):
            SequenceAllocator().allocate(SequencePolicy(step=0), 2)


class TestValidate:
    """Tests for checking ids against a policy."""

    def test_explicit_id_under_auto(self):
        """Auto lists may not carry explicit ids."""
        with pytest.raises(ValidationError) as exc:
            SequenceAllocator().validate([None, 50], SequencePolicy())
        assert exc.value.value == 50

    def test_missing_id_under_manual(self):
        """Manual lists need every id."""
        with pytest.raises(ValidationError):
            SequenceAllocator().validate([10, None], MANUAL)

    def test_missing_id_without_policy(self):
        """Without a policy the list is treated as manual."""
        with pytest.raises(ValidationError):
            SequenceAllocator().validate([None])

    def test_duplicate(self):
        """The same id twice is a DuplicateSequence."""
        with pytest.raises(DuplicateSequence) as exc:
            SequenceAllocator().validate([10, 20, 10], MANUAL)
        assert exc.value.sequence == 10

    def test_manual_overflow(self):
        """Manual ids above the maximum overflow."""
        with pytest.raises(SequenceOverflow):
            SequenceAllocator(maximum=512).validate([1, 600], MANUAL)

    def test_valid_manual(self):
        """Distinct in-range ids pass."""
        SequenceAllocator().validate([30, 10, 20], MANUAL)


class TestAssign:
    """Tests for populating entry ids."""

    def test_auto_ids_on_copies(self):
        """Automatic ids are set on copies, not on the given entries."""
        entries = [IPFilter(None, "pass"), IPFilter(None, "reject")]
        assigned = SequenceAllocator().assign(entries, SequencePolicy(start=200, step=5))
        assert [e.number for e in assigned] == [200, 205]
        assert entries[0].number is None

    def test_manual_ids_kept(self):
        """Manual entries come back unchanged."""
        entries = [IPFilter(7, "pass"), IPFilter(3, "reject")]
        assert SequenceAllocator().assign(entries, MANUAL) == entries

    def test_mixed_rejected(self):
        """A list mixing explicit and missing ids is refused."""
        with pytest.raises(ValidationError):
            SequenceAllocator().assign([IPFilter(7, "pass"), IPFilter(None, "reject")], MANUAL)


class TestNextAvailableStart:
    """Tests for suggesting a free start."""

    def test_first_round_candidate(self):
        """10 is used when nothing is taken."""
        assert SequenceAllocator().next_available_start([], 5) == 10

    def test_skips_taken_candidates(self):
        """Round starts whose span touches used ids are skipped."""
        assert SequenceAllocator().next_available_start([10, 50], 3) == 100
        assert SequenceAllocator().next_available_start([100, 1000], 20) == 10000

    def test_above_highest_used(self):
        """Past the round candidates, the hundred above the highest id is used."""
        used = [10, 100, 1000, 10000]
        assert SequenceAllocator().next_available_start(used, 1) == 10100

    def test_no_room(self):
        """Raises when nothing fits below the maximum."""
        with pytest.raises(SequenceOverflow):
            SequenceAllocator(maximum=512).next_available_start([10, 100, 500], 10)

"""Tests for sequence collision detection."""
import pytest

from rtx_state.config_engine import (
    CollisionDetected,
    DynamicFilter,
    IPFilter,
    SequenceRange,
    ValidationError,
    check_against_device,
    check_against_siblings,
    ranges_from_records,
)


class TestSequenceRange:
    """Tests for the range value type."""

    def test_overlap(self):
        """Inclusive bounds overlap at the edges."""
        assert SequenceRange(100, 120).overlaps(SequenceRange(120, 130))
        assert not SequenceRange(100, 120).overlaps(SequenceRange(121, 130))

    def test_inverted_range(self):
        """A start above the end is invalid."""
        with pytest.raises(ValidationError):
            SequenceRange(20, 10)


class TestSiblingCheck:
    """Tests for comparing declared lists with each other."""

    def test_overlapping_lists(self):
        """Overlapping ranges are reported with the other owner."""
        report = check_against_siblings(
            SequenceRange(100, 120, "web"),
            [("mail", SequenceRange(110, 130))],
        )
        assert report is not None
        assert report.source == "siblings"
        assert report.owners == ["web", "mail"]
        assert report.conflicting_ranges[0].owner == "mail"

    def test_disjoint_lists(self):
        """Disjoint ranges do not collide."""
        assert check_against_siblings(
            SequenceRange(100, 120, "web"),
            [SequenceRange(200, 220, "mail")],
        ) is None

    def test_same_owner_overlap(self):
        """Overlap is reported even when the other range has the same owner."""
        report = check_against_siblings(
            SequenceRange(100, 120, "web"),
            [SequenceRange(110, 150, "web")],
        )
        assert report is not None
        assert report.conflicting_ranges == [SequenceRange(110, 150, "web")]
        assert report.owners == ["web"]

    def test_replaced_range_is_skipped(self):
        """Only the range being replaced is left out of the check."""
        old = SequenceRange(100, 120, "web")
        assert check_against_siblings(SequenceRange(100, 130, "web"), [old], replacing=old) is None
        report = check_against_siblings(
            SequenceRange(100, 130, "web"),
            [old, SequenceRange(125, 125, "web")],
            replacing=old,
        )
        assert report.conflicting_ranges == [SequenceRange(125, 125, "web")]

    def test_other_numbering_space(self):
        """Ranges in different numbering spaces never collide."""
        assert check_against_siblings(
            SequenceRange(100, 120, "web", "ip_filter"),
            [SequenceRange(100, 120, "l2", "ethernet_filter")],
        ) is None

    def test_message_names_both_owners(self):
        """The report message names both lists and suggests actions."""
        report = check_against_siblings(
            SequenceRange(500, 520, "web"),
            [("mail", SequenceRange(510, 530))],
        )
        assert "web" in report.message
        assert "mail" in report.message
        assert "overlap 510-520" in report.message
        assert "Suggested actions" in report.message


class TestDeviceCheck:
    """Tests for comparing a list with what the device holds."""

    def test_query_called_once(self):
        """The device is queried exactly once."""
        calls = []

        def query():
            calls.append(1)
            return [SequenceRange(200, 200, "device:ip_filter 200")]

        assert check_against_device(SequenceRange(100, 120, "web"), query) is None
        assert len(calls) == 1

    def test_device_collision(self):
        """Live filters inside the range are reported."""
        report = check_against_device(
            SequenceRange(100, 120, "web"),
            lambda: [SequenceRange(105, 105, "device:ip_filter 105")],
        )
        assert report.source == "device"
        assert report.owners == ["web", "device:ip_filter 105"]

    def test_query_errors_propagate(self):
        """Transport failures are not turned into 'no collision'."""
        def query():
            raise ConnectionError("device unreachable")

        with pytest.raises(ConnectionError):
            check_against_device(SequenceRange(100, 120, "web"), query)

    def test_excluded_ids(self):
        """Ids the list already owns are not collisions."""
        live = [SequenceRange(100, 100, "device:ip_filter 100"),
                SequenceRange(110, 110, "device:ip_filter 110")]
        assert check_against_device(SequenceRange(100, 120, "web"), lambda: live, exclude=[100, 110]) is None


class TestRangesFromRecords:
    """Tests for deriving ranges from parsed filters."""

    def test_single_id_ranges(self):
        """Without an owner function each filter is its own range."""
        ranges = ranges_from_records([IPFilter(100, "pass"), DynamicFilter(200080)])
        assert ranges == [
            SequenceRange(100, 100, "device:ip_filter 100", "ip_filter"),
            SequenceRange(200080, 200080, "device:ip_filter_dynamic 200080", "ip_filter_dynamic"),
        ]

    def test_grouped_by_owner(self):
        """Filters sharing an owner merge into one range."""
        records = [IPFilter(100, "pass"), IPFilter(130, "pass"), IPFilter(900, "reject")]
        ranges = ranges_from_records(records, owner_of=lambda r: "web" if r.number < 500 else None)
        assert SequenceRange(100, 130, "web", "ip_filter") in ranges
        assert SequenceRange(900, 900, "device:ip_filter 900", "ip_filter") in ranges

    def test_unnumbered_records_skipped(self):
        """Records without a number occupy no range."""
        assert ranges_from_records([IPFilter(None, "pass"), object()]) == []


class TestEngineCollisionCheck:
    """Tests for the engine's combined check."""

    def test_sibling_collision_raises(self, engine):
        """A sibling overlap raises with the report attached."""
        with pytest.raises(CollisionDetected) as exc:
            engine.check_collision(
                SequenceRange(500, 520, "web"),
                siblings=[("mail", SequenceRange(510, 530))],
            )
        assert exc.value.report.owners == ["web", "mail"]
        assert "web" in str(exc.value)
        assert "mail" in str(exc.value)

    def test_device_checked_after_clean_siblings(self, engine):
        """The device answer is consulted even when siblings are clear."""
        with pytest.raises(CollisionDetected) as exc:
            engine.check_collision(
                SequenceRange(100, 120, "web"),
                siblings=[("mail", SequenceRange(200, 220))],
                device_query=lambda: [SequenceRange(110, 110, "device:ip_filter 110")],
            )
        assert exc.value.report.source == "device"

    def test_clear(self, engine):
        """No overlap anywhere returns quietly."""
        engine.check_collision(
            SequenceRange(100, 120, "web"),
            siblings=[("mail", SequenceRange(200, 220))],
            device_query=lambda: [],
        )

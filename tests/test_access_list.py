"""Tests for access lists and their sequence handling."""
import pytest

from rtx_state.config_engine import (
    AccessList,
    DynamicFilter,
    EthernetFilter,
    IPFilter,
    SequenceMode,
    SequenceOverflow,
    SequencePolicy,
    SequenceRange,
    ValidationError,
)

AUTO_100 = SequencePolicy(start=100, step=10)


def _web_list(**overrides) -> AccessList:
    values = dict(
        name="web",
        entries=[
            IPFilter(None, "pass", protocol="tcp", destination_port="www"),
            IPFilter(None, "reject"),
        ],
        policy=AUTO_100,
    )
    values.update(overrides)
    return AccessList(**values)


class TestAccessListSynthesize:
    """Tests for expanding access lists into filter commands."""

    def test_auto_numbering(self, engine):
        """Entries are numbered by the policy, in order."""
        assert engine.synthesize(_web_list()) == [
            "ip filter 100 pass * * tcp * 80",
            "ip filter 110 reject * * *",
        ]

    def test_manual_numbering(self, engine):
        """Manual lists use the numbers given."""
        acl = AccessList(
            name="manual",
            entries=[IPFilter(500, "pass"), IPFilter(505, "reject")],
            policy=SequencePolicy(mode=SequenceMode.MANUAL),
        )
        assert engine.synthesize(acl) == ["ip filter 500 pass * * *", "ip filter 505 reject * * *"]

    def test_explicit_number_under_auto(self, engine):
        """An explicit number in an auto list is rejected."""
        acl = _web_list(entries=[IPFilter(50, "pass")])
        with pytest.raises(ValidationError):
            engine.synthesize(acl)

    def test_idempotent(self, engine):
        """A list compared with itself yields no commands."""
        assert engine.synthesize(_web_list(), _web_list()) == []

    def test_renumber_removes_first(self, engine):
        """Moving a list removes the old numbers before writing new ones."""
        moved = _web_list(policy=SequencePolicy(start=200, step=10))
        commands = engine.synthesize(moved, _web_list())
        assert commands == [
            "no ip filter 100",
            "no ip filter 110",
            "ip filter 200 pass * * tcp * 80",
            "ip filter 210 reject * * *",
        ]

    def test_appended_entry(self, engine):
        """Appending an entry only writes the new filter."""
        longer = _web_list(entries=_web_list().entries + [IPFilter(None, "pass", protocol="icmp")])
        assert engine.synthesize(longer, _web_list()) == ["ip filter 120 pass * * icmp"]

    def test_delete(self, engine):
        """Deleting a list deletes every entry."""
        assert engine.delete(_web_list()) == ["no ip filter 100", "no ip filter 110"]

    def test_wrong_entry_type(self, engine):
        """An IP list cannot hold Ethernet filters."""
        acl = AccessList(name="mixed", entries=[EthernetFilter(None, "pass")], policy=AUTO_100)
        with pytest.raises(ValidationError):
            engine.synthesize(acl)

    def test_address_family_mismatch(self, engine):
        """An IPv6 list cannot hold IPv4 filters."""
        acl = AccessList(name="v6", entries=[IPFilter(None, "pass")], policy=AUTO_100, kind="ipv6")
        with pytest.raises(ValidationError):
            engine.synthesize(acl)

    def test_dynamic_list(self, engine):
        """Dynamic lists expand into dynamic filters."""
        acl = AccessList(
            name="inspect",
            entries=[DynamicFilter(None, protocol="ftp"), DynamicFilter(None, protocol="www")],
            policy=SequencePolicy(start=200080, step=1),
            kind="dynamic",
        )
        assert engine.synthesize(acl) == [
            "ip filter dynamic 200080 * * ftp",
            "ip filter dynamic 200081 * * www",
        ]

    def test_ipv6_dynamic_list(self, engine):
        """IPv6 dynamic lists expand into ipv6 dynamic filters and reject IPv4 entries."""
        acl = AccessList(
            name="inspect6",
            entries=[DynamicFilter(None, protocol="ftp", ipv6=True)],
            policy=SequencePolicy(start=101080, step=1),
            kind="ipv6_dynamic",
        )
        assert engine.synthesize(acl) == ["ipv6 filter dynamic 101080 * * ftp"]
        assert engine.sequence_range(acl).space == "ipv6_filter_dynamic"
        with pytest.raises(ValidationError):
            engine.synthesize(AccessList(name="mixed", entries=[DynamicFilter(None)],
                                         policy=AUTO_100, kind="ipv6_dynamic"))

    def test_ethernet_ceiling(self, engine):
        """Ethernet lists overflow at the Ethernet filter maximum."""
        acl = AccessList(
            name="l2",
            entries=[EthernetFilter(None, "pass")] * 3,
            policy=SequencePolicy(start=500, step=10),
            kind="ethernet",
        )
        with pytest.raises(SequenceOverflow) as exc:
            engine.synthesize(acl)
        assert exc.value.maximum == 512


class TestEngineSequences:
    """Tests for the engine's sequence helpers."""

    def test_allocate_sequence(self, engine):
        """Allocation follows the policy."""
        assert engine.allocate_sequence(AUTO_100, 3) == [100, 110, 120]

    def test_allocator_ceiling_per_kind(self, engine):
        """Each list kind is bounded by its filter number range."""
        assert engine.allocator("ip").maximum == 2147483647
        assert engine.allocator("ethernet").maximum == 512

    def test_sequence_range(self, engine):
        """The range spans the first and last numbered entries."""
        assert engine.sequence_range(_web_list()) == SequenceRange(100, 110, "web", "ip_filter")
        assert engine.sequence_range(_web_list(entries=[])) is None

    def test_next_available_start(self, engine):
        """A free start is suggested around used numbers."""
        assert engine.next_available_start([100, 110], 3) == 10
        assert engine.next_available_start([10, 20], 3) == 100


class TestAccessListFamily:
    """Tests for the access list family's parse and slot hooks."""

    def test_lines_are_not_read_as_lists(self, engine):
        """A filter line handed to the list family is reported, not absorbed."""
        family = engine.registry.get("access_list")
        match = engine.match("ip filter 100 pass * * *")
        records, diagnostics = family.build([match])
        assert records == []
        (diagnostic,) = diagnostics
        assert diagnostic.kind == "ValidationError"
        assert "ip filter 100" in diagnostic.message

    def test_no_slots(self, engine):
        """Lists have no slot layout of their own."""
        with pytest.raises(NotImplementedError):
            engine.registry.get("access_list").slots()

"""Tests for the ConfigEngine parse path on whole configurations."""
from rtx_state.config_engine import (
    DNSConfig,
    InterfaceFilters,
    IPFilter,
    IPsecTunnel,
    StaticRoute,
)

CONFIG = """\
# RTX1210 Rev.14.01.42 (Fri Jan 1 00:00:00 2021)
# MAC Address : 00:a0:de:00:00:01
login user admin s3cret
ip route default gateway 192.168.0.1
ip lan1 address 192.168.100.1/24
ip lan2 secure filter in 200020 200021 20009
9
ip filter 200020 reject 10.0.0.0/8 * * * *
ip filter 200021 pass * 192.168.100.0/24 tcp * www
ip filter 200099 pass * * * * *
tunnel select 1
 ipsec tunnel 101
  ipsec sa policy 101 1 esp aes-cbc sha-hmac
 tunnel enable 1
tunnel select none
dns service recursive
dns server 8.8.8.8
ntp date 192.0.2.1
"""


class TestParseConfig:
    """Tests for parsing a realistic show config listing."""

    def test_records(self, engine):
        """Every owned command becomes part of a record."""
        result = engine.parse(CONFIG)
        assert [f.number for f in result.of_type(IPFilter)] == [200020, 200021, 200099]
        assert result.of_type(InterfaceFilters)[0].filters == [200020, 200021, 200099]
        assert result.of_type(StaticRoute)[0].network == "0.0.0.0/0"
        assert result.of_type(IPsecTunnel)[0].sa_policy == 101
        assert result.of_type(DNSConfig)[0].name_servers == ["8.8.8.8"]

    def test_unknown_lines_are_diagnostics(self, engine):
        """Unrelated lines are reported without stopping the parse."""
        result = engine.parse(CONFIG)
        unknown = result.diagnostics_of("UnknownPattern")
        assert [d.line for d in unknown] == ["ip lan1 address 192.168.100.1/24", "ntp date 192.0.2.1"]
        assert unknown[0].line_number == 5
        assert result.diagnostics_of("MalformedInput") == []
        assert result.diagnostics_of("AmbiguousMatch") == []

    def test_pp_block_lines_stay_separate(self, engine):
        """Indented lines of a pp block are reported one by one, not merged."""
        text = (
            "pp select 1\n"
            " pppoe use lan2\n"
            " pp auth accept pap chap\n"
            " ppp lcp mru on 1454\n"
            "pp select none\n"
        )
        unknown = engine.parse(text).diagnostics_of("UnknownPattern")
        assert [d.line for d in unknown] == [
            "pppoe use lan2",
            "pp auth accept pap chap",
            "ppp lcp mru on 1454",
        ]

    def test_comments_skipped(self, engine):
        """Comment lines are not diagnostics."""
        result = engine.parse(CONFIG)
        assert not any(d.line.startswith("#") for d in result.diagnostics)

    def test_invalid_value_dropped(self, engine):
        """A line with an out-of-range value is reported and skipped."""
        result = engine.parse("ip filter 200020 pass * * *\nethernet filter 600 pass * *")
        assert [f.number for f in result.of_type(IPFilter)] == [200020]
        (diagnostic,) = result.diagnostics_of("ValidationError")
        assert diagnostic.line == "ethernet filter 600 pass * *"

    def test_empty_text(self, engine):
        """Empty input yields an empty result."""
        result = engine.parse("")
        assert result.records == []
        assert result.diagnostics == []

    def test_diagnostic_to_dict(self, engine):
        """Diagnostics serialize to plain data."""
        (diagnostic,) = engine.parse("ntp date 192.0.2.1").diagnostics
        data = diagnostic.to_dict()
        assert data["kind"] == "UnknownPattern"
        assert data["line"] == "ntp date 192.0.2.1"
        assert data["line_number"] == 1


class TestReconstructAndMatch:
    """Tests for the engine's single-line helpers."""

    def test_reconstruct(self, engine):
        """Wrapped output is rejoined."""
        assert engine.reconstruct("ip lan2 secure filter in 200020 20010\n0") == \
            "ip lan2 secure filter in 200020 200100"

    def test_match(self, engine):
        """match() identifies the pattern of one line."""
        assert engine.match("tunnel enable 1").pattern_name == "tunnel_enable"
